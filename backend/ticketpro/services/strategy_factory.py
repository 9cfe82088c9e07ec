"""
Capability factory.
Configures which mailer and exporter implementations the app uses.
"""

from typing import Optional

from ticketpro.core.config import settings
from ticketpro.services.interfaces.exporter import Exporter
from ticketpro.services.interfaces.log_mailer import LogMailer
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.exporter_service import HttpExporter, LocalDirectoryExporter
from ticketpro.services.mailer_service import ResendMailer


def build_mailer() -> Mailer:
    """
    Mailer selection:
    - log (default): LogMailer
    - resend: ResendMailer, requires RESEND_API_KEY
    """
    if settings.MAILER_BACKEND == "resend":
        return ResendMailer(api_key=settings.RESEND_API_KEY, sender=settings.MAIL_FROM)
    return LogMailer()


def build_exporter() -> Exporter:
    """
    Exporter selection:
    - local (default): LocalDirectoryExporter under BACKUP_DIR
    - http: HttpExporter posting to BACKUP_UPLOAD_URL
    """
    if settings.EXPORTER_BACKEND == "http":
        return HttpExporter(url=settings.BACKUP_UPLOAD_URL, token=settings.BACKUP_UPLOAD_TOKEN)
    return LocalDirectoryExporter(settings.BACKUP_DIR)


# Singleton instances
_mailer: Optional[Mailer] = None
_exporter: Optional[Exporter] = None


def get_mailer() -> Mailer:
    """Get mailer singleton. Also usable as a FastAPI dependency."""
    global _mailer
    if _mailer is None:
        _mailer = build_mailer()
    return _mailer


def get_exporter() -> Exporter:
    """Get exporter singleton. Also usable as a FastAPI dependency."""
    global _exporter
    if _exporter is None:
        _exporter = build_exporter()
    return _exporter


async def close_capabilities() -> None:
    global _mailer, _exporter
    if _mailer is not None:
        await _mailer.close()
    if _exporter is not None:
        await _exporter.close()
    _mailer = None
    _exporter = None

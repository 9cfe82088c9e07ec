"""
Backup exporters: local directory and HTTP upload.
"""

import asyncio
from pathlib import Path
from typing import Optional

import httpx

from ticketpro.core.errors import ExportError
from ticketpro.core.logging import get_logger
from ticketpro.services.interfaces.exporter import Exporter

logger = get_logger(__name__)


class LocalDirectoryExporter(Exporter):
    """Writes each backup as a file under `directory`."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _write(self, blob: bytes, name: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / Path(name).name
        target.write_bytes(blob)
        return str(target)

    async def upload(self, blob: bytes, name: str) -> str:
        try:
            path = await asyncio.to_thread(self._write, blob, name)
        except OSError as e:
            raise ExportError(f"Could not write backup {name}: {e}") from e
        logger.info("backup_written", path=path, size=len(blob))
        return path


class HttpExporter(Exporter):
    """
    Uploads backups as multipart form data.
    The endpoint is expected to answer with JSON containing "id" or "fileId".
    """

    def __init__(self, url: str, token: str = "", client: Optional[httpx.AsyncClient] = None):
        if not url:
            raise ValueError("Backup upload URL not configured")
        self.url = url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(timeout=60.0, headers=headers)

    async def upload(self, blob: bytes, name: str) -> str:
        try:
            response = await self.client.post(
                self.url,
                files={"file": (name, blob, "application/json")},
            )
        except httpx.HTTPError as e:
            raise ExportError(f"Backup endpoint unreachable: {e}") from e

        if response.status_code >= 300:
            raise ExportError(f"Backup upload failed ({response.status_code}): {response.text[:300]}")

        body = response.json()
        file_id = body.get("id") or body.get("fileId") or name
        logger.info("backup_uploaded", file_id=file_id, size=len(blob))
        return str(file_id)

    async def close(self) -> None:
        await self.client.aclose()

"""
Capability interfaces for dependency inversion.
Allows swapping email and backup providers without changing lifecycle logic.
"""

from .mailer import Mailer
from .exporter import Exporter
from .log_mailer import LogMailer

__all__ = ['Mailer', 'Exporter', 'LogMailer']

"""
Backup export capability interface.
"""

from abc import ABC, abstractmethod


class Exporter(ABC):
    """
    Interface for backup storage.

    Implementations:
    - LocalDirectoryExporter: Writes backups under a local directory
    - HttpExporter: Uploads backups to a remote file endpoint
    """

    @abstractmethod
    async def upload(self, blob: bytes, name: str) -> str:
        """
        Store one backup file.

        Returns:
            Identifier of the stored file (path or remote id)

        Raises:
            ExportError: The file could not be stored
        """
        pass

    async def close(self) -> None:
        """Release storage connections."""
        pass

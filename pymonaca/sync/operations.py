"""Single file upload/download primitives used by transfer batches."""

import asyncio
import logging
from pathlib import Path

from ..api import MonacaClient
from ..exceptions import MonacaError, MonacaIOError, MonacaTransferError
from ..utils import local_path_for
from .transfer import TransferDirection, TransferTask

logger = logging.getLogger(__name__)


def _write_file(path: Path, content: bytes) -> None:
    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


class SyncOperations:
    """Unified upload/download for one project and one local directory."""

    def __init__(self, client: MonacaClient, project_id: str, project_dir: Path):
        """Initialize sync operations.

        Args:
            client: Monaca API client
            project_id: Remote project ID
            project_dir: Local project root
        """
        self.client = client
        self.project_id = project_id
        self.project_dir = project_dir

    async def upload(self, path: str) -> str:
        """Read a local file fully and save it to the remote project.

        Args:
            path: Project path ("/www/index.html")

        Returns:
            The remote path that was written

        Raises:
            MonacaTransferError: If the file is missing or the API call fails
        """
        try:
            local_path = local_path_for(self.project_dir, path)
            try:
                content = await asyncio.to_thread(local_path.read_bytes)
            except FileNotFoundError as e:
                raise MonacaIOError(f"File does not exist: {local_path}") from e
            except OSError as e:
                raise MonacaIOError(f"Failed to read {local_path}: {e}") from e

            await self.client.save_file(self.project_id, path, content)
        except MonacaError as e:
            raise MonacaTransferError(path, e) from e

        logger.debug("Uploaded %s (%d bytes)", path, len(content))
        return path

    async def download(self, path: str) -> Path:
        """Fetch a remote file and write it below the project directory.

        Args:
            path: Project path ("/www/index.html")

        Returns:
            Local path where the file was saved

        Raises:
            MonacaTransferError: If the API call or the local write fails
        """
        try:
            local_path = local_path_for(self.project_dir, path)
            content = await self.client.read_file(self.project_id, path)
            try:
                await asyncio.to_thread(_write_file, local_path, content)
            except OSError as e:
                raise MonacaIOError(f"Failed to write {local_path}: {e}") from e
        except MonacaError as e:
            raise MonacaTransferError(path, e) from e

        logger.debug("Downloaded %s (%d bytes)", path, len(content))
        return local_path

    async def transfer(self, task: TransferTask) -> object:
        """Run a TransferTask in the direction it names."""
        if task.direction == TransferDirection.UPLOAD:
            return await self.upload(task.path)
        return await self.download(task.path)

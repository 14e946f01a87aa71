"""Core sync engine for uploading, downloading and cloning projects."""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..api import MonacaClient
from ..exceptions import MonacaIOError
from ..local_properties import get_project_id, set_project_id
from ..models import FileTree
from .comparator import TreeDiffer
from .operations import SyncOperations
from .scanner import LocalTreeScanner
from .transfer import (
    BatchResult,
    ProgressCallback,
    TransferCoordinator,
    TransferDirection,
    TransferTask,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """What a sync call planned and, unless it was a dry run, did."""

    project_id: str
    direction: TransferDirection
    tasks: list[TransferTask]
    batch: Optional[BatchResult] = None
    """None for a dry run"""

    @property
    def dry_run(self) -> bool:
        return self.batch is None

    @property
    def paths(self) -> list[str]:
        return [task.path for task in self.tasks]


class SyncEngine:
    """Core sync engine that orchestrates project synchronization.

    Each call scans the local project once, fetches the remote tree, diffs
    the two and runs the resulting transfers as one batch. No state is kept
    between calls.
    """

    def __init__(
        self,
        client: MonacaClient,
        coordinator: Optional[TransferCoordinator] = None,
        scanner: Optional[LocalTreeScanner] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Monaca API client
            coordinator: Transfer coordinator (defaults to unlimited concurrency)
            scanner: Local tree scanner
        """
        self.client = client
        self.coordinator = coordinator or TransferCoordinator()
        self.scanner = scanner or LocalTreeScanner()
        self.differ = TreeDiffer()

    async def _load_trees(
        self, project_dir: Path, project_id: str
    ) -> tuple[FileTree, FileTree]:
        """Scan the local project and fetch the remote tree concurrently."""
        start = time.time()
        scan = asyncio.ensure_future(self.scanner.scan_async(project_dir))
        fetch = asyncio.ensure_future(self.client.get_project_files(project_id))
        try:
            local_tree, remote_tree = await asyncio.gather(scan, fetch)
        except BaseException:
            # Don't leave the other side running against a closing client
            for pending in (scan, fetch):
                pending.cancel()
            await asyncio.gather(scan, fetch, return_exceptions=True)
            raise
        logger.debug(
            "Loaded %d local and %d remote entries in %.2fs",
            len(local_tree),
            len(remote_tree),
            time.time() - start,
        )
        return local_tree, remote_tree

    async def _run_batch(
        self,
        operations: SyncOperations,
        tasks: list[TransferTask],
        progress_callback: Optional[ProgressCallback],
    ) -> BatchResult:
        batch = await self.coordinator.run_batch(
            tasks, operations.transfer, progress_callback
        )
        # Partial progress has already been reported through the callback
        batch.raise_for_error()
        return batch

    async def upload_project(
        self,
        project_dir: Path,
        dry_run: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """Upload changed local files of a linked project.

        Only files whose hash differs from the remote copy, that are top-level
        or live below www/, merges/ or plugins/, and that have no hidden path
        segment are sent.

        Args:
            project_dir: Local project directory (must be linked)
            dry_run: Only compute the upload set
            progress_callback: Receives a TransferProgress per settled file

        Returns:
            SyncReport for the upload

        Raises:
            MonacaConfigError: If the directory is not linked to a project
            MonacaIOError: If the local scan fails
            MonacaTransferError: If any upload fails
        """
        project_id = get_project_id(project_dir)
        local_tree, remote_tree = await self._load_trees(project_dir, project_id)

        tasks = self.differ.upload_set(local_tree, remote_tree)
        logger.debug("Upload set for %s: %d file(s)", project_id, len(tasks))
        report = SyncReport(project_id, TransferDirection.UPLOAD, tasks)
        if dry_run:
            return report

        operations = SyncOperations(self.client, project_id, project_dir)
        report.batch = await self._run_batch(operations, tasks, progress_callback)
        return report

    async def download_project(
        self,
        project_dir: Path,
        dry_run: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """Download changed remote files of a linked project.

        Args:
            project_dir: Local project directory (must be linked)
            dry_run: Only compute the download set
            progress_callback: Receives a TransferProgress per settled file

        Returns:
            SyncReport for the download
        """
        project_id = get_project_id(project_dir)
        local_tree, remote_tree = await self._load_trees(project_dir, project_id)

        tasks = self.differ.download_set(remote_tree, local_tree)
        logger.debug("Download set for %s: %d file(s)", project_id, len(tasks))
        report = SyncReport(project_id, TransferDirection.DOWNLOAD, tasks)
        if dry_run:
            return report

        operations = SyncOperations(self.client, project_id, project_dir)
        report.batch = await self._run_batch(operations, tasks, progress_callback)
        return report

    async def clone_project(
        self,
        project_id: str,
        dest_dir: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """Download a whole project into a new directory and link it.

        Raises:
            MonacaIOError: If dest_dir exists and is not empty
        """
        if dest_dir.exists() and (not dest_dir.is_dir() or any(dest_dir.iterdir())):
            raise MonacaIOError(
                f"{dest_dir} already exists and it contains files."
            )
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MonacaIOError(f"Failed to create {dest_dir}: {e}") from e

        remote_tree = await self.client.get_project_files(project_id)
        tasks = self.differ.download_set(remote_tree, {})
        logger.debug("Cloning %s: %d file(s)", project_id, len(tasks))

        operations = SyncOperations(self.client, project_id, dest_dir)
        batch = await self._run_batch(operations, tasks, progress_callback)

        set_project_id(dest_dir, project_id)
        return SyncReport(project_id, TransferDirection.DOWNLOAD, tasks, batch)

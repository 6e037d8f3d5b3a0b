"""
Reading-history import: client-side validation, upload and status polling.

CSV parsing happens on the backend; this module only ships the file and
follows the resulting import record until it settles.
"""

import asyncio
from pathlib import PurePath

from shelfsync.core.clock import Clock
from shelfsync.core.config import Settings
from shelfsync.core.errors import ApiError, ImportFileError, ShelfSyncError, error_message
from shelfsync.core.http import ApiClient
from shelfsync.core.logging import get_context_logger, get_logger
from shelfsync.schemas import ImportRecord, ImportState

logger = get_logger(__name__)


class ImportsService:
    """Uploads exported reading histories and reads back import records."""

    def __init__(self, api: ApiClient, settings: Settings):
        self.api = api
        self.max_file_bytes = settings.IMPORT_MAX_FILE_BYTES

    def validate_upload(self, filename: str, size: int) -> None:
        """
        Reject files the backend would refuse anyway.

        Raises:
            ImportFileError: Not a ``.csv`` file, or larger than the limit
        """
        if PurePath(filename).suffix.lower() != ".csv":
            raise ImportFileError("Please upload a CSV file")
        if size > self.max_file_bytes:
            limit_mb = self.max_file_bytes // (1024 * 1024)
            raise ImportFileError(f"File size must be less than {limit_mb}MB")

    async def upload_goodreads_csv(self, filename: str, content: bytes) -> ImportRecord:
        self.validate_upload(filename, len(content))
        try:
            record, message = await self.api.upload_goodreads_csv(filename, content)
        except ApiError as e:
            logger.warning(f"Goodreads upload rejected: {e.message}")
            raise

        logger.info(
            f"Goodreads import {record.id} created",
            extra={"extra_fields": {"import_id": record.id, "upload_message": message}},
        )
        return record

    async def get_import_status(self, import_id: int) -> ImportRecord:
        return await self.api.get_import_status(import_id)

    async def list_imports(self) -> list[ImportRecord]:
        return await self.api.get_imports()


class ImportStatusPoller:
    """
    Follows one import until it completes or fails.

    Polls immediately, then waits ``initial`` seconds, growing by ``step``
    after every poll up to ``maximum``. A failed fetch is recorded in
    ``error`` and polling carries on.
    """

    def __init__(
        self,
        service: ImportsService,
        import_id: int,
        clock: Clock,
        initial: float = 2.0,
        step: float = 1.0,
        maximum: float = 10.0,
    ):
        self.service = service
        self.import_id = import_id
        self.clock = clock
        self.initial = initial
        self.step = step
        self.maximum = maximum

        self.status: ImportRecord | None = None
        self.error: str | None = None
        self.is_loading = False
        self.polls = 0

        self._cancelled = False
        self._task: asyncio.Task | None = None
        self._log = get_context_logger(__name__, import_id=import_id)

    @classmethod
    def from_settings(
        cls, service: ImportsService, import_id: int, clock: Clock, settings: Settings
    ) -> "ImportStatusPoller":
        return cls(
            service,
            import_id,
            clock,
            initial=settings.IMPORT_POLL_INITIAL_SECONDS,
            step=settings.IMPORT_POLL_STEP_SECONDS,
            maximum=settings.IMPORT_POLL_MAX_SECONDS,
        )

    @property
    def is_completed(self) -> bool:
        return self.status is not None and self.status.status == ImportState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is not None and self.status.status == ImportState.FAILED

    @property
    def is_finished(self) -> bool:
        return self.status is not None and self.status.status.is_terminal

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.ensure_future(self.run())
        return self._task

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> ImportRecord | None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self.status

    async def refetch(self) -> ImportRecord | None:
        """Fetch the status once. Errors are recorded, not raised."""
        self.is_loading = True
        self.error = None
        try:
            self.status = await self.service.get_import_status(self.import_id)
        except ShelfSyncError as e:
            self.error = error_message(e, "Failed to fetch import status")
            self._log.warning(f"Import status fetch failed: {self.error}")
        finally:
            self.is_loading = False
            self.polls += 1
        return self.status

    async def run(self) -> ImportRecord | None:
        interval = self.initial
        await self.refetch()

        while not self._cancelled and not self.is_finished:
            await self.clock.sleep(interval)
            if self._cancelled:
                break
            await self.refetch()
            interval = min(interval + self.step, self.maximum)

        if self.is_finished:
            self._log.info(f"Import finished with status {self.status.status.value}")
        return self.status

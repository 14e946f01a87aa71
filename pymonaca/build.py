"""Remote build submission and status polling."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .api import MonacaClient
from .exceptions import (
    MonacaBuildFailedError,
    MonacaBuildTimeoutError,
    MonacaValidationError,
)
from .utils import DEFAULT_MAX_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_FRAMEWORK_VERSION = "3.5"
DEFAULT_PURPOSE = "debug"

# Terminal status reported by the API for a successful build
SUCCESS_STATUS = "finish"


class BuildStatus(str, Enum):
    """Lifecycle state of a build job as seen by the poller."""

    RUNNING = "running"
    FINISHED = "finished"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"


@dataclass
class BuildRequest:
    """Parameters of a remote build.

    ``options`` carries platform specific parameters, e.g.
    ``{"android_webview": "crosswalk", "android_arch": "arm"}``.
    """

    platform: Optional[str]
    framework_version: Optional[str] = DEFAULT_FRAMEWORK_VERSION
    purpose: Optional[str] = DEFAULT_PURPOSE
    options: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if not self.platform:
            raise MonacaValidationError("Must specify build platform.")

    def to_form(self) -> dict[str, str]:
        """Form submitted to the build endpoint, with defaults applied."""
        form = {key: value for key, value in self.options.items() if value}
        form["platform"] = str(self.platform)
        form["framework_version"] = self.framework_version or DEFAULT_FRAMEWORK_VERSION
        form["purpose"] = self.purpose or DEFAULT_PURPOSE
        return form


@dataclass
class BuildJob:
    """A submitted build, mutated only by the poller."""

    queue_id: str
    status: BuildStatus = BuildStatus.RUNNING
    description: str = ""
    attempt: int = 0


@dataclass
class BuildResult:
    """Result of a successful build.

    Failed builds raise MonacaBuildFailedError instead.
    """

    queue_id: str
    artifact: dict[str, Any]
    """Payload of the result endpoint (download info of the built app)"""


StatusCallback = Callable[[BuildJob], None]
SleepFunc = Callable[[float], Awaitable[Any]]


class BuildOrchestrator:
    """Submits a build and polls it until it finishes, fails or times out.

    Status is queried once per ``poll_interval``; after ``max_attempts``
    queries without a terminal state the build is abandoned with
    MonacaBuildTimeoutError. A failing status query ends polling at once.

    Examples:
        >>> orchestrator = BuildOrchestrator(client)
        >>> result = await orchestrator.run(
        ...     project_id,
        ...     BuildRequest(platform="android"),
        ...     status_callback=lambda job: print(job.description),
        ... )
        >>> result.artifact
    """

    def __init__(
        self,
        client: MonacaClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize build orchestrator.

        Args:
            client: Monaca API client
            poll_interval: Seconds between status queries (default: 1.0)
            max_attempts: Status queries before giving up (default: 80)
            sleep: Awaitable used to wait between queries
        """
        self.client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def submit(self, project_id: str, request: BuildRequest) -> BuildJob:
        """Validate and submit a build request.

        Raises:
            MonacaValidationError: If no platform is given (nothing is sent)
        """
        request.validate()
        form = request.to_form()
        logger.debug("Submitting build for %s: %s", project_id, form)
        queue_id = await self.client.submit_build(project_id, form)
        logger.debug("Build queued as %s", queue_id)
        return BuildJob(queue_id=queue_id)

    async def poll(
        self,
        project_id: str,
        job: BuildJob,
        status_callback: Optional[StatusCallback] = None,
    ) -> BuildResult:
        """Poll a submitted build until it reaches a terminal state.

        Returns:
            BuildResult with the result payload of a successful build

        Raises:
            MonacaBuildFailedError: If the build finished unsuccessfully
            MonacaBuildTimeoutError: If max_attempts polls saw no terminal state
            MonacaError: If a status or result query fails
        """
        while job.attempt < self.max_attempts:
            await self._sleep(self.poll_interval)
            job.attempt += 1

            try:
                status = await self.client.get_build_status(project_id, job.queue_id)
            except Exception:
                job.status = BuildStatus.ERRORED
                raise

            job.description = str(status.get("description") or "")
            finished = bool(status.get("finished"))
            if finished:
                succeeded = status.get("status") == SUCCESS_STATUS
                job.status = BuildStatus.FINISHED if succeeded else BuildStatus.ERRORED

            logger.debug(
                "Build %s poll %d/%d: %s",
                job.queue_id,
                job.attempt,
                self.max_attempts,
                job.description,
            )
            if status_callback is not None:
                status_callback(job)

            if not finished:
                continue

            payload = await self.client.get_build_result(project_id, job.queue_id)
            if job.status == BuildStatus.FINISHED:
                return BuildResult(queue_id=job.queue_id, artifact=payload)

            message = payload.get("error_message") or job.description or "Build failed"
            raise MonacaBuildFailedError(str(message), payload=payload)

        job.status = BuildStatus.TIMED_OUT
        raise MonacaBuildTimeoutError(
            f"Build timed out after {job.attempt} status checks"
        )

    async def run(
        self,
        project_id: str,
        request: BuildRequest,
        status_callback: Optional[StatusCallback] = None,
    ) -> BuildResult:
        """Submit a build and wait for its result."""
        job = await self.submit(project_id, request)
        return await self.poll(project_id, job, status_callback)

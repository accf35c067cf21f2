"""Trace-run lifecycle on LangSmith with an offline fallback.

Every call to ``create_and_track_run`` returns an object implementing the
same ``Run`` interface. When LangSmith is not configured or refuses the
create call, an ``OfflineRun`` with a locally generated UUID is returned
instead; its completion methods do nothing. Callers never need to check
which one they hold.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from langsmith import Client

from app.core.config import get_settings
from app.core.exceptions import TracingDegraded
from app.core.logging import get_logger

logger = get_logger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_run_id(run_id: Any) -> bool:
    """True when run_id is a well-formed UUID."""
    if run_id is None:
        return False
    try:
        uuid.UUID(str(run_id))
    except (ValueError, TypeError, AttributeError):
        return False
    return True


class Run:
    """A trace span: one unit of work with its inputs, outputs and timing."""

    offline = False

    def __init__(
        self,
        tracker: "RunTracker | None",
        run_id: str,
        name: str,
        run_type: str,
        inputs: dict[str, Any],
        parent_id: str | None = None,
    ):
        self._tracker = tracker
        self.id = run_id
        self.name = name
        self.run_type = run_type
        self.inputs = inputs
        self.parent_id = parent_id
        self.start_time = _utc_now()
        self.end_time: datetime | None = None
        self.status = STATUS_IN_PROGRESS

    async def update(
        self,
        status: str,
        outputs: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record a status (and optional outputs) without closing the span."""
        self.status = status
        patch: dict[str, Any] = {"extra": {"metadata": {"status": status, **(metadata or {})}}}
        if outputs is not None:
            patch["outputs"] = outputs
        await self._tracker.update_run_safely(self.id, patch)

    async def end(
        self,
        outputs: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Close the span successfully."""
        self.status = STATUS_COMPLETED
        self.end_time = _utc_now()
        await self._tracker.update_run_safely(
            self.id,
            {
                "outputs": outputs or {},
                "end_time": self.end_time,
                "extra": {"metadata": {"status": STATUS_COMPLETED, **(metadata or {})}},
            },
        )

    async def fail(self, error: BaseException | str) -> None:
        """Close the span with an error."""
        self.status = STATUS_FAILED
        self.end_time = _utc_now()
        await self._tracker.update_run_safely(
            self.id,
            {
                "error": str(error),
                "end_time": self.end_time,
                "extra": {"metadata": {"status": STATUS_FAILED}},
            },
        )


class OfflineRun(Run):
    """Stand-in used when the tracer is unavailable. Completion is a no-op."""

    offline = True

    def __init__(
        self,
        name: str,
        run_type: str,
        inputs: dict[str, Any],
        parent_id: str | None = None,
    ):
        super().__init__(None, str(uuid.uuid4()), name, run_type, inputs, parent_id)

    async def update(self, status, outputs=None, metadata=None) -> None:
        self.status = status

    async def end(self, outputs=None, metadata=None) -> None:
        self.status = STATUS_COMPLETED
        self.end_time = _utc_now()

    async def fail(self, error) -> None:
        self.status = STATUS_FAILED
        self.end_time = _utc_now()


class RunTracker:
    """Creates and updates trace runs; never raises into the caller."""

    def __init__(self, client: Client | None, default_project: str):
        self.client = client
        self.default_project = default_project

    async def create_and_track_run(
        self,
        name: str,
        run_type: str,
        inputs: dict[str, Any],
        project: str | None = None,
        parent_id: str | None = None,
    ) -> Run:
        """
        Open a trace span.

        Args:
            name: Span name
            run_type: LangSmith run type (chain, llm, tool, retriever, ...)
            inputs: Span inputs
            project: Tracing project (defaults to LANGSMITH_PROJECT)
            parent_id: Parent span id, if any

        Returns:
            A live Run, or an OfflineRun when tracing is degraded
        """
        if self.client is None:
            return OfflineRun(name, run_type, inputs, parent_id)

        run_id = str(uuid.uuid4())
        parent = parent_id if is_valid_run_id(parent_id) else None

        try:
            await asyncio.to_thread(
                self.client.create_run,
                name=name,
                inputs=inputs,
                run_type=run_type,
                project_name=project or self.default_project,
                id=run_id,
                parent_run_id=parent,
                start_time=_utc_now(),
            )
        except Exception as e:
            degraded = TracingDegraded(f"Could not create run '{name}': {e}")
            logger.warning(str(degraded))
            return OfflineRun(name, run_type, inputs, parent_id)

        logger.debug(f"Created run {name}", extra={"run_id": run_id})
        return Run(self, run_id, name, run_type, inputs, parent)

    async def update_run_safely(self, run_id: Any, patch: dict[str, Any]) -> bool:
        """
        Apply a patch to a run.

        Malformed ids are skipped with a warning; tracer errors are logged.

        Returns:
            True if the tracer accepted the update
        """
        if not is_valid_run_id(run_id):
            logger.warning(f"Skipping run update for invalid run id: {run_id!r}")
            return False
        if self.client is None:
            return False

        try:
            await asyncio.to_thread(self.client.update_run, str(run_id), **patch)
        except Exception as e:
            logger.warning(f"Run update failed: {e}", extra={"run_id": str(run_id)})
            return False
        return True


@lru_cache(maxsize=1)
def get_run_tracker() -> RunTracker:
    """Get the process-wide RunTracker (cached singleton)."""
    settings = get_settings()
    client = None
    if settings.LANGSMITH_API_KEY:
        try:
            client = Client(api_key=settings.LANGSMITH_API_KEY)
        except Exception as e:
            logger.warning(f"LangSmith client unavailable, tracing offline: {e}")
    return RunTracker(client, settings.LANGSMITH_PROJECT)


async def create_and_track_run(
    name: str,
    run_type: str,
    inputs: dict[str, Any],
    project: str | None = None,
    parent_id: str | None = None,
) -> Run:
    """Module-level shortcut for get_run_tracker().create_and_track_run."""
    return await get_run_tracker().create_and_track_run(name, run_type, inputs, project, parent_id)


async def update_run_safely(run_id: Any, patch: dict[str, Any]) -> bool:
    """Module-level shortcut for get_run_tracker().update_run_safely."""
    return await get_run_tracker().update_run_safely(run_id, patch)

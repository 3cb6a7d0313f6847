"""The poll loop: detect new commits on the watched branch and deploy them.

One tick probes the branch revision, and if it differs from the last revision
that was deployed, downloads the snapshot and unpacks it. The tracked revision
only moves forward after both steps succeed, so a failed deploy is retried on
the next tick instead of being skipped.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

from .archive import materialize
from .errors import DeployerError
from .github import Target

_LOG = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    async def fetch_revision(self, target: Target) -> str: ...

    async def fetch_snapshot(self, target: Target) -> bytes: ...


class Phase(enum.Enum):
    IDLE = "idle"
    PROBING = "probing"
    FETCHING = "fetching"
    MATERIALIZING = "materializing"
    SLEEPING = "sleeping"


class TickOutcome(enum.Enum):
    DEPLOYED = "deployed"
    UNCHANGED = "unchanged"
    PROBE_FAILED = "probe_failed"
    FETCH_FAILED = "fetch_failed"
    MATERIALIZE_FAILED = "materialize_failed"


class Poller:
    """Owns the last deployed revision and drives the probe/fetch/unpack cycle."""

    def __init__(
        self,
        target: Target,
        source: SnapshotSource,
        destination: str | Path,
        *,
        interval: float = 60.0,
        strip_top_level: bool = False,
        materializer: Callable[..., int] = materialize,
    ) -> None:
        self.target = target
        self.source = source
        self.destination = Path(destination)
        self.interval = interval
        self.strip_top_level = strip_top_level
        self._materialize = materializer
        self.tracked_revision: Optional[str] = None
        self.phase = Phase.IDLE

    def _failed(self, exc: Exception) -> None:
        _LOG.warning("%s failed for %s: %s", self.phase.value.capitalize(), self.target, exc)

    async def tick(self) -> TickOutcome:
        """Run one probe and, if a new revision appeared, deploy it.

        The poller is back in IDLE once the tick returns. An unexpected error
        leaves the phase it failed in so the caller can report it.
        """
        outcome = await self._tick()
        self.phase = Phase.IDLE
        return outcome

    async def _tick(self) -> TickOutcome:
        self.phase = Phase.PROBING
        try:
            revision = await self.source.fetch_revision(self.target)
        except DeployerError as exc:
            self._failed(exc)
            return TickOutcome.PROBE_FAILED
        _LOG.debug("Commit SHA: %s", revision)

        if self.tracked_revision is not None and self.tracked_revision == revision:
            _LOG.debug("No new commits detected for %s", self.target)
            return TickOutcome.UNCHANGED

        _LOG.info(
            "New commit %s detected for %s (previous: %s)",
            revision,
            self.target,
            self.tracked_revision or "none",
        )

        self.phase = Phase.FETCHING
        try:
            snapshot = await self.source.fetch_snapshot(self.target)
        except DeployerError as exc:
            self._failed(exc)
            return TickOutcome.FETCH_FAILED

        self.phase = Phase.MATERIALIZING
        try:
            await asyncio.to_thread(
                self._materialize,
                snapshot,
                self.destination,
                strip_top_level=self.strip_top_level,
            )
        except DeployerError as exc:
            self._failed(exc)
            return TickOutcome.MATERIALIZE_FAILED

        self.tracked_revision = revision
        _LOG.info("Deployed %s at %s to %s", self.target, revision, self.destination)
        return TickOutcome.DEPLOYED

    async def run_forever(self) -> None:
        """Tick, then sleep ``interval`` seconds, until cancelled."""
        _LOG.info("Starting download loop for %s", self.target)
        while True:
            try:
                await self.tick()
            except Exception:  # noqa: BLE001
                _LOG.exception("Unexpected error while %s %s", self.phase.value, self.target)
            self.phase = Phase.SLEEPING
            await asyncio.sleep(self.interval)

"""In-process DisplayChannel feeding a RemoteDisplayAdapter directly.

Enforces the advertised budget the way a real remote channel would, so it
doubles as the reference channel in tests: every accepted push is counted
in its own rolling window, and a push beyond the budget raises RateLimited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from holdover.domain.snapshot import HoldoverSnapshot, SessionAttributes
from holdover.foundation.identifiers import new_handle
from holdover.publish.channel import (
    ChannelError,
    DismissalPolicy,
    DisplayChannel,
    PushBudget,
    RateLimited,
    SessionEnded,
)
from holdover.publish.window import RollingWindow, TimeFn
from holdover.surface.adapter import RemoteDisplayAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndRecord:
    handle: str
    final_snapshot: HoldoverSnapshot | None
    policy: DismissalPolicy


class InMemoryDisplayChannel(DisplayChannel):
    """Local channel with budget enforcement and fault injection."""

    def __init__(
        self,
        budget: PushBudget,
        *,
        adapter: RemoteDisplayAdapter | None = None,
        now_fn: TimeFn | None = None,
    ) -> None:
        self._budget = budget
        self._window = RollingWindow(
            limit=budget.pushes,
            window_seconds=budget.window_seconds,
            now_fn=now_fn,
        )
        self.adapter = adapter or RemoteDisplayAdapter()
        self._open: set[str] = set()
        self._fail_next: ChannelError | None = None
        self._fail_open: ChannelError | None = None

        self.opened: list[SessionAttributes] = []
        self.pushes: list[HoldoverSnapshot] = []
        self.ended: list[EndRecord] = []
        self.peak_window_count = 0

    @property
    def budget(self) -> PushBudget:
        return self._budget

    # ── Fault injection ──────────────────────────────────────────────────

    def fail_next(self, exc: ChannelError) -> None:
        """Make the next push raise ``exc``."""
        self._fail_next = exc

    def fail_open(self, exc: ChannelError) -> None:
        """Make the next open_session raise ``exc``."""
        self._fail_open = exc

    def terminate(self, handle: str) -> None:
        """Simulate the surface ending the session on its own."""
        self._open.discard(handle)
        logger.info("Remote session %s terminated by surface", handle)

    # ── DisplayChannel ───────────────────────────────────────────────────

    async def open_session(self, attributes: SessionAttributes) -> str:
        if self._fail_open is not None:
            exc, self._fail_open = self._fail_open, None
            raise exc
        handle = new_handle()
        self._open.add(handle)
        self.opened.append(attributes)
        logger.debug("Opened in-memory session %s for %s", handle, attributes.session_id)
        return handle

    async def push(self, handle: str, snapshot: HoldoverSnapshot) -> None:
        if self._fail_next is not None:
            exc, self._fail_next = self._fail_next, None
            raise exc
        if handle not in self._open:
            raise SessionEnded(f"session {handle} is not open")
        self._consume()
        self.pushes.append(snapshot)
        self.adapter.receive(snapshot)

    async def end_session(
        self,
        handle: str,
        final_snapshot: HoldoverSnapshot | None,
        policy: DismissalPolicy,
    ) -> None:
        if handle not in self._open:
            raise SessionEnded(f"session {handle} is not open")
        if final_snapshot is not None:
            self._consume()
            self.adapter.receive(final_snapshot)
        self._open.discard(handle)
        self.ended.append(EndRecord(handle, final_snapshot, policy))
        if policy.grace_seconds == 0:
            self.adapter.dismiss()
        logger.debug(
            "Ended in-memory session %s (final=%s, grace=%.0fs)",
            handle,
            final_snapshot.version if final_snapshot else None,
            policy.grace_seconds,
        )

    def dismiss(self) -> None:
        """Clear the surface once the grace period is over."""
        self.adapter.dismiss()

    # ── Internals ────────────────────────────────────────────────────────

    def _consume(self) -> None:
        if not self._window.has_capacity():
            raise RateLimited(self._window.retry_in())
        self._window.record()
        self.peak_window_count = max(self.peak_window_count, self._window.count())

    @property
    def window(self) -> RollingWindow:
        return self._window

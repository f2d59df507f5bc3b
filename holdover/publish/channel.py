"""Remote display channel contract.

A DisplayChannel delivers snapshots to an out-of-process surface.  It is
push-only: the surface cannot ask for fresh data.  Every channel advertises
a budget of ``pushes`` per rolling ``window_seconds`` and may refuse pushes
beyond it.

Architectural rules:
    1. Only the PublicationScheduler calls a channel.
    2. Channels never read clocks on the surface's behalf or alter snapshots.
    3. Failures are reported as ChannelError subclasses, never swallowed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from holdover.domain.snapshot import HoldoverSnapshot, SessionAttributes


# ── Errors ───────────────────────────────────────────────────────────────────

class ChannelError(Exception):
    """Base class for recoverable remote-channel failures."""


class InvalidAttributes(ChannelError):
    """The channel refused to open a session with the given attributes."""


class RateLimited(ChannelError):
    """The channel's push budget is exhausted for the current window."""

    def __init__(self, retry_in: float, message: str | None = None) -> None:
        super().__init__(message or f"push budget exhausted, retry in {retry_in:.1f}s")
        self.retry_in = max(0.0, float(retry_in))


class SessionEnded(ChannelError):
    """The remote session was terminated (by the surface or the OS)."""


class Unavailable(ChannelError):
    """The channel could not be reached."""


# ── Value objects ────────────────────────────────────────────────────────────

class PushBudget(BaseModel):
    """Maximum pushes allowed per rolling window."""

    pushes: int = Field(..., gt=0)
    window_seconds: float = Field(..., gt=0.0)

    model_config = {"frozen": True}


class DismissalPolicy(BaseModel):
    """How long the surface stays visible after the session ends."""

    grace_seconds: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}

    @classmethod
    def immediate(cls) -> "DismissalPolicy":
        return cls(grace_seconds=0.0)

    @classmethod
    def after(cls, seconds: float) -> "DismissalPolicy":
        return cls(grace_seconds=seconds)


# ── Contract ─────────────────────────────────────────────────────────────────

class DisplayChannel(ABC):
    """Push-only channel to a remote display surface."""

    @property
    @abstractmethod
    def budget(self) -> PushBudget:
        """Push budget enforced by this channel."""
        ...

    @abstractmethod
    async def open_session(self, attributes: SessionAttributes) -> str:
        """Open a remote session and return an opaque handle.

        Raises:
            InvalidAttributes: If the attributes are rejected.
            Unavailable: If the channel cannot be reached.
        """
        ...

    @abstractmethod
    async def push(self, handle: str, snapshot: HoldoverSnapshot) -> None:
        """Deliver a snapshot.

        Raises:
            RateLimited | SessionEnded | Unavailable
        """
        ...

    @abstractmethod
    async def end_session(
        self,
        handle: str,
        final_snapshot: HoldoverSnapshot | None,
        policy: DismissalPolicy,
    ) -> None:
        """End the remote session.

        ``final_snapshot`` is None when no push budget is left, in which
        case the surface keeps its last content until dismissal.
        """
        ...

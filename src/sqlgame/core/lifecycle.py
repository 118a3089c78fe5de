"""Lifecycle status tracking for asynchronously initialized instances.

Every instance that loads resources in the background (the game engine, the
database browser) starts out "pending" and settles exactly once into "active"
or "failed". The transitions are reflexive and monotone:

    pending --ok-->    active        active --ok-->    active
    pending --fail-->  failed        failed --fail-->  failed
    *       --reset--> pending

active --fail--> and failed --ok--> are illegal. Resetting is the only way
back from a settled status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from sqlgame.utils.validators import PreconditionError

logger = structlog.get_logger(__name__)

E = TypeVar("E")


class IllegalTransitionError(PreconditionError):
    """Raised when an event is not allowed in the current status."""


@dataclass(frozen=True)
class Pending:
    """Resources have been requested but are not settled yet."""

    kind: str = "pending"


@dataclass(frozen=True)
class Active:
    """Resources have been loaded successfully."""

    kind: str = "active"


@dataclass(frozen=True)
class Failed(Generic[E]):
    """Resources failed to load; the error is kept for the instance's lifetime."""

    error: E
    kind: str = "failed"


Status = Pending | Active | Failed


class Lifecycle(Generic[E]):
    """Finite-state tracker of a pending/active/failed lifecycle.

    Args:
        owner: Name used in log events (e.g. the instance id)
    """

    def __init__(self, owner: str = ""):
        self.owner = owner
        self._status: Status = Pending()

    @property
    def status(self) -> Status:
        return self._status

    @property
    def is_pending(self) -> bool:
        return isinstance(self._status, Pending)

    @property
    def is_active(self) -> bool:
        return isinstance(self._status, Active)

    @property
    def is_failed(self) -> bool:
        return isinstance(self._status, Failed)

    def reset(self) -> None:
        """Move back to pending; the only sanctioned backward transition."""
        if not self.is_pending:
            logger.debug("lifecycle_reset", owner=self.owner, previous=self._status.kind)
        self._status = Pending()

    def resolved_ok(self) -> None:
        """Record a successful resolution."""
        if self.is_failed:
            raise IllegalTransitionError(
                f"{self.owner or 'instance'} cannot become active after failing"
            )
        if self.is_pending:
            logger.info("lifecycle_active", owner=self.owner)
        self._status = Active()

    def resolved_fail(self, error: E) -> None:
        """Record a failed resolution, keeping the first error."""
        if self.is_active:
            raise IllegalTransitionError(
                f"{self.owner or 'instance'} cannot fail after becoming active"
            )
        if self.is_pending:
            logger.warning("lifecycle_failed", owner=self.owner, error=str(error))
            self._status = Failed(error)

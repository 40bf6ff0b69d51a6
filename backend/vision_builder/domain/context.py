"""Explicit per-call session context."""
from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class SessionContext:
    """Identifies whose session a core call operates on.

    Passed explicitly to every tracker, orchestrator and wizard call instead
    of being read from ambient state.
    """

    user_id: str
    session_id: UUID

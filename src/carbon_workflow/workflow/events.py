from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .state_machine import ProjectStatus


@dataclass(frozen=True, slots=True)
class TransitionEvent:
    """Emitted to the notification sink after a transition is applied.

    Sinks observe transitions; they never influence them.
    """

    project_id: str
    previous_state: ProjectStatus
    new_state: ProjectStatus
    actor_id: str
    timestamp: datetime
    comment: str | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "projectId": self.project_id,
            "previousState": self.previous_state.value,
            "newState": self.new_state.value,
            "actorId": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.comment is not None:
            out["comment"] = self.comment
        return out

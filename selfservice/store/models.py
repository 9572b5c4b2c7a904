import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from selfservice.core import state_machine as sm
from selfservice.core.errors import InvalidTokenError


@dataclass
class FlowState:
    # Flow definition this state belongs to
    flow: str = ""

    # Index of the current stage; never decreases
    cursor: int = 0

    # IN_PROGRESS / COMPLETED / FAILED
    status: str = sm.IN_PROGRESS

    # stage tag or reserved key -> JSON value, in insertion order
    slots: Dict[str, Any] = field(default_factory=dict)

    # Epoch seconds when the flow was started
    issued_at: Optional[int] = None

    def __post_init__(self):
        if self.issued_at is None:
            self.issued_at = int(time.time())

    @property
    def is_terminal(self) -> bool:
        return sm.is_terminal(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow": self.flow,
            "cursor": self.cursor,
            "status": self.status,
            "slots": self.slots,
            "issuedAt": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FlowState":
        """Rebuild a state from its JSON form; anything malformed is an invalid token."""
        if not isinstance(data, dict):
            raise InvalidTokenError("Token payload is not an object")
        flow = data.get("flow")
        cursor = data.get("cursor")
        status = data.get("status")
        slots = data.get("slots")
        if not isinstance(flow, str) or not flow:
            raise InvalidTokenError("Token payload has no flow")
        if not isinstance(cursor, int) or isinstance(cursor, bool) or cursor < 0:
            raise InvalidTokenError("Token payload has an invalid cursor")
        if status not in sm.ALL:
            raise InvalidTokenError("Token payload has an invalid status")
        if not isinstance(slots, dict):
            raise InvalidTokenError("Token payload has no state slots")
        issued_at = data.get("issuedAt")
        return cls(
            flow=flow,
            cursor=cursor,
            status=status,
            slots=slots,
            issued_at=int(issued_at) if isinstance(issued_at, (int, float)) else None,
        )

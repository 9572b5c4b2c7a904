from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from selfservice.core.context import ProcessContext

SUCCESS = "SUCCESS"
PENDING = "PENDING"


@dataclass(frozen=True)
class StageOutcome:
    """
    Result of Stage.advance.

    SUCCESS: the stage is satisfied; output (if any) is exposed to the caller.
    PENDING: the stage consumed input but needs more; requirements replace the
    ones originally gathered (e.g. "now enter the code we mailed you").
    """

    status: str
    requirements: Optional[Dict[str, Any]] = None
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, output: Optional[Dict[str, Any]] = None) -> "StageOutcome":
        return cls(status=SUCCESS, output=dict(output or {}))

    @classmethod
    def pending(cls, requirements: Dict[str, Any]) -> "StageOutcome":
        return cls(status=PENDING, requirements=requirements)

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS


@dataclass
class StageServices:
    """Collaborators a stage may need; each is optional."""

    resources: Any = None
    queue_factory: Optional[Callable[[], Any]] = None
    http_client_factory: Optional[Callable[[], Any]] = None


class Stage(Protocol):
    stage_type: str

    def gather_initial_requirements(self, context: ProcessContext, config: Any) -> Dict[str, Any]: ...

    def advance(self, context: ProcessContext, config: Any) -> StageOutcome: ...

import copy
from typing import Any, Dict, List, Mapping, Optional, Tuple

from selfservice.core.errors import ConfigurationError
from selfservice.core.state_fields import RESERVED_KEYS


class ProcessContext:
    """
    View of the flow handed to one stage invocation.

    Reads see the recorded flow state plus this invocation's own writes.
    Writes are buffered; the engine applies them only when the stage
    succeeds. A stage may write the reserved keys or its own tag.
    """

    def __init__(
        self,
        flow_name: str,
        stage_index: int,
        stage_tag: str,
        state: Mapping[str, Any],
        input_data: Optional[Dict[str, Any]] = None,
    ):
        self._flow_name = flow_name
        self._stage_index = stage_index
        self._stage_tag = stage_tag
        self._state = state
        self._input = input_data
        self._writes: Dict[str, Any] = {}
        self._write_log: List[Tuple[str, Any]] = []

    @property
    def flow_name(self) -> str:
        return self._flow_name

    @property
    def stage_index(self) -> int:
        return self._stage_index

    @property
    def stage_tag(self) -> str:
        return self._stage_tag

    def get_input(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._input)

    def get_state(self, key: str) -> Any:
        if key in self._writes:
            return copy.deepcopy(self._writes[key])
        return copy.deepcopy(self._state.get(key))

    def put_state(self, key: str, value: Any) -> None:
        if key not in RESERVED_KEYS and key != self._stage_tag:
            raise ConfigurationError(
                f"Stage '{self._stage_tag}' may not write state key '{key}'"
            )
        stored = copy.deepcopy(value)
        self._writes[key] = stored
        self._write_log.append((key, stored))

    @property
    def writes(self) -> Dict[str, Any]:
        """Last value written per key, in first-write order."""
        return copy.deepcopy(self._writes)

    @property
    def write_count(self) -> int:
        return len(self._write_log)

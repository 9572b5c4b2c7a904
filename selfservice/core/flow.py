"""
Flow definitions: ordered (stage type, config) bindings.

Flows are built programmatically with FlowDefinition/StageBinding, or from a
declarative table of plain dicts:

    {"registration": [
        {"stage": "userDetails", "config": {"required_fields": ["mail"]}},
        {"stage": "selfRegistration", "config": {"identity_service": "users"}},
    ]}
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from selfservice.core.errors import ConfigurationError, UnknownFlowError

_NAME_RE = re.compile(r"^\S+$")


def require_name(value: Any, what: str) -> str:
    """Shared check for identifiers: non-empty, no whitespace."""
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{what} is required")
    if not _NAME_RE.match(value):
        raise ConfigurationError(f"{what} contains whitespace")
    return value


@dataclass(frozen=True)
class StageBinding:
    stage_type: str
    config: Any
    # Name of the stage's own state slot; defaults to the stage type
    tag: str = ""

    def __post_init__(self):
        require_name(self.stage_type, "stage type")
        if self.config is None:
            raise ConfigurationError(f"Stage '{self.stage_type}' has no config")
        if not self.tag:
            object.__setattr__(self, "tag", self.stage_type)
        require_name(self.tag, "stage tag")


@dataclass(frozen=True)
class FlowDefinition:
    name: str
    stages: Tuple[StageBinding, ...] = field(default_factory=tuple)

    def __post_init__(self):
        require_name(self.name, "flow name")
        stages = tuple(self.stages)
        if not stages:
            raise ConfigurationError(f"Flow '{self.name}' defines no stages")
        tags = [b.tag for b in stages]
        dupes = sorted({t for t in tags if tags.count(t) > 1})
        if dupes:
            raise ConfigurationError(f"Flow '{self.name}' repeats stage tags: {', '.join(dupes)}")
        object.__setattr__(self, "stages", stages)

    def __len__(self) -> int:
        return len(self.stages)

    def binding_at(self, index: int) -> Optional[StageBinding]:
        if 0 <= index < len(self.stages):
            return self.stages[index]
        return None


def build_flow(name: str, entries: List[Mapping[str, Any]]) -> FlowDefinition:
    """Build a flow from declarative entries, validating every config."""
    # local import: the registry imports every stage module
    from selfservice.stages.registry import config_class_for

    if not isinstance(entries, list):
        raise ConfigurationError(f"Flow '{name}' must be a list of stages")
    bindings = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Flow '{name}' stage #{i} is not an object")
        stage_type = entry.get("stage")
        config_cls = config_class_for(stage_type)
        raw_config = entry.get("config") or {}
        if not isinstance(raw_config, Mapping):
            raise ConfigurationError(f"Flow '{name}' stage #{i} config is not an object")
        bindings.append(
            StageBinding(
                stage_type=stage_type,
                config=config_cls.from_dict(raw_config),
                tag=entry.get("tag") or "",
            )
        )
    return FlowDefinition(name=name, stages=tuple(bindings))


def build_flows(table: Mapping[str, List[Mapping[str, Any]]]) -> Dict[str, FlowDefinition]:
    return {name: build_flow(name, entries) for name, entries in table.items()}


def load_flows(path: str = "") -> Dict[str, FlowDefinition]:
    """Flows from a JSON file, or the built-in table when no path is given."""
    if not path:
        return build_flows(DEFAULT_FLOWS)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            table = json.load(fh)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to load flows from {path}: {e}") from e
    if not isinstance(table, dict):
        raise ConfigurationError(f"Flows file {path} must hold an object")
    return build_flows(table)


def get_flow(flows: Mapping[str, FlowDefinition], name: str) -> FlowDefinition:
    flow = flows.get(name)
    if flow is None:
        raise UnknownFlowError(f"Unknown self-service flow: {name}")
    return flow


DEFAULT_KBA_QUESTIONS = [
    {"id": "1", "question": {"en": "What's your favorite color?", "fr": "Quelle est votre couleur préférée?"}},
    {"id": "2", "question": {"en": "Who was your first employer?"}},
]

DEFAULT_FLOWS: Dict[str, List[Dict[str, Any]]] = {
    "registration": [
        {"stage": "emailValidation", "config": {"subject": "Confirm your email address"}},
        {"stage": "userDetails", "config": {
            "required_fields": ["userName", "givenName", "sn", "password"],
            "optional_fields": ["telephoneNumber"],
        }},
        {"stage": "kbaSecurityAnswerDefinitionStage", "config": {
            "questions": DEFAULT_KBA_QUESTIONS,
            "min_answers": 1,
        }},
        {"stage": "termsAndConditions", "config": {
            "terms": "Use of this service is subject to the published terms.",
            "version": "1.0",
        }},
        {"stage": "selfRegistration", "config": {"identity_service": "users", "unique_fields": ["userName", "mail"]}},
    ],
    "reset": [
        {"stage": "userQuery", "config": {"identity_service": "users", "query_fields": ["userName", "mail"]}},
        {"stage": "kbaSecurityAnswerVerificationStage", "config": {
            "identity_service": "users",
            "questions": DEFAULT_KBA_QUESTIONS,
            "questions_to_answer": 1,
        }},
        {"stage": "resetStage", "config": {"identity_service": "users", "min_password_length": 8}},
    ],
}

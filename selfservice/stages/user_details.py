from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.requirements import build_requirements, object_schema, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import EMAIL_FIELD, USER_FIELD
from selfservice.stages.common import from_mapping, input_object, name_tuple

STAGE_TYPE = "userDetails"
INPUT_FIELD = "user"


@dataclass(frozen=True)
class UserDetailsConfig:
    required_fields: Tuple[str, ...] = ()
    optional_fields: Tuple[str, ...] = ()
    # User attribute filled from a previously verified email address
    identity_email_field: str = "mail"

    def __post_init__(self):
        required = name_tuple(self.required_fields, "required field")
        optional = name_tuple(self.optional_fields, "optional field")
        if not required:
            raise ConfigurationError("User details need at least one required field")
        overlap = set(required) & set(optional)
        if overlap:
            raise ConfigurationError(f"Fields both required and optional: {', '.join(sorted(overlap))}")
        object.__setattr__(self, "required_fields", required)
        object.__setattr__(self, "optional_fields", optional)
        name_tuple([self.identity_email_field], "identity email field")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserDetailsConfig":
        return from_mapping(cls, data)


class UserDetailsStage:
    """Collects the attributes of the user being registered."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def _missing_required(self, context: ProcessContext, config: UserDetailsConfig) -> Tuple[str, ...]:
        # a field already known (e.g. the verified email) is not asked again
        user = context.get_state(USER_FIELD) or {}
        known = set(k for k, v in user.items() if v not in (None, "")) if isinstance(user, dict) else set()
        if context.get_state(EMAIL_FIELD):
            known.add(config.identity_email_field)
        return tuple(f for f in config.required_fields if f not in known)

    def gather_initial_requirements(self, context: ProcessContext, config: UserDetailsConfig) -> Dict[str, Any]:
        fields = config.required_fields + config.optional_fields
        properties = {name: string_property(name) for name in fields}
        user_schema = object_schema(
            properties,
            required=self._missing_required(context, config),
            description="New user details",
        )
        return build_requirements("New user details", {INPUT_FIELD: user_schema}, required=[INPUT_FIELD])

    def advance(self, context: ProcessContext, config: UserDetailsConfig) -> StageOutcome:
        submitted = input_object(context.get_input(), INPUT_FIELD)
        allowed = set(config.required_fields) | set(config.optional_fields)

        details: Dict[str, Any] = {}
        for name, value in submitted.items():
            if name not in allowed:
                continue
            if not isinstance(value, str):
                raise BadRequestError(f"'{name}' must be a string")
            if value.strip():
                details[name] = value

        missing = [f for f in self._missing_required(context, config) if f not in details]
        if missing:
            raise BadRequestError(f"Missing required fields: {', '.join(missing)}")

        user = context.get_state(USER_FIELD)
        if user is None:
            user = {}
        elif not isinstance(user, dict):
            raise ConfigurationError("User state is not an object")

        verified_mail = context.get_state(EMAIL_FIELD)
        if verified_mail:
            # the verified address wins over whatever was typed
            details[config.identity_email_field] = verified_mail

        user.update(details)
        context.put_state(USER_FIELD, user)
        return StageOutcome.success()

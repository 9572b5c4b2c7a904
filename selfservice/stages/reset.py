from dataclasses import dataclass
from typing import Any, Dict, Mapping

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError, NotFoundError, ValidationError
from selfservice.core.flow import require_name
from selfservice.core.requirements import build_requirements, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import USER_ID_FIELD
from selfservice.stages.common import from_mapping, input_string, positive_int, require_resources
from selfservice.store.resources import resource_id

STAGE_TYPE = "resetStage"
INPUT_FIELD = "password"


@dataclass(frozen=True)
class ResetStageConfig:
    identity_service: str = ""
    identity_password_field: str = "password"
    min_password_length: int = 8

    def __post_init__(self):
        require_name(self.identity_service, "identity service")
        require_name(self.identity_password_field, "identity password field")
        positive_int(self.min_password_length, "min_password_length")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResetStageConfig":
        return from_mapping(cls, data)


class ResetStage:
    """Sets a new password on the user located earlier in the flow."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: ResetStageConfig) -> Dict[str, Any]:
        return build_requirements(
            "Reset password",
            {INPUT_FIELD: string_property("Password", minLength=config.min_password_length)},
            required=[INPUT_FIELD],
        )

    def advance(self, context: ProcessContext, config: ResetStageConfig) -> StageOutcome:
        user_id = context.get_state(USER_ID_FIELD)
        if not user_id:
            raise ConfigurationError("userId should have been initialised by a previous stage")

        password = input_string(context.get_input(), INPUT_FIELD)
        if len(password) < config.min_password_length:
            raise BadRequestError(f"Password must be at least {config.min_password_length} characters")

        resources = require_resources(self.services, STAGE_TYPE)
        try:
            resources.patch(resource_id(config.identity_service, user_id), {config.identity_password_field: password})
        except NotFoundError:
            raise ValidationError("Unable to reset the password")
        return StageOutcome.success()

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.flow import require_name
from selfservice.core.requirements import empty_requirements
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import USER_FIELD, USER_ID_FIELD
from selfservice.stages.common import from_mapping, name_tuple, require_resources
from selfservice.stages.kba import DEFAULT_KBA_PROPERTY
from selfservice.store.resources import ID_FIELD

STAGE_TYPE = "selfRegistration"


@dataclass(frozen=True)
class SelfRegistrationConfig:
    identity_service: str = ""
    # Attributes no two users may share
    unique_fields: Tuple[str, ...] = ()
    # Attributes never echoed back to the caller
    hidden_fields: Tuple[str, ...] = ("password", DEFAULT_KBA_PROPERTY)

    def __post_init__(self):
        require_name(self.identity_service, "identity service")
        object.__setattr__(self, "unique_fields", name_tuple(self.unique_fields, "unique field"))
        object.__setattr__(self, "hidden_fields", name_tuple(self.hidden_fields, "hidden field"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SelfRegistrationConfig":
        return from_mapping(cls, data)


class SelfRegistrationStage:
    """Creates the user assembled by the earlier stages. Needs no input."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: SelfRegistrationConfig) -> Dict[str, Any]:
        return empty_requirements("Confirm registration")

    def advance(self, context: ProcessContext, config: SelfRegistrationConfig) -> StageOutcome:
        user = context.get_state(USER_FIELD)
        if not isinstance(user, dict) or not user:
            raise ConfigurationError("User object should have been assembled by a previous stage")

        resources = require_resources(self.services, STAGE_TYPE)
        for name in config.unique_fields:
            value = user.get(name)
            if value in (None, ""):
                continue
            if resources.query(config.identity_service, name, value):
                raise BadRequestError("A user with these details already exists")

        created = resources.create(config.identity_service, user)
        context.put_state(USER_ID_FIELD, created[ID_FIELD])
        visible = {k: v for k, v in created.items() if k not in config.hidden_fields}
        return StageOutcome.success({"user": visible})

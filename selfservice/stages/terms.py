import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.requirements import boolean_property, build_requirements
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import USER_FIELD
from selfservice.stages.common import from_mapping, non_blank

STAGE_TYPE = "termsAndConditions"
INPUT_FIELD = "accept"


@dataclass(frozen=True)
class TermsAndConditionsConfig:
    terms: str = ""
    version: str = ""
    # User attribute the acceptance record is stored under
    acceptance_field: str = "termsAccepted"

    def __post_init__(self):
        non_blank(self.terms, "terms")
        non_blank(self.version, "version")
        non_blank(self.acceptance_field, "acceptance_field")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TermsAndConditionsConfig":
        return from_mapping(cls, data)


class TermsAndConditionsStage:
    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: TermsAndConditionsConfig) -> Dict[str, Any]:
        return build_requirements(
            "Terms and conditions",
            {
                "terms": {"description": "Terms text", "type": "string", "default": config.terms},
                "version": {"description": "Terms version", "type": "string", "default": config.version},
                INPUT_FIELD: boolean_property("Accept the terms"),
            },
            required=[INPUT_FIELD],
        )

    def advance(self, context: ProcessContext, config: TermsAndConditionsConfig) -> StageOutcome:
        data = context.get_input()
        if not isinstance(data, Mapping) or data.get(INPUT_FIELD) is not True:
            raise BadRequestError("The terms must be accepted")

        user = context.get_state(USER_FIELD)
        if user is None:
            user = {}
        elif not isinstance(user, dict):
            raise ConfigurationError("User state is not an object")
        user[config.acceptance_field] = {"termsVersion": config.version, "acceptDate": int(time.time())}
        context.put_state(USER_FIELD, user)
        return StageOutcome.success()

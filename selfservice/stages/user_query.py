from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError, ValidationError
from selfservice.core.flow import require_name
from selfservice.core.requirements import build_requirements, object_schema, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import EMAIL_FIELD, USER_ID_FIELD
from selfservice.stages.common import from_mapping, input_object, name_tuple, require_resources
from selfservice.store.resources import ID_FIELD

STAGE_TYPE = "userQuery"
INPUT_FIELD = "queryFilter"


@dataclass(frozen=True)
class UserQueryConfig:
    identity_service: str = ""
    # Fields a caller may identify themselves by
    query_fields: Tuple[str, ...] = ()
    identity_email_field: str = "mail"

    def __post_init__(self):
        require_name(self.identity_service, "identity service")
        fields = name_tuple(self.query_fields, "query field")
        if not fields:
            raise ConfigurationError("queryFields required for user query")
        object.__setattr__(self, "query_fields", fields)
        require_name(self.identity_email_field, "identity email field")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserQueryConfig":
        return from_mapping(cls, data)


class UserQueryStage:
    """Locates exactly one existing user from identifying attributes."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: UserQueryConfig) -> Dict[str, Any]:
        properties = {name: string_property(f"Identify your account by {name}") for name in config.query_fields}
        query = object_schema(properties, description="Identifying attributes, any one is enough")
        return build_requirements("Find your account", {INPUT_FIELD: query}, required=[INPUT_FIELD])

    def advance(self, context: ProcessContext, config: UserQueryConfig) -> StageOutcome:
        given = input_object(context.get_input(), INPUT_FIELD)
        terms = {
            name: value for name, value in given.items()
            if name in config.query_fields and isinstance(value, str) and value.strip()
        }
        if not terms:
            raise BadRequestError(f"Provide one of: {', '.join(config.query_fields)}")

        resources = require_resources(self.services, STAGE_TYPE)
        found: Dict[str, Dict[str, Any]] = {}
        for name, value in terms.items():
            for record in resources.query(config.identity_service, name, value):
                if isinstance(record, dict) and record.get(ID_FIELD):
                    found[record[ID_FIELD]] = record

        # zero and several matches look the same to the caller
        if len(found) != 1:
            raise ValidationError("Unable to identify the account")

        record = next(iter(found.values()))
        context.put_state(USER_ID_FIELD, record[ID_FIELD])
        mail = record.get(config.identity_email_field)
        if isinstance(mail, str) and mail:
            context.put_state(EMAIL_FIELD, mail)
        return StageOutcome.success()

import hmac
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from selfservice.core.context import ProcessContext
from selfservice.core.errors import ConfigurationError, NotFoundError, ValidationError
from selfservice.core.flow import require_name
from selfservice.core.requirements import build_requirements, object_schema, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import USER_ID_FIELD
from selfservice.stages.common import from_mapping, input_object, positive_int, require_resources
from selfservice.stages.kba import (
    ANSWER,
    CUSTOM_QUESTION,
    DEFAULT_KBA_PROPERTY,
    QUESTION_ID,
    KbaQuestion,
    question_tuple,
)
from selfservice.store.resources import resource_id

STAGE_TYPE = "kbaSecurityAnswerVerificationStage"
INPUT_FIELD = "answers"

# Same message for every failure: never say which answer was wrong
FAILED_MESSAGE = "Answers are not valid"


@dataclass(frozen=True)
class SecurityAnswerVerificationConfig:
    identity_service: str = ""
    questions: Tuple[KbaQuestion, ...] = ()
    kba_property_name: str = DEFAULT_KBA_PROPERTY
    questions_to_answer: int = 1
    locale: str = "en"

    def __post_init__(self):
        require_name(self.identity_service, "identity service")
        object.__setattr__(self, "questions", question_tuple(self.questions))
        require_name(self.kba_property_name, "KBA property name")
        positive_int(self.questions_to_answer, "questions_to_answer")
        require_name(self.locale, "locale")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SecurityAnswerVerificationConfig":
        return from_mapping(cls, data)


def _normalize_answer(value: str) -> bytes:
    return " ".join(value.split()).casefold().encode("utf-8")


class SecurityAnswerVerificationStage:
    """Asks the located user a subset of their stored security questions."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def _stored_answers(self, context: ProcessContext, config: SecurityAnswerVerificationConfig) -> List[Dict[str, Any]]:
        user_id = context.get_state(USER_ID_FIELD)
        if not user_id:
            raise ConfigurationError("userId should have been initialised by a previous stage")
        resources = require_resources(self.services, STAGE_TYPE)
        try:
            record = resources.read(resource_id(config.identity_service, user_id))
        except NotFoundError:
            return []
        stored = record.get(config.kba_property_name) if isinstance(record, dict) else None
        if not isinstance(stored, list):
            return []
        usable = [
            a for a in stored
            if isinstance(a, dict) and isinstance(a.get(ANSWER), str)
            and (isinstance(a.get(QUESTION_ID), str) or isinstance(a.get(CUSTOM_QUESTION), str))
        ]
        return usable[: config.questions_to_answer]

    def _question_text(self, entry: Dict[str, Any], config: SecurityAnswerVerificationConfig) -> str:
        if CUSTOM_QUESTION in entry:
            return entry[CUSTOM_QUESTION]
        for q in config.questions:
            if q.id == entry[QUESTION_ID]:
                return q.text_for(config.locale)
        return "Security question"

    def gather_initial_requirements(self, context: ProcessContext, config: SecurityAnswerVerificationConfig) -> Dict[str, Any]:
        asked = self._stored_answers(context, config)
        properties = {
            str(i): string_property(self._question_text(entry, config))
            for i, entry in enumerate(asked)
        }
        answers = object_schema(properties, required=list(properties), description="Answers to security questions")
        return build_requirements("Answer security questions", {INPUT_FIELD: answers}, required=[INPUT_FIELD])

    def advance(self, context: ProcessContext, config: SecurityAnswerVerificationConfig) -> StageOutcome:
        given = input_object(context.get_input(), INPUT_FIELD)
        asked = self._stored_answers(context, config)
        if not asked:
            raise ValidationError(FAILED_MESSAGE)

        ok = True
        for i, entry in enumerate(asked):
            provided = given.get(str(i))
            if not isinstance(provided, str):
                ok = False
                continue
            # compare every answer, so timing does not reveal the first mismatch
            if not hmac.compare_digest(_normalize_answer(provided), _normalize_answer(entry[ANSWER])):
                ok = False
        if not ok:
            raise ValidationError(FAILED_MESSAGE)

        context.put_state(context.stage_tag, {"verified": True})
        return StageOutcome.success()

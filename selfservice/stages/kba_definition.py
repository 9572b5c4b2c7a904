from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.flow import require_name
from selfservice.core.requirements import build_requirements, object_schema, ref, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import USER_FIELD
from selfservice.stages.common import from_mapping, positive_int
from selfservice.stages.kba import (
    ANSWER,
    CUSTOM_QUESTION,
    DEFAULT_KBA_PROPERTY,
    QUESTION_ID,
    KbaQuestion,
    answer_key,
    merge_answers,
    question_tuple,
)

STAGE_TYPE = "kbaSecurityAnswerDefinitionStage"

# Key the caller submits answers under, whatever the stored property name is
INPUT_FIELD = "kba"


@dataclass(frozen=True)
class SecurityAnswerDefinitionConfig:
    questions: Tuple[KbaQuestion, ...] = ()
    # Attribute of the user object the answers are stored in
    kba_property_name: str = DEFAULT_KBA_PROPERTY
    min_answers: int = 1
    allow_custom_questions: bool = True

    def __post_init__(self):
        object.__setattr__(self, "questions", question_tuple(self.questions))
        require_name(self.kba_property_name, "KBA property name")
        positive_int(self.min_answers, "min_answers")
        if not self.allow_custom_questions and self.min_answers > len(self.questions):
            raise ConfigurationError("min_answers exceeds the number of defined questions")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SecurityAnswerDefinitionConfig":
        return from_mapping(cls, data)

    @property
    def question_ids(self) -> Tuple[str, ...]:
        return tuple(q.id for q in self.questions)


class SecurityAnswerDefinitionStage:
    """Lets the user pick predefined questions (or write their own) and answer them."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: SecurityAnswerDefinitionConfig) -> Dict[str, Any]:
        if not config.questions:
            raise ConfigurationError("KBA questions are not defined")

        definitions = {
            "systemQuestion": object_schema(
                {
                    QUESTION_ID: string_property("Id of predefined question"),
                    ANSWER: string_property("Answer to the referenced question"),
                },
                required=[QUESTION_ID, ANSWER],
                description="System Question",
                additional_properties=False,
            ),
        }
        one_of = [ref("systemQuestion")]
        if config.allow_custom_questions:
            definitions["userQuestion"] = object_schema(
                {
                    CUSTOM_QUESTION: string_property("Question defined by the user"),
                    ANSWER: string_property("Answer to the question"),
                },
                required=[CUSTOM_QUESTION, ANSWER],
                description="User Question",
                additional_properties=False,
            )
            one_of.append(ref("userQuestion"))

        kba = {
            "description": "Knowledge based questions",
            "type": "array",
            "minItems": config.min_answers,
            "items": {"oneOf": one_of},
            "questions": [q.to_dict() for q in config.questions],
        }
        return build_requirements(
            "Knowledge based questions",
            {INPUT_FIELD: kba},
            required=[INPUT_FIELD],
            definitions=definitions,
        )

    def advance(self, context: ProcessContext, config: SecurityAnswerDefinitionConfig) -> StageOutcome:
        answers = self._normalize(context.get_input(), config)

        user = context.get_state(USER_FIELD)
        if user is None:
            context.put_state(USER_FIELD, {})
            user = {}
        elif not isinstance(user, dict):
            raise ConfigurationError("User state is not an object")

        user[config.kba_property_name] = merge_answers(user.get(config.kba_property_name), answers)
        context.put_state(USER_FIELD, user)
        return StageOutcome.success()

    def _normalize(self, data: Any, config: SecurityAnswerDefinitionConfig) -> List[Dict[str, Any]]:
        if not isinstance(data, Mapping) or not isinstance(data.get(INPUT_FIELD), list):
            raise BadRequestError("KBA answers are required")

        known_ids = set(config.question_ids)
        normalized: List[Dict[str, Any]] = []
        for entry in data[INPUT_FIELD]:
            if not isinstance(entry, Mapping):
                raise BadRequestError("Each KBA answer must be an object")
            extra = set(entry) - {QUESTION_ID, CUSTOM_QUESTION, ANSWER}
            if extra:
                raise BadRequestError(f"Unexpected KBA answer fields: {', '.join(sorted(extra))}")
            answer = entry.get(ANSWER)
            if not isinstance(answer, str) or not answer.strip():
                raise BadRequestError("Each KBA question needs an answer")

            has_id = QUESTION_ID in entry
            has_custom = CUSTOM_QUESTION in entry
            if has_id == has_custom:
                raise BadRequestError("Each KBA answer needs either a questionId or a customQuestion")
            if has_id:
                qid = entry[QUESTION_ID]
                if not isinstance(qid, str) or qid not in known_ids:
                    raise BadRequestError("Unknown KBA question")
                normalized.append({QUESTION_ID: qid, ANSWER: answer})
            else:
                if not config.allow_custom_questions:
                    raise BadRequestError("Custom KBA questions are not allowed")
                custom = entry[CUSTOM_QUESTION]
                if not isinstance(custom, str) or not custom.strip():
                    raise BadRequestError("Custom KBA question is empty")
                normalized.append({CUSTOM_QUESTION: custom, ANSWER: answer})

        distinct = {answer_key(a) for a in normalized}
        if len(distinct) < config.min_answers:
            raise BadRequestError(f"At least {config.min_answers} KBA answer(s) required")
        return normalized

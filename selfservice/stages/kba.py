"""Knowledge-based authentication questions and answer merging."""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from selfservice.core.errors import ConfigurationError

QUESTION_ID = "questionId"
CUSTOM_QUESTION = "customQuestion"
ANSWER = "answer"

DEFAULT_KBA_PROPERTY = "kba"


@dataclass(frozen=True)
class KbaQuestion:
    id: str
    # locale -> question text
    question: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise ConfigurationError("KBA question id is required")
        if not isinstance(self.question, Mapping) or not self.question:
            raise ConfigurationError(f"KBA question {self.id} has no text")
        for locale, text in self.question.items():
            if not isinstance(locale, str) or not locale or not isinstance(text, str) or not text.strip():
                raise ConfigurationError(f"KBA question {self.id} has an invalid locale entry")
        object.__setattr__(self, "question", dict(self.question))

    @classmethod
    def from_dict(cls, data: Any) -> "KbaQuestion":
        if isinstance(data, KbaQuestion):
            return data
        if not isinstance(data, Mapping):
            raise ConfigurationError("KBA question must be an object")
        return cls(id=data.get("id"), question=data.get("question") or {})

    def text_for(self, locale: str) -> str:
        if locale in self.question:
            return self.question[locale]
        # "en_GB" falls back to "en", then to whatever comes first
        base = locale.split("_")[0]
        if base in self.question:
            return self.question[base]
        return next(iter(self.question.values()))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "question": dict(self.question)}


def question_tuple(values: Optional[Iterable[Any]]) -> Tuple[KbaQuestion, ...]:
    questions = tuple(KbaQuestion.from_dict(q) for q in (values or ()))
    if not questions:
        raise ConfigurationError("KBA questions are not defined")
    ids = [q.id for q in questions]
    if len(set(ids)) != len(ids):
        raise ConfigurationError("KBA question ids must be unique")
    return questions


def answer_key(entry: Mapping[str, Any]) -> Optional[Tuple[str, str]]:
    """Identity of an answer: which question it answers."""
    if not isinstance(entry, Mapping):
        return None
    if isinstance(entry.get(QUESTION_ID), str):
        return (QUESTION_ID, entry[QUESTION_ID])
    if isinstance(entry.get(CUSTOM_QUESTION), str):
        return (CUSTOM_QUESTION, entry[CUSTOM_QUESTION].strip())
    return None


def merge_answers(existing: Any, incoming: List[Dict[str, Any]]) -> List[Any]:
    """
    Merge answers keyed by question. A question answered again keeps its
    position and takes the new answer; new questions are appended.
    """
    merged: List[Any] = list(existing) if isinstance(existing, list) else []
    positions = {}
    for i, entry in enumerate(merged):
        key = answer_key(entry)
        if key is not None and key not in positions:
            positions[key] = i
    for entry in incoming:
        key = answer_key(entry)
        if key in positions:
            merged[positions[key]] = dict(entry)
        else:
            positions[key] = len(merged)
            merged.append(dict(entry))
    return merged

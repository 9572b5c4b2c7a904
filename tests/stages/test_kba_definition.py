import pytest
from unittest.mock import MagicMock

from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.stage import SUCCESS
from selfservice.core.state_fields import USER_FIELD
from selfservice.stages.kba import KbaQuestion, merge_answers
from selfservice.stages.kba_definition import (
    SecurityAnswerDefinitionConfig,
    SecurityAnswerDefinitionStage,
)

KBA_QUESTION_3 = "What is my favorite author?"


@pytest.fixture
def config():
    return SecurityAnswerDefinitionConfig(
        questions=[
            KbaQuestion(
                id="1",
                question={
                    "en": "What's your favorite color?",
                    "en_GB": "What's your favorite colour?",
                    "fr": "Quelle est votre couleur préférée?",
                },
            ),
            KbaQuestion(id="2", question={"en": "Who was your first employer?"}),
        ]
    )


@pytest.fixture
def stage():
    return SecurityAnswerDefinitionStage()


def kba_input():
    return {
        "kba": [
            {"customQuestion": KBA_QUESTION_3, "answer": "a1"},
            {"questionId": "1", "answer": "a2"},
        ]
    }


def mock_context(user=None, input_data=None):
    context = MagicMock()
    context.get_input.return_value = input_data if input_data is not None else kba_input()
    context.get_state.return_value = user
    return context


def test_config_without_questions_is_rejected():
    with pytest.raises(ConfigurationError, match="KBA questions are not defined"):
        SecurityAnswerDefinitionConfig()


def test_config_rejects_bad_property_name_and_min_answers():
    questions = [{"id": "1", "question": {"en": "Q?"}}]
    with pytest.raises(ConfigurationError, match="whitespace"):
        SecurityAnswerDefinitionConfig(questions=questions, kba_property_name="kba info")
    with pytest.raises(ConfigurationError):
        SecurityAnswerDefinitionConfig(questions=questions, min_answers=0)
    with pytest.raises(ConfigurationError, match="unique"):
        SecurityAnswerDefinitionConfig(questions=questions * 2)


def test_config_from_dict_builds_questions():
    cfg = SecurityAnswerDefinitionConfig.from_dict(
        {"questions": [{"id": "7", "question": {"en": "Q?"}}], "kba_property_name": "kba1"}
    )
    assert cfg.question_ids == ("7",)
    assert cfg.kba_property_name == "kba1"

    with pytest.raises(ConfigurationError, match="unknown settings"):
        SecurityAnswerDefinitionConfig.from_dict({"questions": [{"id": "7", "question": {"en": "Q?"}}], "bogus": 1})


def test_gather_initial_requirements(stage, config):
    req = stage.gather_initial_requirements(mock_context(), config)

    assert req["description"] == "Knowledge based questions"
    kba = req["properties"]["kba"]
    assert kba["questions"][0]["id"] == "1"
    assert kba["questions"][0]["question"]["en"] == "What's your favorite color?"
    assert kba["questions"][0]["question"]["fr"] == "Quelle est votre couleur préférée?"
    assert kba["questions"][1]["id"] == "2"
    assert kba["questions"][1]["question"]["en"] == "Who was your first employer?"
    assert kba["type"] == "array"
    assert kba["items"]["oneOf"][0]["$ref"] == "#/definitions/systemQuestion"
    assert kba["items"]["oneOf"][1]["$ref"] == "#/definitions/userQuestion"

    system = req["definitions"]["systemQuestion"]
    assert system["properties"]["questionId"]["description"] == "Id of predefined question"
    assert system["additionalProperties"] is False


def test_gather_initial_requirements_does_not_touch_state(stage, config):
    context = mock_context()
    stage.gather_initial_requirements(context, config)
    assert not context.put_state.called


def test_gather_surfaces_unusable_config(stage, config):
    # only reachable by bypassing construction-time validation
    object.__setattr__(config, "questions", ())
    with pytest.raises(ConfigurationError, match="KBA questions are not defined"):
        stage.gather_initial_requirements(mock_context(), config)


def test_advance_without_user_in_state(stage, config):
    context = mock_context(user=None)

    outcome = stage.advance(context, config)

    assert outcome.status == SUCCESS
    # 1. the empty user object, 2. the merged user object
    assert context.put_state.call_count == 2
    for call in context.put_state.call_args_list:
        assert call.args[0] == USER_FIELD
    assert context.put_state.call_args_list[0].args[1] == {}

    user = context.put_state.call_args.args[1]
    assert user["kba"][0] == {"customQuestion": KBA_QUESTION_3, "answer": "a1"}
    assert user["kba"][1] == {"questionId": "1", "answer": "a2"}


def test_advance_with_user_in_state(stage, config):
    context = mock_context(
        user={"givenName": "testUser", "sn": "testUserSecondName", "password": "passwordTobeEncrypted"}
    )

    stage.advance(context, config)

    assert context.put_state.call_count == 1
    key, user = context.put_state.call_args.args
    assert key == USER_FIELD
    assert user["givenName"] == "testUser"
    assert user["sn"] == "testUserSecondName"
    assert user["password"] == "passwordTobeEncrypted"
    assert user["kba"][0] == {"customQuestion": KBA_QUESTION_3, "answer": "a1"}
    assert user["kba"][1] == {"questionId": "1", "answer": "a2"}


def test_advance_uses_configured_property_name(stage):
    cfg = SecurityAnswerDefinitionConfig(
        questions=[{"id": "1", "question": {"en": "Q?"}}], kba_property_name="kba1"
    )
    context = mock_context(user={})
    stage.advance(context, cfg)
    user = context.put_state.call_args.args[1]
    assert len(user["kba1"]) == 2
    assert "kba" not in user


def test_advance_twice_does_not_duplicate_answers(stage, config):
    first = mock_context(user=None)
    stage.advance(first, config)
    user_after_first = first.put_state.call_args.args[1]

    second = mock_context(user=user_after_first)
    stage.advance(second, config)
    user_after_second = second.put_state.call_args.args[1]

    assert user_after_second["kba"] == user_after_first["kba"]
    assert len(user_after_second["kba"]) == 2


def test_advance_replaces_answer_for_same_question(stage, config):
    existing = {"kba": [{"questionId": "1", "answer": "old"}, {"questionId": "2", "answer": "keep"}]}
    context = mock_context(user=existing, input_data={"kba": [{"questionId": "1", "answer": "new"}]})

    stage.advance(context, config)

    user = context.put_state.call_args.args[1]
    assert user["kba"] == [{"questionId": "1", "answer": "new"}, {"questionId": "2", "answer": "keep"}]


@pytest.mark.parametrize(
    "bad_input",
    [
        None,
        {},
        {"kba": "not a list"},
        {"kba": [{"questionId": "1"}]},
        {"kba": [{"questionId": "1", "answer": "  "}]},
        {"kba": [{"questionId": "9", "answer": "x"}]},
        {"kba": [{"questionId": "1", "customQuestion": "Q?", "answer": "x"}]},
        {"kba": [{"answer": "x"}]},
        {"kba": [{"questionId": "1", "answer": "x", "extra": True}]},
        {"kba": []},
    ],
)
def test_advance_rejects_bad_input_without_writing(stage, config, bad_input):
    context = mock_context(user=None, input_data=bad_input)
    if bad_input is None:
        context.get_input.return_value = None
    with pytest.raises(BadRequestError):
        stage.advance(context, config)
    assert not context.put_state.called


def test_advance_counts_distinct_questions_for_minimum(stage):
    cfg = SecurityAnswerDefinitionConfig(
        questions=[{"id": "1", "question": {"en": "Q1?"}}, {"id": "2", "question": {"en": "Q2?"}}],
        min_answers=2,
    )
    same_question_twice = {"kba": [{"questionId": "1", "answer": "a"}, {"questionId": "1", "answer": "b"}]}
    with pytest.raises(BadRequestError, match="At least 2"):
        stage.advance(mock_context(input_data=same_question_twice), cfg)


def test_custom_questions_can_be_disabled():
    cfg = SecurityAnswerDefinitionConfig(
        questions=[{"id": "1", "question": {"en": "Q1?"}}], allow_custom_questions=False
    )
    stage = SecurityAnswerDefinitionStage()
    req = stage.gather_initial_requirements(mock_context(), cfg)
    assert "userQuestion" not in req["definitions"]
    with pytest.raises(BadRequestError, match="not allowed"):
        stage.advance(mock_context(input_data={"kba": [{"customQuestion": "Q?", "answer": "a"}]}), cfg)


def test_merge_answers_keeps_unrecognised_entries():
    merged = merge_answers(["legacy"], [{"questionId": "1", "answer": "a"}])
    assert merged == ["legacy", {"questionId": "1", "answer": "a"}]
    assert merge_answers(None, []) == []


def test_question_text_fallbacks():
    q = KbaQuestion(id="1", question={"en": "Colour?", "fr": "Couleur?"})
    assert q.text_for("fr") == "Couleur?"
    assert q.text_for("en_GB") == "Colour?"
    assert q.text_for("de") == "Colour?"

import pytest
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError, ResourceError, ValidationError
from selfservice.core.stage import PENDING, StageServices
from selfservice.queue.jobs import send_verification_email_job
from selfservice.stages.email_validation import (
    STAGE_TYPE,
    EmailValidationConfig,
    EmailValidationStage,
    code_digest,
)


@pytest.fixture
def config():
    return EmailValidationConfig(subject="Confirm", body_template="Code: {code}")


@pytest.fixture
def queue():
    return MagicMock()


@pytest.fixture
def stage(queue):
    return EmailValidationStage(StageServices(queue_factory=lambda: queue))


def make_context(input_data=None, state=None):
    return ProcessContext("registration", 0, STAGE_TYPE, state or {}, input_data)


@patch("selfservice.stages.email_validation.secrets.token_urlsafe", return_value="Zq7-fixed-code")
def test_first_phase_enqueues_code_and_stays_pending(mock_token, stage, config, queue):
    context = make_context({"mail": "a@b.io"})

    outcome = stage.advance(context, config)

    assert outcome.status == PENDING
    assert outcome.requirements["required"] == ["code"]
    args = queue.enqueue.call_args.args
    assert args == (send_verification_email_job, "a@b.io", "Confirm", "Code: Zq7-fixed-code")
    assert queue.enqueue.call_args.kwargs["retry"].max == 3

    slot = context.get_state(STAGE_TYPE)
    assert slot["mail"] == "a@b.io"
    assert slot["codeDigest"] == code_digest("registration", "a@b.io", "Zq7-fixed-code")
    assert "Zq7-fixed-code" not in str(slot)
    mock_token.assert_called_once_with(16)
    assert context.get_state("mail") is None


def test_second_phase_accepts_matching_code(stage, config):
    slot = {"mail": "a@b.io", "codeDigest": code_digest("registration", "a@b.io", "123456"), "sentAt": 1}
    context = make_context({"code": " 123456 "}, state={STAGE_TYPE: slot})

    outcome = stage.advance(context, config)

    assert outcome.is_success
    assert context.writes == {"mail": "a@b.io", STAGE_TYPE: {"mail": "a@b.io", "verified": True}}


def test_wrong_code_rejected(stage, config):
    slot = {"mail": "a@b.io", "codeDigest": code_digest("registration", "a@b.io", "123456"), "sentAt": 1}
    context = make_context({"code": "654321"}, state={STAGE_TYPE: slot})
    with pytest.raises(ValidationError):
        stage.advance(context, config)
    assert context.write_count == 0


def test_code_from_another_flow_rejected(stage, config):
    slot = {"mail": "a@b.io", "codeDigest": code_digest("reset", "a@b.io", "123456"), "sentAt": 1}
    with pytest.raises(ValidationError):
        stage.advance(make_context({"code": "123456"}, state={STAGE_TYPE: slot}), config)


def test_known_mail_is_used_without_input(stage, config, queue):
    context = make_context({}, state={"mail": "known@b.io"})
    assert stage.advance(context, config).status == PENDING
    assert queue.enqueue.call_args.args[1] == "known@b.io"


def test_invalid_mail_rejected(stage, config, queue):
    with pytest.raises(BadRequestError):
        stage.advance(make_context({"mail": "not-an-address"}), config)
    assert not queue.enqueue.called


def test_queue_outage_is_resource_error(config):
    queue = MagicMock()
    queue.enqueue.side_effect = RedisConnectionError("down")
    stage = EmailValidationStage(StageServices(queue_factory=lambda: queue))
    context = make_context({"mail": "a@b.io"})
    with pytest.raises(ResourceError):
        stage.advance(context, config)
    assert context.write_count == 0


def test_requirements_follow_phase(stage, config):
    assert stage.gather_initial_requirements(make_context(), config)["required"] == ["mail"]
    assert stage.gather_initial_requirements(make_context(state={"mail": "a@b.io"}), config)["required"] == []
    sent = {STAGE_TYPE: {"mail": "a@b.io", "codeDigest": "x"}}
    assert stage.gather_initial_requirements(make_context(state=sent), config)["required"] == ["code"]


def test_config_validation():
    with pytest.raises(ConfigurationError, match="subject"):
        EmailValidationConfig()
    with pytest.raises(ConfigurationError, match="must contain"):
        EmailValidationConfig(subject="s", body_template="no placeholder")
    with pytest.raises(ConfigurationError):
        EmailValidationConfig(subject="s", code_bytes=4)


def test_code_resists_guessing_through_replayed_token(stage, config, queue):
    context = make_context({"mail": "a@b.io"})
    stage.advance(context, config)
    body = queue.enqueue.call_args.args[3]
    code = body[len("Code: "):]
    assert len(code) >= 22
    slot = context.get_state(STAGE_TYPE)

    for guess in ("0000", "123456", "999999999999"):
        with pytest.raises(ValidationError):
            stage.advance(make_context({"code": guess}, state={STAGE_TYPE: slot}), config)

    assert stage.advance(make_context({"code": code}, state={STAGE_TYPE: slot}), config).is_success


def test_code_digest_requires_secret():
    with patch("selfservice.stages.email_validation.settings") as mock_settings:
        mock_settings.TOKEN_SECRET = ""
        with pytest.raises(ConfigurationError, match="secret"):
            code_digest("registration", "a@b.io", "x")

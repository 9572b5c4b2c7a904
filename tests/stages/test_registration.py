import pytest
from unittest.mock import MagicMock

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.stage import StageServices
from selfservice.stages.registration import STAGE_TYPE, SelfRegistrationConfig, SelfRegistrationStage


@pytest.fixture
def config():
    return SelfRegistrationConfig(identity_service="users", unique_fields=["userName"])


def make_context(state):
    return ProcessContext("registration", 4, STAGE_TYPE, state, {})


def test_creates_user_and_hides_password(config):
    resources = MagicMock()
    resources.query.return_value = []
    resources.create.side_effect = lambda collection, content: dict(content, _id="u9")
    stage = SelfRegistrationStage(StageServices(resources=resources))
    context = make_context({"user": {"userName": "alice", "password": "pw"}})

    outcome = stage.advance(context, config)

    assert outcome.is_success
    assert outcome.output == {"user": {"userName": "alice", "_id": "u9"}}
    assert context.writes == {"userId": "u9"}
    resources.create.assert_called_once_with("users", {"userName": "alice", "password": "pw"})


def test_duplicate_user_rejected(config):
    resources = MagicMock()
    resources.query.return_value = [{"_id": "u1"}]
    stage = SelfRegistrationStage(StageServices(resources=resources))
    with pytest.raises(BadRequestError, match="already exists"):
        stage.advance(make_context({"user": {"userName": "alice"}}), config)
    assert not resources.create.called


def test_no_user_assembled_is_configuration_error(config):
    with pytest.raises(ConfigurationError):
        SelfRegistrationStage(StageServices(resources=MagicMock())).advance(make_context({}), config)


def test_requirements_are_empty(config):
    req = SelfRegistrationStage().gather_initial_requirements(make_context({}), config)
    assert req["properties"] == {}
    assert req["required"] == []


def test_stored_security_answers_are_not_echoed(config):
    resources = MagicMock()
    resources.query.return_value = []
    resources.create.side_effect = lambda collection, content: dict(content, _id="u9")
    stage = SelfRegistrationStage(StageServices(resources=resources))
    kba = [{"questionId": "1", "answer": {"$crypto": {"value": "h"}}}]
    context = make_context({"user": {"userName": "alice", "password": "pw", "kba": kba}})

    outcome = stage.advance(context, config)

    assert outcome.output == {"user": {"userName": "alice", "_id": "u9"}}
    assert resources.create.call_args.args[1]["kba"] == kba
    assert SelfRegistrationConfig(identity_service="users").hidden_fields == ("password", "kba")

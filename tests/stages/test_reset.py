import pytest
from unittest.mock import MagicMock

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError, NotFoundError, ValidationError
from selfservice.core.stage import StageServices
from selfservice.stages.reset import STAGE_TYPE, ResetStage, ResetStageConfig


@pytest.fixture
def config():
    return ResetStageConfig(identity_service="users", min_password_length=8)


def make_context(input_data=None, state=None):
    return ProcessContext("reset", 2, STAGE_TYPE, {"userId": "u1"} if state is None else state, input_data)


def test_reset_patches_password(config):
    resources = MagicMock()
    stage = ResetStage(StageServices(resources=resources))

    assert stage.advance(make_context({"password": "s3cretpass"}), config).is_success

    resources.patch.assert_called_once_with("users/u1", {"password": "s3cretpass"})


def test_short_password_rejected(config):
    resources = MagicMock()
    stage = ResetStage(StageServices(resources=resources))
    with pytest.raises(BadRequestError, match="at least 8"):
        stage.advance(make_context({"password": "short"}), config)
    assert not resources.patch.called


def test_vanished_user_is_validation_error(config):
    resources = MagicMock()
    resources.patch.side_effect = NotFoundError("gone")
    stage = ResetStage(StageServices(resources=resources))
    with pytest.raises(ValidationError):
        stage.advance(make_context({"password": "s3cretpass"}), config)


def test_missing_user_id_is_configuration_error(config):
    with pytest.raises(ConfigurationError):
        ResetStage(StageServices(resources=MagicMock())).advance(make_context({"password": "s3cretpass"}, state={}), config)


def test_requirements_carry_min_length(config):
    req = ResetStage().gather_initial_requirements(make_context(), config)
    assert req["properties"]["password"]["minLength"] == 8
    assert req["required"] == ["password"]

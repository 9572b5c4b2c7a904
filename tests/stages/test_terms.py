import pytest
from unittest.mock import patch

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError
from selfservice.stages.terms import STAGE_TYPE, TermsAndConditionsConfig, TermsAndConditionsStage


@pytest.fixture
def config():
    return TermsAndConditionsConfig(terms="Be nice.", version="2.1")


def make_context(input_data=None, state=None):
    return ProcessContext("registration", 3, STAGE_TYPE, state or {}, input_data)


@patch("selfservice.stages.terms.time.time", return_value=1700000000.5)
def test_acceptance_recorded_on_user(mock_time, config):
    context = make_context({"accept": True}, state={"user": {"userName": "alice"}})

    assert TermsAndConditionsStage().advance(context, config).is_success

    assert context.get_state("user") == {
        "userName": "alice",
        "termsAccepted": {"termsVersion": "2.1", "acceptDate": 1700000000},
    }


@pytest.mark.parametrize("input_data", [{}, {"accept": False}, {"accept": "true"}])
def test_terms_must_be_accepted(config, input_data):
    context = make_context(input_data)
    with pytest.raises(BadRequestError):
        TermsAndConditionsStage().advance(context, config)
    assert context.write_count == 0


def test_requirements_show_terms(config):
    req = TermsAndConditionsStage().gather_initial_requirements(make_context(), config)
    assert req["properties"]["terms"]["default"] == "Be nice."
    assert req["required"] == ["accept"]

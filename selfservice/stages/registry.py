"""
Stage registration table: stage-type identifier -> (stage class, config class).

Flow definitions refer to stages only by these identifiers.
"""
from typing import Any, Dict, Optional, Tuple, Type

import httpx

from selfservice.core.errors import ConfigurationError
from selfservice.core.stage import Stage, StageServices
from selfservice.queue.rq_conn import get_queue
from selfservice.settings import settings
from selfservice.stages import (
    captcha,
    email_validation,
    kba_definition,
    kba_verification,
    registration,
    reset,
    terms,
    user_details,
    user_query,
)
from selfservice.store.resources import RedisResourceStore

STAGE_REGISTRY: Dict[str, Tuple[Type[Any], Type[Any]]] = {
    user_details.STAGE_TYPE: (user_details.UserDetailsStage, user_details.UserDetailsConfig),
    kba_definition.STAGE_TYPE: (
        kba_definition.SecurityAnswerDefinitionStage,
        kba_definition.SecurityAnswerDefinitionConfig,
    ),
    kba_verification.STAGE_TYPE: (
        kba_verification.SecurityAnswerVerificationStage,
        kba_verification.SecurityAnswerVerificationConfig,
    ),
    user_query.STAGE_TYPE: (user_query.UserQueryStage, user_query.UserQueryConfig),
    email_validation.STAGE_TYPE: (email_validation.EmailValidationStage, email_validation.EmailValidationConfig),
    captcha.STAGE_TYPE: (captcha.CaptchaStage, captcha.CaptchaConfig),
    terms.STAGE_TYPE: (terms.TermsAndConditionsStage, terms.TermsAndConditionsConfig),
    reset.STAGE_TYPE: (reset.ResetStage, reset.ResetStageConfig),
    registration.STAGE_TYPE: (registration.SelfRegistrationStage, registration.SelfRegistrationConfig),
}


def _entry(stage_type: Any) -> Tuple[Type[Any], Type[Any]]:
    entry = STAGE_REGISTRY.get(stage_type) if isinstance(stage_type, str) else None
    if entry is None:
        raise ConfigurationError(f"Unknown stage type: {stage_type}")
    return entry


def config_class_for(stage_type: Any) -> Type[Any]:
    return _entry(stage_type)[1]


def create_stage(stage_type: str, config: Any, services: Optional[StageServices] = None) -> Stage:
    stage_cls, config_cls = _entry(stage_type)
    if not isinstance(config, config_cls):
        raise ConfigurationError(f"Stage '{stage_type}' expects a {config_cls.__name__}")
    return stage_cls(services)


def default_services() -> StageServices:
    return StageServices(
        resources=RedisResourceStore(),
        queue_factory=get_queue,
        http_client_factory=lambda: httpx.Client(timeout=settings.HTTP_TIMEOUT_SEC),
    )

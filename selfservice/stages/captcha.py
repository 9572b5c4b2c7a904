from dataclasses import dataclass
from typing import Any, Dict, Mapping

import httpx

from selfservice.core.context import ProcessContext
from selfservice.core.errors import ConfigurationError, ResourceError, ValidationError
from selfservice.core.requirements import build_requirements, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.observability.logging import log
from selfservice.stages.common import from_mapping, input_string, non_blank

STAGE_TYPE = "captcha"
INPUT_FIELD = "response"


@dataclass(frozen=True)
class CaptchaConfig:
    site_key: str = ""
    secret_key: str = ""
    verification_url: str = "https://www.google.com/recaptcha/api/siteverify"

    def __post_init__(self):
        non_blank(self.site_key, "site_key")
        non_blank(self.secret_key, "secret_key")
        url = non_blank(self.verification_url, "verification_url")
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError("verification_url must be an http(s) URL")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CaptchaConfig":
        return from_mapping(cls, data)


class CaptchaStage:
    """Checks a reCAPTCHA response token against the verification service."""

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: CaptchaConfig) -> Dict[str, Any]:
        return build_requirements(
            "Captcha stage",
            {
                "recaptchaSiteKey": string_property("Captcha site key", default=config.site_key),
                INPUT_FIELD: string_property("Captcha response"),
            },
            required=[INPUT_FIELD],
        )

    def advance(self, context: ProcessContext, config: CaptchaConfig) -> StageOutcome:
        response = input_string(context.get_input(), INPUT_FIELD)
        if self.services is None or self.services.http_client_factory is None:
            raise ConfigurationError(f"Stage '{STAGE_TYPE}' needs an HTTP client")

        try:
            with self.services.http_client_factory() as client:
                resp = client.post(
                    config.verification_url,
                    data={"secret": config.secret_key, "response": response},
                )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log(event="captcha_verify_error", flow=context.flow_name, errorType=type(e).__name__, error=str(e)[:200])
            raise ResourceError("Unable to verify captcha") from e

        if not isinstance(body, dict) or body.get("success") is not True:
            raise ValidationError("Captcha verification failed")
        return StageOutcome.success()

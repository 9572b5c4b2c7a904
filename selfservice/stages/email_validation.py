import hashlib
import hmac
import re
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from redis.exceptions import RedisError
from rq import Retry

from selfservice.core.context import ProcessContext
from selfservice.core.errors import BadRequestError, ConfigurationError, ResourceError, ValidationError
from selfservice.core.requirements import build_requirements, empty_requirements, string_property
from selfservice.core.stage import StageOutcome, StageServices
from selfservice.core.state_fields import EMAIL_FIELD
from selfservice.observability.logging import log
from selfservice.queue.jobs import send_verification_email_job
from selfservice.settings import settings
from selfservice.stages.common import from_mapping, input_string, non_blank

STAGE_TYPE = "emailValidation"
MAIL_INPUT = "mail"
CODE_INPUT = "code"

_MAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class EmailValidationConfig:
    subject: str = ""
    body_template: str = "Your verification code is {code}"
    code_bytes: int = 16

    def __post_init__(self):
        non_blank(self.subject, "subject")
        non_blank(self.body_template, "body_template")
        if "{code}" not in self.body_template:
            raise ConfigurationError("body_template must contain {code}")
        # the same token can be replayed, so the code needs at least 128 bits
        if isinstance(self.code_bytes, bool) or not isinstance(self.code_bytes, int) or not 16 <= self.code_bytes <= 64:
            raise ConfigurationError("code_bytes must be between 16 and 64")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmailValidationConfig":
        return from_mapping(cls, data)


def code_digest(flow_name: str, mail: str, code: str) -> str:
    # keyed digest: the slot travels inside the token, the code must not
    if not settings.TOKEN_SECRET:
        raise ConfigurationError("Token secret is not configured")
    msg = f"{flow_name}:{mail.lower()}:{code}".encode("utf-8")
    return hmac.new(settings.TOKEN_SECRET.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def _code_requirements(mail: str) -> Dict[str, Any]:
    return build_requirements(
        f"Enter the code sent to {mail}",
        {CODE_INPUT: string_property("Verification code")},
        required=[CODE_INPUT],
    )


class EmailValidationStage:
    """
    Two phases: send a one-time code to an address (PENDING), then accept
    the code back (SUCCESS). The address comes from state when an earlier
    stage located the user, otherwise from the caller.
    """

    stage_type = STAGE_TYPE

    def __init__(self, services: StageServices = None):
        self.services = services

    def gather_initial_requirements(self, context: ProcessContext, config: EmailValidationConfig) -> Dict[str, Any]:
        slot = context.get_state(context.stage_tag) or {}
        if slot.get("codeDigest"):
            return _code_requirements(slot.get("mail", ""))
        if context.get_state(EMAIL_FIELD):
            return empty_requirements("Send a verification code to the address on file")
        return build_requirements(
            "Verify your email address",
            {MAIL_INPUT: string_property("Email address")},
            required=[MAIL_INPUT],
        )

    def advance(self, context: ProcessContext, config: EmailValidationConfig) -> StageOutcome:
        data = context.get_input() or {}
        slot = context.get_state(context.stage_tag) or {}

        if slot.get("codeDigest") and CODE_INPUT in data:
            code = input_string(data, CODE_INPUT).strip()
            expected = slot["codeDigest"]
            if not hmac.compare_digest(code_digest(context.flow_name, slot["mail"], code), expected):
                raise ValidationError("Invalid verification code")
            context.put_state(EMAIL_FIELD, slot["mail"])
            context.put_state(context.stage_tag, {"mail": slot["mail"], "verified": True})
            return StageOutcome.success()

        mail = context.get_state(EMAIL_FIELD)
        if not mail:
            mail = input_string(data, MAIL_INPUT).strip()
            if not _MAIL_RE.match(mail):
                raise BadRequestError("Invalid email address")

        code = secrets.token_urlsafe(config.code_bytes)
        self._send(context, config, mail, code)
        context.put_state(context.stage_tag, {
            "mail": mail,
            "codeDigest": code_digest(context.flow_name, mail, code),
            "sentAt": int(time.time()),
        })
        return StageOutcome.pending(_code_requirements(mail))

    def _send(self, context: ProcessContext, config: EmailValidationConfig, mail: str, code: str) -> None:
        if self.services is None or self.services.queue_factory is None:
            raise ConfigurationError(f"Stage '{STAGE_TYPE}' needs a mail queue")
        try:
            q = self.services.queue_factory()
            q.enqueue(
                send_verification_email_job,
                mail,
                config.subject,
                config.body_template.replace("{code}", code),
                retry=Retry(max=3, interval=[5, 30, 60]),
            )
        except RedisError as e:
            log(event="verification_email_enqueue_failed", flow=context.flow_name, errorType=type(e).__name__)
            raise ResourceError("Unable to send the verification email") from e
        log(event="verification_email_enqueued", flow=context.flow_name, stage=context.stage_tag)

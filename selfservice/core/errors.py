"""
Error taxonomy for the self-service engine.

- ConfigurationError: a flow or stage config is unusable. Raised at
  construction time; if it surfaces while a stage runs, the flow is FAILED.
- InvalidTokenError: the token failed verification or expired. The caller
  has to restart the flow.
- BadRequestError: the caller's input does not match the requirements.
  Requirements are reissued, the flow stays IN_PROGRESS.
- ValidationError: a semantic check failed (wrong answer, wrong code). The
  message never says which part was wrong.
- ResourceError: the backing store or a remote service failed. Retryable.
"""
from typing import Any, Dict


class SelfServiceError(Exception):
    code: int = 500
    default_message: str = "Self-service error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ConfigurationError(SelfServiceError):
    code = 500
    default_message = "Invalid self-service configuration"


class DescriptorValidationError(ConfigurationError):
    default_message = "Invalid API descriptor"


class InvalidTokenError(SelfServiceError):
    code = 400
    default_message = "Invalid or expired token"


class BadRequestError(SelfServiceError):
    code = 400
    default_message = "Bad request"


class ValidationError(BadRequestError):
    default_message = "Verification failed"


class ResourceError(SelfServiceError):
    code = 503
    default_message = "Resource unavailable"


class NotFoundError(ResourceError):
    code = 404
    default_message = "Resource not found"


class UnknownFlowError(SelfServiceError):
    code = 404
    default_message = "Unknown self-service flow"

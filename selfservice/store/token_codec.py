"""
Token codecs carry FlowState between stateless requests.

The engine only relies on the TokenCodec protocol; which codec is used is a
deployment decision (TOKEN_MODE).
"""
from __future__ import annotations

import base64
import hashlib
import json
import time
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

from selfservice.core.errors import ConfigurationError, InvalidTokenError
from selfservice.settings import settings
from selfservice.store.models import FlowState


class TokenCodec(Protocol):
    def encode(self, state: FlowState) -> str: ...

    def decode(self, token: str) -> FlowState: ...


def _fernet_key(secret: str) -> bytes:
    # TOKEN_SECRET is free-form; Fernet wants 32 url-safe base64 bytes
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class EncryptedTokenCodec:
    """
    Self-contained token: the flow state sealed with Fernet (AES-CBC +
    HMAC-SHA256). The caller can neither read nor alter the payload, which
    carries the state and an expiry (epoch seconds).
    """

    def __init__(self, secret: str, ttl_sec: int):
        if not secret:
            raise ConfigurationError("Token secret is not configured")
        if int(ttl_sec) <= 0:
            raise ConfigurationError("Token lifetime must be positive")
        self._fernet = Fernet(_fernet_key(secret))
        self._ttl_sec = int(ttl_sec)

    def encode(self, state: FlowState) -> str:
        now = int(time.time())
        payload = {"state": state.to_dict(), "exp": now + self._ttl_sec}
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return self._fernet.encrypt_at_time(raw, now).decode("ascii")

    def decode(self, token: str) -> FlowState:
        if not isinstance(token, str) or not token:
            raise InvalidTokenError("Malformed token")
        try:
            raw = self._fernet.decrypt(token.encode("ascii"))
        except UnicodeEncodeError:
            raise InvalidTokenError("Malformed token")
        except InvalidToken:
            raise InvalidTokenError("Token integrity check failed")
        try:
            payload = json.loads(raw)
        except ValueError:
            raise InvalidTokenError("Malformed token")
        if not isinstance(payload, dict):
            raise InvalidTokenError("Malformed token")
        exp = payload.get("exp")
        if not isinstance(exp, int) or exp <= int(time.time()):
            raise InvalidTokenError("Token has expired")
        return FlowState.from_dict(payload.get("state"))


def get_token_codec(mode: Optional[str] = None) -> TokenCodec:
    mode = (mode or settings.TOKEN_MODE or "encrypted").lower()
    if mode == "encrypted":
        return EncryptedTokenCodec(settings.TOKEN_SECRET, settings.TOKEN_TTL_SEC)
    if mode == "redis":
        # local import: keeps redis optional for the encrypted codec
        from selfservice.store.snapshot_repo import SnapshotTokenCodec

        return SnapshotTokenCodec(ttl_sec=settings.TOKEN_TTL_SEC)
    raise ConfigurationError(f"Unknown token mode: {mode}")

import json
import time
from selfservice.settings import settings

# Fields that may carry credentials or personal data (KBA answers, passwords,
# verification codes, tokens, submitted input, assembled user objects)
SENSITIVE_KEYS = {"answer", "password", "input", "token", "code", "user"}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    if isinstance(v, list):
        return [_redact_value(val) for val in v]
    return v

def _scrub(key, value):
    # A sensitive key hides its whole value; otherwise look inside containers
    if key in SENSITIVE_KEYS:
        return _redact_value(value)
    if isinstance(value, dict):
        return {k: _scrub(k, v) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(None, v) for v in value]
    return value

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_PII_REDACTION:
        payload.update({k: _scrub(k, v) for k, v in fields.items()})
    else:
        payload.update(fields)

    # default=str: sets, exceptions and the like still serialize
    print(json.dumps(payload, ensure_ascii=False, default=str))

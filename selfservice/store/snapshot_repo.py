import json
import secrets

from redis.exceptions import RedisError

from selfservice.core.errors import InvalidTokenError, ResourceError
from selfservice.observability.logging import log
from selfservice.settings import settings
from selfservice.store.models import FlowState
from selfservice.store.redis_conn import get_redis


def _key(snapshot_id: str) -> str:
    return f"{settings.SNAPSHOT_PREFIX}{snapshot_id}"


def _json_safe(obj):
    if isinstance(obj, (set, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_json_safe(v) for v in obj]
    return obj


class SnapshotTokenCodec:
    """
    Server-side snapshots: the flow state lives in Redis with the token
    lifetime as key expiry, and the token is an unguessable snapshot id.
    Every encode writes a new snapshot, so each response carries a fresh token.
    """

    def __init__(self, ttl_sec: int):
        self._ttl_sec = int(ttl_sec)

    def encode(self, state: FlowState) -> str:
        snapshot_id = secrets.token_urlsafe(32)
        try:
            r = get_redis()
            r.set(_key(snapshot_id), json.dumps(_json_safe(state.to_dict())), ex=self._ttl_sec)
        except RedisError as e:
            log(event="snapshot_write_failed", flow=state.flow, errorType=type(e).__name__)
            raise ResourceError("Unable to store flow snapshot") from e
        return snapshot_id

    def decode(self, token: str) -> FlowState:
        if not isinstance(token, str) or not token:
            raise InvalidTokenError("Malformed token")
        try:
            r = get_redis()
            raw = r.get(_key(token))
        except RedisError as e:
            log(event="snapshot_read_failed", errorType=type(e).__name__)
            raise ResourceError("Unable to read flow snapshot") from e
        if not raw:
            # unknown or expired snapshot
            raise InvalidTokenError("Token has expired")
        try:
            data = json.loads(raw)
        except ValueError:
            raise InvalidTokenError("Malformed snapshot")
        return FlowState.from_dict(data)

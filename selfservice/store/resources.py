"""
Resource collaborator used by stages that read or write identity records.

Records are JSON objects stored under "<RESOURCE_PREFIX><collection>/<id>".
A connection is acquired per call; nothing is cached between calls.
"""
import json
import uuid
from typing import Any, Dict, List, Optional, Protocol

from redis.exceptions import RedisError

from selfservice.core.errors import NotFoundError, ResourceError
from selfservice.observability.logging import log
from selfservice.settings import settings
from selfservice.store.redis_conn import get_redis

ID_FIELD = "_id"


class ResourceClient(Protocol):
    def read(self, resource_id: str) -> Dict[str, Any]: ...

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]: ...

    def create(self, collection: str, content: Dict[str, Any]) -> Dict[str, Any]: ...

    def patch(self, resource_id: str, fields: Dict[str, Any]) -> Dict[str, Any]: ...


def resource_id(collection: str, record_id: str) -> str:
    return f"{collection}/{record_id}"


class RedisResourceStore:
    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix if prefix is not None else settings.RESOURCE_PREFIX

    def _key(self, rid: str) -> str:
        return f"{self.prefix}{rid}"

    def _fail(self, op: str, rid: str, e: Exception) -> ResourceError:
        log(event="resource_error", op=op, resourceId=rid, errorType=type(e).__name__)
        return ResourceError(f"Unable to {op} resource")

    def _decode(self, rid: str, raw) -> Dict[str, Any]:
        try:
            record = json.loads(raw)
        except ValueError as e:
            raise self._fail("decode", rid, e) from e
        if not isinstance(record, dict):
            raise self._fail("decode", rid, TypeError("record is not an object"))
        return record

    def read(self, resource_id: str) -> Dict[str, Any]:
        try:
            raw = get_redis().get(self._key(resource_id))
        except RedisError as e:
            raise self._fail("read", resource_id, e) from e
        if not raw:
            raise NotFoundError(f"Resource {resource_id} not found")
        return self._decode(resource_id, raw)

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Exact-match lookup on a single field across a collection."""
        matches: List[Dict[str, Any]] = []
        try:
            r = get_redis()
            for key in r.scan_iter(match=self._key(f"{collection}/*")):
                raw = r.get(key)
                if not raw:
                    continue
                record = self._decode(str(key), raw)
                if record.get(field) == value:
                    matches.append(record)
        except RedisError as e:
            raise self._fail("query", collection, e) from e
        return matches

    def create(self, collection: str, content: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(content)
        record[ID_FIELD] = uuid.uuid4().hex
        rid = resource_id(collection, record[ID_FIELD])
        try:
            created = get_redis().set(self._key(rid), json.dumps(record), nx=True)
        except RedisError as e:
            raise self._fail("create", rid, e) from e
        if not created:
            raise ResourceError(f"Resource {rid} already exists")
        return record

    def patch(self, resource_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        record = self.read(resource_id)
        record.update(fields)
        try:
            get_redis().set(self._key(resource_id), json.dumps(record), xx=True)
        except RedisError as e:
            raise self._fail("patch", resource_id, e) from e
        return record

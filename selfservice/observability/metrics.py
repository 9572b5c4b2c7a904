"""
Flow Metrics
------------
Redis counters per flow and event, read back by /admin/metrics. Counters are
best-effort: the HTTP layer records them after the engine has answered, and a
Redis outage never fails a flow request.
"""
from __future__ import annotations

from typing import Dict, Iterable

from selfservice.store.redis_conn import get_redis

STARTED = "started"
ADVANCED = "advanced"
REJECTED = "rejected"
COMPLETED = "completed"
FAILED = "failed"

EVENTS = (STARTED, ADVANCED, REJECTED, COMPLETED, FAILED)


def _key(flow: str, event: str) -> str:
    return f"metrics:flow:{flow}:{event}"


def increment_flow_event(flow: str, event: str) -> None:
    if event not in EVENTS:
        raise ValueError(f"Unknown flow event: {event}")
    r = get_redis()
    r.incr(_key(flow, event), 1)


def _as_int(v) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


def get_flow_metrics(flows: Iterable[str]) -> Dict[str, Dict[str, object]]:
    """
    Counters plus a completion rate per flow:
      {flow: {started, advanced, rejected, completed, failed, completion_rate}}
    """
    r = get_redis()
    out: Dict[str, Dict[str, object]] = {}
    for flow in flows:
        keys = [_key(flow, e) for e in EVENTS]
        values = r.mget(keys)
        counts = {e: _as_int(v) for e, v in zip(EVENTS, values)}
        started = counts[STARTED]
        counts["completion_rate"] = round(counts[COMPLETED] / started * 100.0, 2) if started else 0.0
        out[flow] = counts
    return out

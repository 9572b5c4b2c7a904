from typing import List, Optional

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool

import selfservice.observability.metrics as metrics
from selfservice.api.auth import require_api_key
from selfservice.api.deps import get_engine, get_flows
from selfservice.api.schemas import FlowRequest, FlowResponseModel, FlowSummary
from selfservice.core import state_machine as sm
from selfservice.core.orchestrator import FlowResponse
from selfservice.descriptor.service import describe_flows
from selfservice.observability.logging import log
from selfservice.settings import settings

router = APIRouter(prefix="/selfservice", tags=["selfservice"], dependencies=[Depends(require_api_key)])


def _record(flow: str, started: bool, response: FlowResponse) -> None:
    """Best-effort counters; never fails the request."""
    if not settings.ENABLE_METRICS:
        return
    events = [metrics.STARTED] if started else []
    if response.status == sm.COMPLETED:
        events.append(metrics.COMPLETED)
    elif response.status == sm.FAILED:
        events.append(metrics.FAILED)
    elif response.error:
        events.append(metrics.REJECTED)
    elif not started:
        events.append(metrics.ADVANCED)
    try:
        for event in events:
            metrics.increment_flow_event(flow, event)
    except RedisError as e:
        log(event="metrics_record_failed", flow=flow, errorType=type(e).__name__)


@router.get("/descriptor")
def descriptor():
    """API description of the deployed flows."""
    services = describe_flows(
        get_flows(),
        request_schema=FlowRequest.model_json_schema(),
        response_schema=FlowResponseModel.model_json_schema(),
    )
    return services.to_dict()


@router.get("/flows", response_model=List[FlowSummary])
def list_flows(name: Optional[str] = None):
    flows = get_flows()
    return [
        FlowSummary(name=flow_name, stages=[b.tag for b in flows[flow_name].stages])
        for flow_name in sorted(flows)
        if name is None or flow_name == name
    ]


@router.get("/{flow_name}", response_model=FlowResponseModel)
async def start_flow(flow_name: str):
    """Begin a flow: requirements of the first stage plus a token."""
    engine = get_engine(flow_name)
    response = await run_in_threadpool(engine.start)
    _record(flow_name, True, response)
    return response.to_dict()


@router.post("/{flow_name}", response_model=FlowResponseModel)
async def submit_requirements(flow_name: str, req: FlowRequest):
    engine = get_engine(flow_name)
    response = await run_in_threadpool(engine.handle, req.token, req.input, req.stage)
    _record(flow_name, req.token is None, response)
    return response.to_dict()

from fastapi import APIRouter, Depends

import selfservice.observability.metrics as metrics
from selfservice.api.auth import require_admin
from selfservice.api.deps import get_flows
from selfservice.core.flow import get_flow

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    """Per-flow counters backed by Redis."""
    return metrics.get_flow_metrics(sorted(get_flows()))


@router.get("/flows/{flow_name}")
def get_flow_definition(flow_name: str, _=Depends(require_admin)):
    """Stage layout of one flow."""
    flow = get_flow(get_flows(), flow_name)
    return {
        "name": flow.name,
        "stages": [
            {"index": i, "tag": b.tag, "type": b.stage_type, "config": type(b.config).__name__}
            for i, b in enumerate(flow.stages)
        ],
    }

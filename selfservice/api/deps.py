from functools import lru_cache
from typing import Dict

from selfservice.core.flow import FlowDefinition, get_flow, load_flows
from selfservice.core.orchestrator import FlowEngine
from selfservice.settings import settings
from selfservice.stages.registry import default_services
from selfservice.store.token_codec import get_token_codec


@lru_cache(maxsize=1)
def get_flows() -> Dict[str, FlowDefinition]:
    # Built once per process; a bad definition fails here, before any request is served
    return load_flows(settings.FLOWS_CONFIG_PATH)


@lru_cache(maxsize=None)
def get_engine(flow_name: str) -> FlowEngine:
    """Engines are immutable, so one per flow is shared by all requests."""
    return FlowEngine(get_flow(get_flows(), flow_name), get_token_codec(), default_services())

from typing import Any, Dict, Mapping, Optional

from selfservice.core.flow import FlowDefinition
from selfservice.descriptor.models import Action, CountPolicy, PagingMode, Query, QueryType, Resource, Services

FLOWS_SERVICE = "flows"


def describe_flows(
    flows: Mapping[str, FlowDefinition],
    request_schema: Optional[Dict[str, Any]] = None,
    response_schema: Optional[Dict[str, Any]] = None,
) -> Services:
    """Describe the deployed flows: one resource per flow plus the flow listing."""
    pairs = [
        (
            FLOWS_SERVICE,
            Resource(
                description="Deployed self-service flows",
                queries=(
                    Query.from_declaration(
                        {
                            "type": QueryType.FILTER,
                            "description": "Flows filtered by name",
                            "queryable_fields": ["name"],
                            "paging_modes": [PagingMode.OFFSET],
                            "count_policies": [CountPolicy.EXACT],
                            "sort_keys": ["name"],
                        }
                    ),
                ),
            ),
        )
    ]
    for name, flow in flows.items():
        submit = Action.from_declaration(
            {
                "description": (
                    f"Submit input for the current stage of '{name}' "
                    f"({' -> '.join(b.tag for b in flow.stages)})"
                ),
                "request": request_schema,
                "response": response_schema,
            },
            handler_name="submitRequirements",
        )
        pairs.append(
            (name, Resource(description=f"Self-service flow '{name}'", read=True, actions=(submit,)))
        )
    return Services.from_pairs(pairs)

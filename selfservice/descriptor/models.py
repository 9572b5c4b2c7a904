"""
API descriptor models for the self-service endpoints.

Every model validates itself once, on construction; an invalid descriptor
cannot exist.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from selfservice.core.errors import ConfigurationError, DescriptorValidationError


class QueryType(str, Enum):
    EXPRESSION = "EXPRESSION"
    FILTER = "FILTER"
    ID = "ID"


class PagingMode(str, Enum):
    COOKIE = "COOKIE"
    OFFSET = "OFFSET"


class CountPolicy(str, Enum):
    NONE = "NONE"
    ESTIMATE = "ESTIMATE"
    EXACT = "EXACT"


# Queries are listed EXPRESSION, FILTER, then ID queries by id
_QUERY_RANK = {QueryType.EXPRESSION: 0, QueryType.FILTER: 1, QueryType.ID: 2}

_WHITESPACE = re.compile(r"\s")


def _enum_tuple(enum_cls, values: Optional[Iterable[Any]], what: str) -> Tuple[Any, ...]:
    try:
        return tuple(enum_cls(v) for v in (values or ()))
    except ValueError as e:
        raise DescriptorValidationError(f"Invalid {what}: {e}") from e


def _str_tuple(values: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in (values or ()))


@dataclass(frozen=True)
class Query:
    type: Optional[QueryType] = None
    description: str = ""
    paging_modes: Tuple[PagingMode, ...] = ()
    count_policies: Tuple[CountPolicy, ...] = ()
    query_id: str = ""
    queryable_fields: Tuple[str, ...] = ()
    supported_sort_keys: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.type is None:
            raise DescriptorValidationError("type is required")
        try:
            qtype = QueryType(self.type)
        except ValueError as e:
            raise DescriptorValidationError(f"Unsupported query type: {self.type}") from e
        object.__setattr__(self, "type", qtype)
        object.__setattr__(self, "paging_modes", _enum_tuple(PagingMode, self.paging_modes, "paging mode"))
        object.__setattr__(self, "count_policies", _enum_tuple(CountPolicy, self.count_policies, "count policy"))
        object.__setattr__(self, "queryable_fields", _str_tuple(self.queryable_fields))
        object.__setattr__(self, "supported_sort_keys", _str_tuple(self.supported_sort_keys))
        object.__setattr__(self, "query_id", self.query_id or "")

        if qtype == QueryType.FILTER and not self.queryable_fields:
            raise DescriptorValidationError("queryableFields required for type = FILTER")
        if qtype == QueryType.ID and not self.query_id:
            raise DescriptorValidationError("queryId required for type = ID")

    @classmethod
    def from_declaration(cls, decl: Mapping[str, Any], handler_name: Optional[str] = None) -> "Query":
        """
        Build from a declarative entry. An ID query without an explicit id is
        named after the handler that serves it.
        """
        query_id = decl.get("id") or ""
        if decl.get("type") in (QueryType.ID, QueryType.ID.value) and not query_id:
            if not handler_name:
                raise ConfigurationError(f"Query is missing ID: {dict(decl)}")
            query_id = handler_name
        return cls(
            type=decl.get("type"),
            description=decl.get("description") or "",
            paging_modes=decl.get("paging_modes") or (),
            count_policies=decl.get("count_policies") or (),
            query_id=query_id,
            queryable_fields=decl.get("queryable_fields") or (),
            supported_sort_keys=decl.get("sort_keys") or (),
        )

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (_QUERY_RANK[self.type], self.query_id if self.type == QueryType.ID else "")

    def __lt__(self, other: "Query") -> bool:
        return self.sort_key < other.sort_key

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.value}
        if self.description:
            out["description"] = self.description
        if self.query_id:
            out["queryId"] = self.query_id
        if self.paging_modes:
            out["pagingModes"] = [p.value for p in self.paging_modes]
        if self.count_policies:
            out["countPolicies"] = [c.value for c in self.count_policies]
        if self.queryable_fields:
            out["queryableFields"] = list(self.queryable_fields)
        if self.supported_sort_keys:
            out["supportedSortKeys"] = list(self.supported_sort_keys)
        return out


@dataclass(frozen=True)
class Action:
    name: str = ""
    description: str = ""
    request: Optional[Dict[str, Any]] = None
    response: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise DescriptorValidationError("name is required")
        if _WHITESPACE.search(self.name):
            raise DescriptorValidationError("name contains whitespace")

    @classmethod
    def from_declaration(cls, decl: Mapping[str, Any], handler_name: Optional[str] = None) -> "Action":
        name = decl.get("name") or handler_name
        if not name:
            raise ConfigurationError(f"Action does not have a name: {dict(decl)}")
        return cls(
            name=name,
            description=decl.get("description") or "",
            request=decl.get("request"),
            response=decl.get("response"),
        )

    def __lt__(self, other: "Action") -> bool:
        return self.name < other.name

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.description:
            out["description"] = self.description
        if self.request is not None:
            out["request"] = self.request
        if self.response is not None:
            out["response"] = self.response
        return out


@dataclass(frozen=True)
class Resource:
    description: str = ""
    read: bool = False
    actions: Tuple[Action, ...] = ()
    queries: Tuple[Query, ...] = ()

    def __post_init__(self):
        actions = tuple(sorted(self.actions))
        names = [a.name for a in actions]
        if len(set(names)) != len(names):
            raise DescriptorValidationError("action names must be unique")
        object.__setattr__(self, "actions", actions)
        object.__setattr__(self, "queries", tuple(sorted(self.queries)))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.description:
            out["description"] = self.description
        if self.read:
            out["read"] = {}
        if self.actions:
            out["actions"] = [a.to_dict() for a in self.actions]
        if self.queries:
            out["queries"] = [q.to_dict() for q in self.queries]
        return out


def _check_service_name(name: Any) -> str:
    if not isinstance(name, str) or not name or _WHITESPACE.search(name):
        raise DescriptorValidationError("name required and may not contain whitespace")
    return name


@dataclass(frozen=True)
class Services:
    resources: Mapping[str, Resource] = field(default_factory=dict)

    def __post_init__(self):
        checked = {}
        for name in sorted(_check_service_name(n) for n in self.resources):
            resource = self.resources[name]
            if not isinstance(resource, Resource):
                raise DescriptorValidationError(f"service {name} has no resource")
            checked[name] = resource
        object.__setattr__(self, "resources", checked)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, Resource]]) -> "Services":
        """Registering the same name twice is fine only for the same resource."""
        collected: Dict[str, Resource] = {}
        for name, resource in pairs:
            _check_service_name(name)
            if name in collected and collected[name] != resource:
                raise DescriptorValidationError("name not unique")
            collected[name] = resource
        return cls(resources=collected)

    def get(self, name: str) -> Optional[Resource]:
        return self.resources.get(name)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.resources)

    def to_dict(self) -> Dict[str, Any]:
        return {name: resource.to_dict() for name, resource in self.resources.items()}

from dataclasses import fields
from typing import Any, Iterable, Mapping, Tuple

from selfservice.core.errors import BadRequestError, ConfigurationError
from selfservice.core.flow import require_name
from selfservice.core.stage import StageServices


def from_mapping(cls, data: Mapping[str, Any]):
    """Construct a config dataclass from a declarative dict, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"{cls.__name__} has unknown settings: {', '.join(unknown)}")
    return cls(**dict(data))


def name_tuple(values: Any, what: str) -> Tuple[str, ...]:
    """Normalize a list of identifiers to a tuple, checking each one."""
    if values is None:
        return ()
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ConfigurationError(f"{what} must be a list")
    return tuple(require_name(v, what) for v in values)


def positive_int(value: Any, what: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(f"{what} must be an integer >= {minimum}")
    return value


def non_blank(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{what} is required")
    return value


def require_resources(services: StageServices, stage_type: str):
    if services is None or services.resources is None:
        raise ConfigurationError(f"Stage '{stage_type}' needs a resource store")
    return services.resources


def input_object(data: Any, key: str) -> Mapping[str, Any]:
    """The caller input must be an object holding an object under `key`."""
    if not isinstance(data, Mapping) or not isinstance(data.get(key), Mapping):
        raise BadRequestError(f"'{key}' is required")
    return data[key]


def input_string(data: Any, key: str) -> str:
    if not isinstance(data, Mapping):
        raise BadRequestError(f"'{key}' is required")
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequestError(f"'{key}' is required")
    return value

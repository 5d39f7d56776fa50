from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from cibulb.model import AggregateStatus, BuildStatus

T = TypeVar("T")

StatusGetter = Callable[[Any], Optional[str]]

# Builds still in flight mask failures elsewhere until everything settles.
PENDING_STATUSES = frozenset({BuildStatus.pending.value, BuildStatus.running.value})


def status_field(name: str = "status") -> StatusGetter:
    """Read a status from an attribute or a mapping key called ``name``."""

    def getter(item: Any) -> Optional[str]:
        if isinstance(item, Mapping):
            value = item.get(name)
        else:
            value = getattr(item, name, None)
        if isinstance(value, BuildStatus):
            return value.value
        return value

    return getter


def typed_status_field(name: str) -> StatusGetter:
    """
    Read a status from a DynamoDB style item where every attribute is wrapped
    in its type descriptor, e.g. ``{"RepoStatus": {"S": "failed"}}``.
    """

    def getter(item: Mapping[str, Any]) -> Optional[str]:
        value = item.get(name) or {}
        return value.get("S")

    return getter


def aggregate_status(
    records: Optional[Iterable[T]],
    status_of: StatusGetter = status_field(),
) -> AggregateStatus:
    """
    Reduce per repository build statuses to one fleet wide status.

    Any pending or running build wins over failures, failures win over
    everything else. Unknown values are neutral. No records means success.
    """
    statuses = [status_of(record) for record in records or ()]

    if not statuses:
        return AggregateStatus.success

    if any(status in PENDING_STATUSES for status in statuses):
        return AggregateStatus.pending

    if any(status == BuildStatus.failed.value for status in statuses):
        return AggregateStatus.failed

    return AggregateStatus.success

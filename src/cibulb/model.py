from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

import pydantic
from pydantic import BeforeValidator, PlainSerializer


class BuildStatus(str, Enum):
    success = "success"
    pending = "pending"
    running = "running"
    skipped = "skipped"
    failed = "failed"


class AggregateStatus(str, Enum):
    success = "success"
    pending = "pending"
    failed = "failed"


def _parse_utc_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"Unsupported datetime value type: {type(value)!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_utc_datetime(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utcnow_iso() -> str:
    return _format_utc_datetime(datetime.now(timezone.utc))


UTCDateTime = Annotated[
    datetime,
    BeforeValidator(_parse_utc_datetime),
    PlainSerializer(_format_utc_datetime, return_type=str, when_used="always"),
]


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


class RepositoryRecord(Model):
    name: str
    status: str
    first_seen_at: Optional[UTCDateTime] = None
    last_seen_at: Optional[UTCDateTime] = None


class PipelineAttributes(Model):
    id: Optional[int] = None
    ref: str
    status: str


class Project(Model):
    path_with_namespace: str


class BuildEvent(Model):
    """GitLab pipeline hook payload, reduced to the fields we act on."""

    object_attributes: PipelineAttributes
    project: Project

    @property
    def repository(self) -> str:
        return self.project.path_with_namespace

    @property
    def ref(self) -> str:
        return self.object_attributes.ref

    @property
    def status(self) -> str:
        return self.object_attributes.status

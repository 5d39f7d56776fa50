from __future__ import annotations

from dataclasses import dataclass
import hmac
from typing import Any, Mapping, Optional, Tuple, Union

from sanic.log import logger

from cibulb.config import Settings
from cibulb.errors import AuthenticationError, NotificationDeliveryError
from cibulb.metric import (
    error_counter,
    notification_counter,
    refresh_counter,
    set_aggregate_status,
    webhook_counter,
)
from cibulb.model import AggregateStatus, BuildEvent
from cibulb.notify import Notifier
from cibulb.status import aggregate_status
from cibulb.storage import RepositoryStore, StoreConnection


TOKEN_HEADER = "X-Gitlab-Token"
EVENT_HEADER = "X-Gitlab-Event"
PIPELINE_EVENT = "Pipeline Hook"


@dataclass(frozen=True)
class HandlerResult:
    result: str
    aggregate: Optional[AggregateStatus] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def status_code(self) -> int:
        if self.result == "forbidden":
            return 403
        return 200

    @property
    def failed(self) -> bool:
        return self.result == "failed"


def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def verify_token(secret: Optional[str], token: Optional[str]) -> bool:
    if not secret or token is None:
        return False
    return hmac.compare_digest(secret.encode("utf-8"), token.encode("utf-8"))


def authenticate(settings: Settings, headers: Mapping[str, Any]) -> None:
    if settings.WEBHOOK_SECRET is None:
        raise AuthenticationError("No webhook secret configured")
    if not verify_token(settings.WEBHOOK_SECRET, _header(headers, TOKEN_HEADER)):
        raise AuthenticationError(f"Missing or invalid {TOKEN_HEADER} header")


def normalize_ref(ref: str) -> str:
    prefix = "refs/heads/"
    if ref.startswith(prefix):
        return ref[len(prefix) :]
    return ref


def report_exception(context: str) -> None:
    error_counter.labels(context=context).inc()
    logger.error("Exception raised during %s", context, exc_info=True)


async def publish_aggregate(
    settings: Settings, conn: StoreConnection, notifier: Notifier
) -> Tuple[AggregateStatus, str]:
    records = conn.fetch_all()
    aggregate = aggregate_status(records)
    set_aggregate_status(aggregate.value, [s.value for s in AggregateStatus])
    logger.info(
        "Overall status of %d repositories: %s", len(records), aggregate.value
    )

    if settings.DRY_RUN:
        logger.info("Dry run, not notifying %s", notifier.name)
        notification_counter.labels(notifier=notifier.name, result="dry_run").inc()
        return aggregate, ""

    try:
        body = await notifier.notify(aggregate)
    except NotificationDeliveryError:
        notification_counter.labels(notifier=notifier.name, result="error").inc()
        raise
    notification_counter.labels(notifier=notifier.name, result="ok").inc()
    logger.debug("Notification response: %s", body)
    return aggregate, body


async def ingest_build_event(
    settings: Settings,
    store: RepositoryStore,
    notifier: Notifier,
    headers: Mapping[str, Any],
    body: Union[str, bytes],
) -> HandlerResult:
    """
    Handle one pipeline webhook delivery.

    Authentication failures are the only outcome visible to the sender
    (403). Everything after that is acknowledged with 200: deliveries for
    other branches or event kinds are ignored, and failures while storing or
    notifying are reported and returned as a ``failed`` result.
    """
    try:
        authenticate(settings, headers)
    except AuthenticationError as exc:
        logger.warning("Rejected webhook: %s", exc)
        webhook_counter.labels(result="forbidden").inc()
        return HandlerResult(result="forbidden", error=str(exc))

    event_kind = _header(headers, EVENT_HEADER)
    if event_kind is not None and event_kind != PIPELINE_EVENT:
        logger.debug("Ignoring %s event", event_kind)
        webhook_counter.labels(result="ignored").inc()
        return HandlerResult(result="ignored")

    conn: Optional[StoreConnection] = None
    try:
        event = BuildEvent.model_validate_json(body)

        if settings.TRACKED_BRANCH and (
            normalize_ref(event.ref) != settings.TRACKED_BRANCH
        ):
            logger.debug(
                "Ignoring pipeline on %s for %s, tracking %s",
                event.ref,
                event.repository,
                settings.TRACKED_BRANCH,
            )
            webhook_counter.labels(result="ignored").inc()
            return HandlerResult(result="ignored")

        logger.info("Repository %s is %s", event.repository, event.status)

        conn = store.connect()
        conn.upsert(event.repository, event.status)
        aggregate, response_body = await publish_aggregate(settings, conn, notifier)
    except Exception as exc:  # noqa: BLE001
        report_exception("webhook")
        webhook_counter.labels(result="failed").inc()
        return HandlerResult(result="failed", error=str(exc))
    finally:
        if conn is not None:
            conn.close()

    webhook_counter.labels(result="accepted").inc()
    return HandlerResult(result="notified", aggregate=aggregate, body=response_body)


async def refresh_status(
    settings: Settings, store: RepositoryStore, notifier: Notifier
) -> HandlerResult:
    conn: Optional[StoreConnection] = None
    try:
        conn = store.connect()
        aggregate, response_body = await publish_aggregate(settings, conn, notifier)
    except Exception as exc:  # noqa: BLE001
        report_exception("refresh")
        refresh_counter.labels(result="failed").inc()
        return HandlerResult(result="failed", error=str(exc))
    finally:
        if conn is not None:
            conn.close()

    refresh_counter.labels(result="notified").inc()
    return HandlerResult(result="notified", aggregate=aggregate, body=response_body)

from typing import Iterable

from prometheus_client import Counter, Gauge

request_counter = Counter(
    "cibulb_num_req", "Total number of requests", labelnames=["path"]
)
webhook_counter = Counter(
    "cibulb_num_webhook", "Total number of webhooks", labelnames=["result"]
)
refresh_counter = Counter(
    "cibulb_num_refresh", "Total number of refresh runs", labelnames=["result"]
)

repository_upsert_counter = Counter(
    "cibulb_repository_upsert",
    "Number of repository record upserts",
    labelnames=["status"],
)

notification_counter = Counter(
    "cibulb_num_notification",
    "Number of outbound notifications",
    labelnames=["notifier", "result"],
)

error_counter = Counter(
    "cibulb_error_counter", "Total number of errors", labelnames=["context"]
)

aggregate_status = Gauge(
    "cibulb_aggregate_status",
    "Last computed aggregate build status (1 for the active value)",
    labelnames=["status"],
)


def set_aggregate_status(value: str, choices: Iterable[str]) -> None:
    for choice in choices:
        aggregate_status.labels(status=choice).set(1 if choice == value else 0)

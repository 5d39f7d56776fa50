import json
from types import SimpleNamespace

import pytest

from cibulb.config import SETTINGS
from cibulb.handlers import HandlerResult
from cibulb.model import AggregateStatus
from cibulb.storage import RepositoryStore
from cibulb.web import (
    close_session,
    create_app,
    process_refresh,
    process_webhook,
    to_response,
)


class _RecordingNotifier:
    name = "recording"

    def __init__(self):
        self.calls = []

    async def notify(self, status):
        self.calls.append(status)
        return f"triggered {status.value}"


def make_app(tmp_path, **overrides):
    settings = SETTINGS.model_copy(
        update={"WEBHOOK_SECRET": "my-secret", "TRACKED_BRANCH": "master", **overrides}
    )
    store = RepositoryStore(settings, db_path=tmp_path / "repositories.sqlite3")
    store.initialize()
    return SimpleNamespace(
        ctx=SimpleNamespace(
            settings=settings,
            store=store,
            notifier=_RecordingNotifier(),
        )
    )


def make_body(status: str = "success"):
    return json.dumps(
        {
            "object_attributes": {"id": 1, "ref": "master", "status": status},
            "project": {"path_with_namespace": "test"},
        }
    ).encode("utf-8")


def test_create_app_registers_routes():
    app = create_app(SETTINGS)
    paths = {route.path for route in app.router.routes}
    assert "webhook" in paths
    assert "refresh" in paths
    assert "status" in paths
    assert "metrics" in paths


@pytest.mark.asyncio
async def test_process_webhook_notifies(tmp_path):
    app = make_app(tmp_path)

    result = await process_webhook(app, {"X-Gitlab-Token": "my-secret"}, make_body())

    assert result.aggregate == AggregateStatus.success
    assert app.ctx.notifier.calls == [AggregateStatus.success]

    resp = to_response(result)
    assert resp.status == 200
    assert resp.body == b"triggered success"


@pytest.mark.asyncio
async def test_process_webhook_forbidden(tmp_path):
    app = make_app(tmp_path)

    result = await process_webhook(app, {"X-Gitlab-Token": "nope"}, make_body())

    resp = to_response(result)
    assert resp.status == 403
    assert app.ctx.notifier.calls == []


@pytest.mark.asyncio
async def test_process_refresh(tmp_path):
    app = make_app(tmp_path)
    with app.ctx.store.connect() as conn:
        conn.upsert("test", "running")

    result = await process_refresh(app)

    assert result.aggregate == AggregateStatus.pending
    assert to_response(result).body == b"triggered pending"


def test_failed_results_are_acknowledged():
    resp = to_response(HandlerResult(result="failed", error="boom"))
    assert resp.status == 200
    assert resp.body == b""


@pytest.mark.asyncio
async def test_close_session_without_session():
    await close_session(SimpleNamespace(ctx=SimpleNamespace()))


@pytest.mark.asyncio
async def test_close_session_closes_session():
    class _Session:
        closed = False

        async def close(self):
            self.closed = True

    session = _Session()
    await close_session(SimpleNamespace(ctx=SimpleNamespace(aiohttp_session=session)))

    assert session.closed

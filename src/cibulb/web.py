import logging
from typing import Any, Mapping, Optional, Union

import aiohttp
from prometheus_client import CONTENT_TYPE_LATEST, core
from prometheus_client.exposition import generate_latest
from sanic import Sanic, response, Request
from sanic.log import logger
import sanic.log

from cibulb.config import SETTINGS, Settings
from cibulb.handlers import HandlerResult, ingest_build_event, refresh_status
from cibulb.logger import LOG_FORMAT, get_log_handlers
from cibulb.metric import request_counter
from cibulb.notify import create_notifier
from cibulb.storage import RepositoryStore


logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)


async def process_webhook(
    app, headers: Mapping[str, Any], body: Union[str, bytes]
) -> HandlerResult:
    result = await ingest_build_event(
        app.ctx.settings, app.ctx.store, app.ctx.notifier, headers, body
    )
    logger.debug("Webhook result: %s", result)
    return result


async def process_refresh(app) -> HandlerResult:
    result = await refresh_status(app.ctx.settings, app.ctx.store, app.ctx.notifier)
    logger.debug("Refresh result: %s", result)
    return result


async def close_session(app):
    session = getattr(app.ctx, "aiohttp_session", None)
    if session is None:
        return
    logger.debug("Closing aiohttp session")
    await session.close()


def to_response(result: HandlerResult):
    if result.status_code == 403:
        return response.text("Forbidden", status=403)
    return response.text(result.body, status=result.status_code)


def create_app(settings: Optional[Settings] = None) -> Sanic:
    if settings is None:
        settings = SETTINGS

    app = Sanic("cibulb")
    app.ctx.settings = settings
    app.ctx.store = RepositoryStore(settings)

    logging.getLogger().setLevel(settings.log_level)

    for handler in get_log_handlers(sanic.log.logger, settings):
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    @app.before_server_start
    async def init(app):
        app.ctx.store.initialize()
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()
        app.ctx.notifier = create_notifier(settings, app.ctx.aiohttp_session)
        logger.info("Notifying through %s", app.ctx.notifier.name)

    app.after_server_stop(close_session)

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.post("/webhook")
    async def webhook(request):
        logger.debug("Webhook received")
        result = await process_webhook(app, request.headers, request.body)
        return to_response(result)

    @app.route("/refresh", methods=["GET", "POST"])
    async def refresh(request):
        logger.debug("Refresh triggered")
        result = await process_refresh(app)
        return to_response(result)

    @app.get("/metrics")
    async def metrics(request):
        data = generate_latest(core.REGISTRY)
        return response.raw(data, content_type=CONTENT_TYPE_LATEST)

    return app

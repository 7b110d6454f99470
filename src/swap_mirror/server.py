import logging

from aiohttp import web

from .ingest import WebhookIngestor

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT = {"status": "success"}
INGESTOR_KEY = web.AppKey("ingestor", WebhookIngestor)


async def handle_webhook(request: web.Request) -> web.Response:
    try:
        document = await request.json()
    except ValueError as exc:
        logger.warning("webhook body is not JSON: %s", exc)
    else:
        request.app[INGESTOR_KEY].accept(document)
    return web.json_response(ACKNOWLEDGEMENT)


async def _drain(app: web.Application) -> None:
    await app[INGESTOR_KEY].drain()


def create_app(ingestor: WebhookIngestor) -> web.Application:
    app = web.Application()
    app[INGESTOR_KEY] = ingestor
    app.router.add_post("/webhook", handle_webhook)
    app.on_shutdown.append(_drain)
    return app

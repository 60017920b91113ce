"""路由注册模块"""

from fastapi import APIRouter, FastAPI
from fastapi.responses import PlainTextResponse
from loguru import logger

from acquisitions.exceptions import ErrorEnvelopeRoute

GREETING_LOG_MESSAGE = "Hello from acquisitions!"
GREETING_TEXT = "Hello from acqusitions by Poog"

router = APIRouter(route_class=ErrorEnvelopeRoute)


@router.api_route("/", methods=["GET", "HEAD"], response_class=PlainTextResponse, include_in_schema=False)
async def root() -> PlainTextResponse:
    logger.info(GREETING_LOG_MESSAGE)
    return PlainTextResponse(GREETING_TEXT, status_code=200)


def register_routes(app: FastAPI) -> None:
    """Register all routes to the application.

    Args:
        app: FastAPI application instance.
    """
    app.include_router(router)

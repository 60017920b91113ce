"""应用工厂模块。

提供 create_app() 工厂函数，用于创建 FastAPI 应用实例。
"""

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from acquisitions.config import settings
from acquisitions.exceptions import (
    BusinessException,
    ErrorEnvelopeRoute,
    business_exception_handler,
    general_exception_handler,
    http_exception_handler,
)
from acquisitions.lifespan import lifespan
from acquisitions.logging import setup_logging
from acquisitions.middleware import make_middlewares
from acquisitions.routes import register_routes


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用。

    Returns:
        FastAPI: 已配置的应用实例。
    """
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
        middleware=make_middlewares(),
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # 注册异常处理器
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 路由内异常在中间件链内部渲染
    app.router.route_class = ErrorEnvelopeRoute

    # 注册路由
    register_routes(app)

    return app

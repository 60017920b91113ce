"""中间件组件"""
from typing import ClassVar

from starlette.middleware.base import BaseHTTPMiddleware

from acquisitions.exceptions import general_exception_handler
from acquisitions.middleware.access_log import AccessLogMiddleware
from acquisitions.middleware.body_parser import JSONBodyMiddleware, URLEncodedBodyMiddleware
from acquisitions.middleware.cookie_parser import CookieParserMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """安全响应头中间件

    默认头集合可通过 ``headers`` 覆盖，值为 None 表示不下发该头。
    """

    SECURITY_HEADERS: ClassVar[dict] = {
        "Content-Security-Policy": (
            "default-src 'self';"
            "base-uri 'self';"
            "font-src 'self' https: data:;"
            "form-action 'self';"
            "frame-ancestors 'self';"
            "img-src 'self' data:;"
            "object-src 'none';"
            "script-src 'self';"
            "script-src-attr 'none';"
            "style-src 'self' https: 'unsafe-inline';"
            "upgrade-insecure-requests"
        ),
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }

    # 暴露实现细节的响应头
    REMOVED_HEADERS: ClassVar[tuple] = ("X-Powered-By",)

    def __init__(self, app, headers: dict | None = None):
        super().__init__(app)
        merged = {**self.SECURITY_HEADERS, **(headers or {})}
        self.headers = {name: value for name, value in merged.items() if value is not None}

    async def dispatch(self, request, call_next):
        try:
            response = await call_next(request)
        except Exception as exc:
            # 内层中间件抛出的异常同样带上安全头
            response = await general_exception_handler(request, exc)
        for name in self.REMOVED_HEADERS:
            if name in response.headers:
                del response.headers[name]
        response.headers.update(self.headers)
        return response


def make_middlewares():
    """Create middleware list for FastAPI application.

    列表顺序即执行顺序：第一个中间件位于最外层。

    Returns:
        list: List of Middleware instances.
    """
    from fastapi.middleware import Middleware
    from fastapi.middleware.cors import CORSMiddleware

    from acquisitions.config import settings

    middleware = [
        Middleware(SecurityHeadersMiddleware),
        Middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
            allow_methods=settings.CORS_ALLOW_METHODS,
            allow_headers=settings.CORS_ALLOW_HEADERS,
            max_age=settings.CORS_MAX_AGE,
        ),
        Middleware(JSONBodyMiddleware, limit=settings.BODY_LIMIT, strict=settings.JSON_STRICT),
        Middleware(
            URLEncodedBodyMiddleware,
            limit=settings.BODY_LIMIT,
            parameter_limit=settings.URLENCODED_PARAMETER_LIMIT,
            depth=settings.URLENCODED_DEPTH,
        ),
        Middleware(CookieParserMiddleware),
        Middleware(AccessLogMiddleware, log_format=settings.ACCESS_LOG_FORMAT),
    ]
    return middleware

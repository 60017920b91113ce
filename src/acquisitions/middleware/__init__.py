"""中间件基础设施模块"""

from acquisitions.middleware.access_log import AccessLogMiddleware
from acquisitions.middleware.body_parser import JSONBodyMiddleware, URLEncodedBodyMiddleware
from acquisitions.middleware.cookie_parser import CookieParserMiddleware
from acquisitions.middleware.middleware import SecurityHeadersMiddleware, make_middlewares

__all__ = [
    "SecurityHeadersMiddleware",
    "JSONBodyMiddleware",
    "URLEncodedBodyMiddleware",
    "CookieParserMiddleware",
    "AccessLogMiddleware",
    "make_middlewares",
]

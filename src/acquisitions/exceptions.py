"""
异常模块

包含请求体解析异常与统一错误响应处理。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from acquisitions.schemas import ErrorDetail, ErrorResponse


class BusinessException(StarletteHTTPException):
    """业务异常基类"""

    def __init__(self, status_code: int, detail: str, error_code: str | None = None, errors: list | None = None):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code
        self.errors = errors or []


class BodyParseException(BusinessException):
    """请求体无法解析（格式错误、过大或字符集不支持）"""

    def __init__(self, detail: str, status_code: int = status.HTTP_400_BAD_REQUEST, error_code: str = "BODY_PARSE_ERROR"):
        super().__init__(status_code=status_code, detail=detail, error_code=error_code)


class BodyTooLargeException(BodyParseException):
    def __init__(self, limit: int):
        super().__init__(
            detail=f"请求体超过限制 {limit} 字节",
            status_code=413,
            error_code="BODY_TOO_LARGE",
        )


class TooManyParametersException(BodyParseException):
    def __init__(self, limit: int):
        super().__init__(
            detail=f"表单参数数量超过限制 {limit}",
            status_code=413,
            error_code="PARAMETERS_TOO_MANY",
        )


class UnsupportedCharsetException(BodyParseException):
    def __init__(self, charset: str):
        super().__init__(
            detail=f"不支持的字符集 '{charset}'",
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            error_code="UNSUPPORTED_CHARSET",
        )


def create_error_response(
    status_code: int,
    message: str,
    errors: list[dict[str, Any]] | list[ErrorDetail] | None = None,
    error_code: str | None = None,
) -> JSONResponse:
    """创建统一的错误响应"""
    error_details: list[ErrorDetail] = []
    if errors:
        for err in errors:
            if isinstance(err, dict):
                error_details.append(
                    ErrorDetail(
                        field=err.get("field", ""),
                        message=err.get("message", str(err)),
                    )
                )
            elif isinstance(err, ErrorDetail):
                error_details.append(err)

    resp = ErrorResponse(
        success=False,
        code=status_code,
        message=message,
        errors=error_details,
        timestamp=datetime.now(),
    )
    content = resp.model_dump(mode="json")
    if error_code:
        content["error_code"] = error_code
    return JSONResponse(status_code=status_code, content=content)


async def business_exception_handler(request, exc: BusinessException) -> JSONResponse:
    """处理业务异常"""
    return create_error_response(
        status_code=exc.status_code,
        message=exc.detail,
        errors=getattr(exc, "errors", None),
        error_code=getattr(exc, "error_code", None),
    )


async def http_exception_handler(request, exc: StarletteHTTPException) -> JSONResponse:
    """处理 HTTP 异常（含未匹配路由的 404 与方法不允许的 405）"""
    response = create_error_response(status_code=exc.status_code, message=str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def general_exception_handler(request, exc: Exception) -> JSONResponse:
    """处理未捕获的异常"""
    from loguru import logger

    logger.exception("未处理异常: {}", exc)
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="服务器内部错误",
    )


class ErrorEnvelopeRoute(APIRoute):
    """在路由内部把未处理异常转换为 500 错误响应

    异常不再冒泡到最外层的 ServerErrorMiddleware，响应仍经过安全头与 CORS 等中间件。
    HTTP 异常与参数校验异常交给已注册的处理器。
    """

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def handler(request):
            try:
                return await original_handler(request)
            except (StarletteHTTPException, RequestValidationError):
                raise
            except Exception as exc:
                return await general_exception_handler(request, exc)

        return handler

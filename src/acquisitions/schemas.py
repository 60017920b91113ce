"""
通用 Schema

错误响应模式。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """错误详情"""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """错误响应模型"""
    success: bool = Field(default=False)
    code: int
    message: str
    errors: list[ErrorDetail] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


__all__ = [
    "ErrorDetail",
    "ErrorResponse",
]

"""日志配置模块

提供 loguru 日志初始化与敏感信息脱敏。访问日志中的查询串同样经过脱敏过滤。
"""

import os
import re
import sys
from typing import Any

from loguru import logger

from acquisitions.config import settings

# 日志格式
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

REDACTED = "***REDACTED***"

# 敏感字段模式：查询串/表单形式的 key=value，以及 URL 中内嵌的凭据
SENSITIVE_PATTERNS = [
    (
        re.compile(r"\b(password|passwd|pwd|token|access_token|api[_-]?key|secret)=([^&\s\"]+)", re.IGNORECASE),
        rf"\1={REDACTED}",
    ),
    (
        re.compile(r"\b([a-z][a-z0-9+.-]*)://([^:/\s@]+):([^@/\s]+)@", re.IGNORECASE),
        r"\1://\2:***@",
    ),
]


def sanitize_log_message(message: str) -> str:
    """对日志消息进行敏感信息脱敏"""
    if not message:
        return message

    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SanitizingFilter:
    """日志脱敏过滤器，作为 loguru sink 的 filter 使用"""

    def __call__(self, record: dict[str, Any]) -> bool:
        record["message"] = sanitize_log_message(record["message"])
        return True


def setup_logging() -> None:
    """初始化日志系统"""
    logger.remove()

    sanitizing_filter = SanitizingFilter()

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=settings.LOG_LEVEL,
        colorize=True,
        filter=sanitizing_filter,
    )

    if settings.LOG_TO_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE_PATH)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        logger.add(
            settings.LOG_FILE_PATH,
            format=FILE_FORMAT,
            level=settings.LOG_LEVEL,
            rotation="500 MB",
            retention="30 days",
            compression="zip",
            encoding="utf-8",
            enqueue=True,  # 多请求并发写入
            filter=sanitizing_filter,
        )

    logger.debug(f"日志初始化完成: level={settings.LOG_LEVEL}, file={settings.LOG_TO_FILE}")

"""Application lifecycle management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from loguru import logger

from acquisitions.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    当前无需初始化外部资源，仅记录启动与关闭。
    """
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} 已启动")
    try:
        yield
    finally:
        logger.info("应用程序已停止")

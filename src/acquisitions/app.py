"""
ASGI 入口

``uvicorn acquisitions.app:app`` 首次访问 ``app`` 时才创建应用，导入本模块不会初始化日志与中间件。
"""

from functools import lru_cache

from fastapi import FastAPI


@lru_cache(maxsize=1)
def get_app() -> FastAPI:
    """返回进程内唯一的应用实例"""
    from acquisitions.app_factory import create_app

    return create_app()


def __getattr__(name: str):
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

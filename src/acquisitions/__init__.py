"""acquisitions HTTP 服务启动骨架。"""

__version__ = "1.0.0"

__all__ = ["create_app", "get_app", "__version__"]


def __getattr__(name: str):
    # 延迟导入，避免 import acquisitions 时加载 FastAPI
    if name == "create_app":
        from acquisitions.app_factory import create_app

        return create_app
    if name == "get_app":
        from acquisitions.app import get_app

        return get_app
    raise AttributeError(f"module 'acquisitions' has no attribute '{name}'")

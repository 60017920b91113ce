import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from loguru import logger

from acquisitions.app_factory import create_app


@pytest.fixture
def app():
    """应用实例，附带回显解析结果的测试路由"""
    application = create_app()

    @application.api_route("/echo", methods=["GET", "POST", "PUT"])
    async def echo(request: Request):
        return {
            "body": request.state.body,
            "cookies": request.state.cookies,
            "signed_cookies": request.state.signed_cookies,
        }

    @application.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    return application


@pytest.fixture
def log_records(app):
    """捕获 loguru 日志记录（需在 create_app 之后添加 sink）"""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def client(app, log_records):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def access_lines(log_records):
    """返回当前捕获到的访问日志行"""

    def collect():
        return [r["message"] for r in log_records if r["message"].startswith("testclient - - [")]

    return collect

from fastapi.testclient import TestClient


def test_root_returns_greeting(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Hello from acqusitions by Poog"
    assert response.headers["content-type"].startswith("text/plain")


def test_root_logs_greeting_once(client, log_records):
    client.get("/?ignored=1")
    greetings = [r for r in log_records if r["message"] == "Hello from acquisitions!"]
    assert len(greetings) == 1
    assert greetings[0]["level"].name == "INFO"


def test_post_root_not_allowed(client):
    response = client.post("/", json={"a": 1})
    assert response.status_code == 405


def test_head_root(client):
    response = client.head("/")
    assert response.status_code == 200
    assert response.headers["content-length"] == str(len("Hello from acqusitions by Poog"))
    assert response.content == b""


def test_unknown_path_is_not_found(client, log_records):
    response = client.get("/missing")
    assert response.status_code == 404
    payload = response.json()
    assert payload["success"] is False
    assert payload["code"] == 404
    assert not [r for r in log_records if r["message"] == "Hello from acquisitions!"]


def test_method_not_allowed_keeps_allow_header(client):
    response = client.delete("/")
    assert response.status_code == 405
    assert "GET" in response.headers["allow"]


def test_unhandled_exception_returns_500(client, access_lines):
    response = client.get("/boom")
    assert response.status_code == 500
    assert response.json()["message"] == "服务器内部错误"
    lines = access_lines()
    assert len(lines) == 1
    assert '"GET /boom HTTP/1.1" 500' in lines[0]


def test_lifespan_logs_start_and_stop(app, log_records):
    with TestClient(app):
        pass
    messages = [r["message"] for r in log_records]
    assert any(m.endswith("已启动") for m in messages)
    assert messages[-1] == "应用程序已停止"


def test_unhandled_exception_keeps_security_and_cors_headers(client):
    response = client.get("/boom", headers={"Origin": "http://example.com"})
    assert response.status_code == 500
    assert response.json()["code"] == 500
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["access-control-allow-origin"] == "*"

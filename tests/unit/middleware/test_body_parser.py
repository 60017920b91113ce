import pytest

from acquisitions.middleware.body_parser import (
    JSONBodyMiddleware,
    parse_content_type,
    parse_urlencoded,
    split_key,
)

JSON = {"Content-Type": "application/json"}
FORM = {"Content-Type": "application/x-www-form-urlencoded"}


def test_json_body_is_parsed(client):
    response = client.post("/echo", json={"name": "acme", "items": [1, 2], "nested": {"ok": True}})
    assert response.status_code == 200
    assert response.json()["body"] == {"name": "acme", "items": [1, 2], "nested": {"ok": True}}


def test_json_array_is_parsed(client):
    response = client.post("/echo", content="[1, 2, 3]", headers=JSON)
    assert response.json()["body"] == [1, 2, 3]


def test_vendor_json_type_is_parsed(client):
    response = client.post("/echo", content='{"a": 1}', headers={"Content-Type": "application/vnd.api+json"})
    assert response.json()["body"] == {"a": 1}


def test_empty_json_body_yields_empty_mapping(client):
    response = client.post("/echo", content="", headers=JSON)
    assert response.status_code == 200
    assert response.json()["body"] == {}


def test_unmatched_content_type_passes_through(client):
    response = client.post("/echo", content="plain text", headers={"Content-Type": "text/plain"})
    assert response.status_code == 200
    assert response.json()["body"] == {}


def test_malformed_json_is_rejected(client):
    response = client.post("/echo", content='{"a":', headers=JSON)
    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["error_code"] == "BODY_PARSE_ERROR"


def test_strict_json_rejects_scalar_top_level(client):
    response = client.post("/echo", content='"just a string"', headers=JSON)
    assert response.status_code == 400


def test_json_rejects_nan(client):
    response = client.post("/echo", content='{"a": NaN}', headers=JSON)
    assert response.status_code == 400


def test_json_rejects_unsupported_charset(client):
    response = client.post("/echo", content="{}", headers={"Content-Type": "application/json; charset=latin1"})
    assert response.status_code == 415
    assert response.json()["error_code"] == "UNSUPPORTED_CHARSET"


def test_oversized_body_is_rejected(client):
    response = client.post("/echo", content='{"a": "' + "x" * (100 * 1024) + '"}', headers=JSON)
    assert response.status_code == 413
    assert response.json()["error_code"] == "BODY_TOO_LARGE"


def test_parse_error_response_keeps_security_headers(client):
    response = client.post("/echo", content="{oops", headers=JSON)
    assert response.status_code == 400
    assert response.headers["x-content-type-options"] == "nosniff"


def test_urlencoded_body_is_parsed(client):
    response = client.post("/echo", content="a[b]=1&c[]=2&c[]=3&d=x&d=y&e=hello+world", headers=FORM)
    assert response.status_code == 200
    assert response.json()["body"] == {
        "a": {"b": "1"},
        "c": ["2", "3"],
        "d": ["x", "y"],
        "e": "hello world",
    }


def test_urlencoded_parameter_limit(client):
    content = "&".join(f"k{i}=v" for i in range(1001))
    response = client.post("/echo", content=content, headers=FORM)
    assert response.status_code == 413
    assert response.json()["error_code"] == "PARAMETERS_TOO_MANY"


def test_parse_urlencoded_indexes_become_lists():
    assert parse_urlencoded("a[1]=b&a[0]=c") == {"a": ["c", "b"]}
    assert parse_urlencoded("a[0][x]=1&a[0][y]=2") == {"a": [{"x": "1", "y": "2"}]}


def test_parse_urlencoded_mixed_scalar_and_object():
    assert parse_urlencoded("a=b&a[c]=d") == {"a": ["b", {"c": "d"}]}


def test_parse_urlencoded_keeps_numeric_top_level_keys():
    assert parse_urlencoded("0=a&1=b") == {"0": "a", "1": "b"}


def test_parse_urlencoded_skips_empty_keys():
    assert parse_urlencoded("=x&&a=1&flag") == {"a": "1", "flag": ""}


def test_split_key_respects_depth():
    assert split_key("a[b][c]", depth=5) == ["a", "b", "c"]
    assert split_key("a[b][c][d]", depth=2) == ["a", "b", "c", "[d]"]
    assert split_key("plain", depth=5) == ["plain"]


def test_parse_content_type():
    assert parse_content_type('Application/JSON; Charset="UTF-8"') == ("application/json", {"charset": "UTF-8"})
    assert parse_content_type(None) == ("", {})


@pytest.mark.asyncio
async def test_client_disconnect_is_replayed_downstream():
    seen = {}

    async def downstream(scope, receive, send):
        seen["body"] = scope["state"]["body"]
        seen["message"] = await receive()

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        raise AssertionError("no response expected")

    scope = {"type": "http", "method": "POST", "path": "/", "headers": [(b"content-type", b"application/json")]}
    await JSONBodyMiddleware(downstream)(scope, receive, send)

    assert seen == {"body": {}, "message": {"type": "http.disconnect"}}


@pytest.mark.asyncio
async def test_raw_body_remains_readable_downstream():
    seen = {}

    async def downstream(scope, receive, send):
        seen["parsed"] = scope["state"]["body"]
        seen["raw"] = (await receive())["body"]

    messages = [
        {"type": "http.request", "body": b'{"a":', "more_body": True},
        {"type": "http.request", "body": b" 1}", "more_body": False},
    ]

    async def receive():
        return messages.pop(0)

    async def send(message):
        raise AssertionError("no response expected")

    scope = {"type": "http", "method": "POST", "path": "/", "headers": [(b"content-type", b"application/json")]}
    await JSONBodyMiddleware(downstream)(scope, receive, send)

    assert seen == {"parsed": {"a": 1}, "raw": b'{"a": 1}'}


def test_deeply_nested_json_is_rejected(client):
    response = client.post("/echo", content="[" * 20000 + "]" * 20000, headers=JSON)
    assert response.status_code == 400
    assert response.json()["error_code"] == "BODY_PARSE_ERROR"
    assert response.headers["x-content-type-options"] == "nosniff"


def test_urlencoded_latin1_escapes_use_declared_charset(client):
    response = client.post(
        "/echo",
        content="a=%E9t%E9&b=caf%E9",
        headers={"Content-Type": "application/x-www-form-urlencoded; charset=ISO-8859-1"},
    )
    assert response.status_code == 200
    assert response.json()["body"] == {"a": "été", "b": "café"}


def test_urlencoded_rejects_other_charsets(client):
    response = client.post(
        "/echo",
        content="a=1",
        headers={"Content-Type": "application/x-www-form-urlencoded; charset=shift_jis"},
    )
    assert response.status_code == 415


def test_parse_urlencoded_utf8_escapes():
    assert parse_urlencoded("a=%C3%A9") == {"a": "é"}
    assert parse_urlencoded("a=%E9", charset="iso-8859-1") == {"a": "é"}

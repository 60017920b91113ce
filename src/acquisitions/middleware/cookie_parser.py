"""Cookie 解析中间件"""
import json
from typing import Any
from urllib.parse import unquote


def decode_cookie_value(value: str) -> Any:
    """百分号解码 cookie 值，``j:`` 前缀的值按 JSON 解析

    解码或解析失败时保留原值。
    """
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]

    if "%" in value:
        try:
            value = unquote(value, errors="strict")
        except UnicodeDecodeError:
            pass

    if value.startswith("j:"):
        try:
            return json.loads(value[2:])
        except ValueError:
            return value
    return value


def parse_cookie_header(header: str | None) -> dict[str, Any]:
    """解析 Cookie 请求头，重复的名称以第一次出现为准

    >>> parse_cookie_header("a=1; b=2")
    {'a': '1', 'b': '2'}
    """
    cookies: dict[str, Any] = {}
    if not header:
        return cookies

    for chunk in header.split(";"):
        name, sep, value = chunk.partition("=")
        name = name.strip()
        if not sep or not name or name in cookies:
            continue
        cookies[name] = decode_cookie_value(value.strip())
    return cookies


class CookieParserMiddleware:
    """把 Cookie 头解析为 ``request.state.cookies``

    未配置签名密钥，``request.state.signed_cookies`` 恒为空字典。
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        if "cookies" not in state:
            header = None
            for key, value in scope.get("headers", []):
                if key.lower() == b"cookie":
                    header = value.decode("latin-1")
                    break
            state["cookies"] = parse_cookie_header(header)
            state["signed_cookies"] = {}

        await self.app(scope, receive, send)

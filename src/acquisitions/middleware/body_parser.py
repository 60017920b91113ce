"""请求体解析中间件

按 Content-Type 缓冲并解析请求体，结果写入 ``request.state.body``；
不匹配的请求原样放行，``request.state.body`` 默认为空字典。
下游仍可通过 ``await request.body()`` 读取原始字节。
"""
import json
from typing import Any, ClassVar
from urllib.parse import unquote_plus

from loguru import logger

from acquisitions.exceptions import (
    BodyParseException,
    BodyTooLargeException,
    TooManyParametersException,
    UnsupportedCharsetException,
    business_exception_handler,
)

# 查询串解析中可转换为列表的最大下标
ARRAY_LIMIT = 20


def parse_content_type(value: str | None) -> tuple[str, dict[str, str]]:
    """拆分 Content-Type 为小写媒体类型和参数字典"""
    if not value:
        return "", {}
    media_type, *params = value.split(";")
    options = {}
    for param in params:
        key, sep, val = param.partition("=")
        if not sep:
            continue
        options[key.strip().lower()] = val.strip().strip('"')
    return media_type.strip().lower(), options


class BodyParserMiddleware:
    """请求体解析基类（纯 ASGI 实现）

    子类实现 ``matches`` 与 ``parse``。
    """

    DEFAULT_LIMIT: ClassVar[int] = 100 * 1024
    CHARSETS: ClassVar[tuple] = ("utf-8",)

    def __init__(self, app, limit: int = DEFAULT_LIMIT):
        self.app = app
        self.limit = limit

    def matches(self, media_type: str) -> bool:
        raise NotImplementedError

    def parse(self, text: str, charset: str = "utf-8") -> Any:
        raise NotImplementedError

    def check_charset(self, charset: str) -> None:
        if charset not in self.CHARSETS:
            raise UnsupportedCharsetException(charset)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        state.setdefault("body", {})

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        media_type, options = parse_content_type(headers.get("content-type"))

        # 已被前序解析器处理或类型不匹配
        if state.get("_body_parsed") or not self.matches(media_type):
            await self.app(scope, receive, send)
            return

        state["_body_parsed"] = True
        try:
            charset = options.get("charset", "utf-8").lower()
            self.check_charset(charset)
            self._check_declared_length(headers.get("content-length"))
            raw, replay = await self._read_body(receive)
            if raw is not None:
                state["body"] = self._decode_and_parse(raw, charset)
        except BodyParseException as exc:
            logger.debug(f"请求体解析失败: {scope.get('method')} {scope.get('path')} - {exc.detail}")
            response = await business_exception_handler(None, exc)
            await response(scope, receive, send)
            return

        await self.app(scope, replay, send)

    def _check_declared_length(self, content_length: str | None) -> None:
        if content_length and content_length.isdigit() and int(content_length) > self.limit:
            raise BodyTooLargeException(self.limit)

    async def _read_body(self, receive):
        """读取完整请求体，返回 (字节或 None, 可重放的 receive)

        客户端提前断开时返回 None，原始消息会被重放给下游。
        """
        chunks: list[bytes] = []
        received = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return None, self._replayer([message], receive)
            chunk = message.get("body", b"")
            received += len(chunk)
            if received > self.limit:
                raise BodyTooLargeException(self.limit)
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        body = b"".join(chunks)
        return body, self._replayer([{"type": "http.request", "body": body, "more_body": False}], receive)

    @staticmethod
    def _replayer(messages: list[dict], receive):
        pending = list(messages)

        async def replay():
            if pending:
                return pending.pop(0)
            return await receive()

        return replay

    def _decode_and_parse(self, raw: bytes, charset: str) -> Any:
        try:
            text = raw.decode(charset)
        except LookupError:
            raise UnsupportedCharsetException(charset)
        except UnicodeDecodeError as e:
            raise BodyParseException(f"请求体编码错误: {e.reason}")
        return self.parse(text, charset)


def _reject_constant(name: str):
    raise ValueError(f"Unexpected token {name}")


class JSONBodyMiddleware(BodyParserMiddleware):
    """JSON 请求体解析

    严格模式下顶层值必须是对象或数组；空请求体解析为空字典。
    """

    def __init__(self, app, limit: int = BodyParserMiddleware.DEFAULT_LIMIT, strict: bool = True):
        super().__init__(app, limit=limit)
        self.strict = strict

    def matches(self, media_type: str) -> bool:
        return media_type == "application/json" or (
            media_type.startswith("application/") and media_type.endswith("+json")
        )

    def check_charset(self, charset: str) -> None:
        if not charset.startswith("utf-"):
            raise UnsupportedCharsetException(charset)

    def parse(self, text: str, charset: str = "utf-8") -> Any:
        stripped = text.strip()
        if not stripped:
            return {}

        if self.strict and stripped[0] not in "{[":
            raise BodyParseException(f"Unexpected token {stripped[0]!r} in JSON at position 0")

        try:
            return json.loads(stripped, parse_constant=_reject_constant)
        except ValueError as e:
            raise BodyParseException(f"JSON 格式错误: {e}")
        except RecursionError:
            raise BodyParseException("JSON 嵌套层级过深")


class URLEncodedBodyMiddleware(BodyParserMiddleware):
    """表单请求体解析（扩展语法，支持 a[b]=1 与 a[]=1 嵌套）"""

    CHARSETS: ClassVar[tuple] = ("utf-8", "iso-8859-1")

    def __init__(
        self,
        app,
        limit: int = BodyParserMiddleware.DEFAULT_LIMIT,
        parameter_limit: int = 1000,
        depth: int = 5,
    ):
        super().__init__(app, limit=limit)
        self.parameter_limit = parameter_limit
        self.depth = depth

    def matches(self, media_type: str) -> bool:
        return media_type == "application/x-www-form-urlencoded"

    def parse(self, text: str, charset: str = "utf-8") -> dict:
        return parse_urlencoded(text, depth=self.depth, parameter_limit=self.parameter_limit, charset=charset)


def parse_urlencoded(text: str, depth: int = 5, parameter_limit: int = 1000, charset: str = "utf-8") -> dict:
    """解析扩展语法的表单串，百分号转义按请求声明的 charset 解码

    >>> parse_urlencoded("a[b]=1&c[]=2&c[]=3")
    {'a': {'b': '1'}, 'c': ['2', '3']}
    """
    pairs = [pair for pair in text.split("&") if pair]
    if len(pairs) > parameter_limit:
        raise TooManyParametersException(parameter_limit)

    result: dict = {}
    for pair in pairs:
        raw_key, sep, raw_value = pair.partition("=")
        key = unquote_plus(raw_key, encoding=charset)
        value = unquote_plus(raw_value, encoding=charset) if sep else ""
        if not key:
            continue

        segments = split_key(key, depth)
        leaf: Any = value
        for segment in reversed(segments[1:]):
            leaf = [leaf] if segment == "" else {segment: leaf}
        root = segments[0]
        result[root] = merge(result[root], leaf) if root in result else leaf

    return {key: compact(value) for key, value in result.items()}


def split_key(key: str, depth: int) -> list[str]:
    """把 ``a[b][c]`` 拆成 ``["a", "b", "c"]``，超过 depth 的部分整体作为最后一段"""
    start = key.find("[")
    if start <= 0 or "]" not in key[start:]:
        return [key]

    segments = [key[:start]]
    rest = key[start:]
    while rest.startswith("[") and len(segments) <= depth:
        end = rest.find("]")
        if end == -1:
            break
        segments.append(rest[1:end])
        rest = rest[end + 1:]

    if rest:
        segments.append(rest)
    return segments


def merge(target: Any, source: Any) -> Any:
    """合并同名参数，重复的标量键合并为列表"""
    if isinstance(target, dict) and isinstance(source, dict):
        for key, value in source.items():
            target[key] = merge(target[key], value) if key in target else value
        return target

    if isinstance(target, list) and isinstance(source, list):
        target.extend(source)
        return target

    if isinstance(target, list) and not isinstance(source, dict):
        target.append(source)
        return target

    if isinstance(target, list) and isinstance(source, dict):
        return merge({str(i): item for i, item in enumerate(target)}, source)

    if isinstance(target, dict) and isinstance(source, list):
        return merge(target, {str(i): item for i, item in enumerate(source)})

    if isinstance(source, list):
        return [target, *source]
    return [target, source]


def compact(value: Any) -> Any:
    """把键全为小下标数字的字典转换为按下标排序的列表"""
    if isinstance(value, list):
        return [compact(item) for item in value]
    if not isinstance(value, dict):
        return value

    value = {key: compact(item) for key, item in value.items()}
    if value and all(key.isdigit() and int(key) <= ARRAY_LIMIT for key in value):
        return [value[key] for key in sorted(value, key=int)]
    return value

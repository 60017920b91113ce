"""访问日志中间件

每个完成的请求输出一行访问日志，写入注入的 writer（默认 loguru INFO）。
格式由 ``:token`` 或 ``:token[arg]`` 组成，预置 combined/common/short/tiny 四种。
"""
import base64
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

PREDEFINED_FORMATS = {
    "combined": (
        ':remote-addr - :remote-user [:date[clf]] ":method :url HTTP/:http-version" '
        ':status :res[content-length] ":referrer" ":user-agent"'
    ),
    "common": ':remote-addr - :remote-user [:date[clf]] ":method :url HTTP/:http-version" :status :res[content-length]',
    "short": ":remote-addr :remote-user :method :url HTTP/:http-version :status :res[content-length] - :response-time ms",
    "tiny": ":method :url :status :res[content-length] - :response-time ms",
}

TOKEN_PATTERN = re.compile(r":([-\w]{2,})(?:\[([^\]]+)\])?")

# CLF 日期使用固定英文月份，不受 locale 影响
CLF_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class AccessRecord:
    """单个请求的访问日志上下文"""

    scope: dict
    started_at: float = field(default_factory=time.perf_counter)
    finished_at: datetime | None = None
    status: int | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    headers_sent_at: float | None = None
    bytes_sent: int = 0

    def request_header(self, name: str) -> str | None:
        target = name.lower().encode("latin-1")
        for key, value in self.scope.get("headers", []):
            if key.lower() == target:
                return value.decode("latin-1")
        return None


def _clf_date(moment: datetime) -> str:
    return (
        f"{moment.day:02d}/{CLF_MONTHS[moment.month - 1]}/{moment.year}:"
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} +0000"
    )


def _token_date(record: AccessRecord, arg: str | None) -> str:
    moment = record.finished_at or datetime.now(timezone.utc)
    if arg == "iso":
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if arg == "web":
        return moment.strftime("%a, %d ") + CLF_MONTHS[moment.month - 1] + moment.strftime(" %Y %H:%M:%S GMT")
    return _clf_date(moment)


def _token_remote_addr(record: AccessRecord, arg: str | None) -> str | None:
    client = record.scope.get("client")
    return client[0] if client else None


def _token_remote_user(record: AccessRecord, arg: str | None) -> str | None:
    authorization = record.request_header("authorization")
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode("utf-8")
    except ValueError:
        return None
    user, sep, _ = decoded.partition(":")
    return user if sep else None


def _token_url(record: AccessRecord, arg: str | None) -> str:
    scope = record.scope
    url = scope.get("root_path", "") + scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        url += "?" + query.decode("latin-1")
    return url


def _token_status(record: AccessRecord, arg: str | None) -> str | None:
    return str(record.status) if record.status is not None else None


def _token_res(record: AccessRecord, arg: str | None) -> str | None:
    if not arg:
        return None
    value = record.response_headers.get(arg.lower())
    if value is None and arg.lower() == "content-length" and record.bytes_sent:
        value = str(record.bytes_sent)
    return value


def _token_response_time(record: AccessRecord, arg: str | None) -> str | None:
    if record.headers_sent_at is None:
        return None
    digits = int(arg) if arg and arg.isdigit() else 3
    return f"{(record.headers_sent_at - record.started_at) * 1000:.{digits}f}"


def _token_total_time(record: AccessRecord, arg: str | None) -> str:
    digits = int(arg) if arg and arg.isdigit() else 3
    return f"{(time.perf_counter() - record.started_at) * 1000:.{digits}f}"


TOKENS: dict[str, Callable[[AccessRecord, str | None], str | None]] = {
    "date": _token_date,
    "http-version": lambda record, arg: record.scope.get("http_version", "1.1"),
    "method": lambda record, arg: record.scope.get("method"),
    "referrer": lambda record, arg: record.request_header("referer") or record.request_header("referrer"),
    "remote-addr": _token_remote_addr,
    "remote-user": _token_remote_user,
    "req": lambda record, arg: record.request_header(arg) if arg else None,
    "res": _token_res,
    "response-time": _token_response_time,
    "status": _token_status,
    "total-time": _token_total_time,
    "url": _token_url,
    "user-agent": lambda record, arg: record.request_header("user-agent"),
}


def compile_format(log_format: str) -> Callable[[AccessRecord], str]:
    """把格式名或格式串编译为格式化函数，未知 token 原样保留"""
    template = PREDEFINED_FORMATS.get(log_format, log_format)

    def render(record: AccessRecord) -> str:
        def substitute(match: re.Match) -> str:
            token = TOKENS.get(match.group(1))
            if token is None:
                return match.group(0)
            value = token(record, match.group(2))
            return "-" if value is None or value == "" else value

        return TOKEN_PATTERN.sub(substitute, template)

    return render


def _default_writer(message: str) -> None:
    logger.info(message)


class AccessLogMiddleware:
    """访问日志中间件（纯 ASGI 实现）

    在响应发送完毕后（或请求异常终止时）输出一行日志，不修改请求和响应。
    """

    def __init__(
        self,
        app,
        log_format: str = "combined",
        writer: Callable[[str], None] | None = None,
        skip: Callable[[dict, int | None], bool] | None = None,
    ):
        self.app = app
        self.render = compile_format(log_format)
        self.writer = writer or _default_writer
        self.skip = skip

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        record = AccessRecord(scope=scope)

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                record.status = message["status"]
                record.response_headers = {
                    k.decode("latin-1").lower(): v.decode("latin-1") for k, v in message.get("headers", [])
                }
                record.headers_sent_at = time.perf_counter()
            elif message["type"] == "http.response.body":
                record.bytes_sent += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            if record.status is None:
                record.status = 500
            raise
        finally:
            record.finished_at = datetime.now(timezone.utc)
            self._write(record)

    def _write(self, record: AccessRecord) -> None:
        if self.skip is not None and self.skip(record.scope, record.status):
            return
        self.writer(self.render(record).strip())

"""
每个 RPC 外层执行的拦截阶段。

阶段接收调用上下文、请求内容和下一个阶段，要么等待下一个阶段返回，要么抛出 TrustdError 提前结束。
调用链在服务端构建时组装一次：先是审计日志（因此认证失败也会被记录），然后是 bearer token 认证。
"""

from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import grpc

from trustd.ca.schemas import CertificateReply, CertificateRequestPayload
from trustd.errors import AuthError, TrustdError
from trustd.verbosity import MIN, PAYLOAD, RPC, Verbosity, redact_metadata

TOKEN_HEADER = "token"


@dataclass(frozen=True)
class CallContext:
    """单次调用的对端、方法和元数据，仅在一次 RPC 内有效。"""

    method: str
    peer: Optional[str]
    metadata: Optional[dict[str, list[str]]]

    @property
    def peer_label(self) -> str:
        return self.peer or "unknown"


Handler = Callable[[CallContext, CertificateRequestPayload], Awaitable[CertificateReply]]


class Stage(ABC):
    @abstractmethod
    async def __call__(
        self, call: CallContext, request: CertificateRequestPayload, proceed: Handler
    ) -> CertificateReply:
        """处理调用；继续调用链时 await proceed(call, request)。"""


def compose(stages: Sequence[Stage], handler: Handler) -> Handler:
    """按顺序将各阶段包裹在 handler 外层，第一个阶段位于最外层。"""

    def bind(stage: Stage, proceed: Handler) -> Handler:
        async def invoke(call: CallContext, request: CertificateRequestPayload) -> CertificateReply:
            return await stage(call, request, proceed)

        return invoke

    chained = handler
    for stage in reversed(stages):
        chained = bind(stage, chained)
    return chained


class TokenAuthStage(Stage):
    """
    要求 `token` 头部等于共享密钥。比较为常量时间，预期的和收到的 token 都不会写入日志。
    """

    def __init__(self, token: str, verbosity: Verbosity):
        self._token = token.encode("utf-8")
        self._verbosity = verbosity

    def _reject(self, call: CallContext, reason: str, level: int) -> AuthError:
        self._verbosity.log(level, f"auth failed for {call.method} from {call.peer_label}: {reason}")
        return AuthError(reason)

    async def __call__(self, call, request, proceed):
        if call.metadata is None:
            raise self._reject(call, "missing metadata", MIN)

        values = call.metadata.get(TOKEN_HEADER)
        if not values:
            raise self._reject(call, "missing token header", RPC)

        if not secrets.compare_digest(values[0].encode("utf-8"), self._token):
            raise self._reject(call, "invalid token", RPC)

        return await proceed(call, request)


class AuditStage(Stage):
    """
    记录每次调用：RPC 级别记录（脱敏后的）头部，PAYLOAD 级别才记录请求/响应内容，
    调用结果和耗时总是记录。不会修改响应或错误。
    """

    def __init__(self, verbosity: Verbosity):
        self._verbosity = verbosity

    async def __call__(self, call, request, proceed):
        start = time.monotonic()

        if call.metadata is not None:
            self._verbosity.log(
                RPC, f"rpc {call.method} from {call.peer_label} headers: {redact_metadata(call.metadata)}"
            )
        if self._verbosity.enabled(PAYLOAD):
            for line in request.describe(call.method):
                self._verbosity.log(PAYLOAD, line)

        try:
            response = await proceed(call, request)
        except TrustdError as e:
            self._outcome(call, e.code, start, e.message)
            raise
        except Exception as e:
            self._outcome(call, grpc.StatusCode.INTERNAL, start, repr(e))
            raise

        if self._verbosity.enabled(PAYLOAD):
            for line in response.describe(call.method):
                self._verbosity.log(PAYLOAD, line)
        self._outcome(call, grpc.StatusCode.OK, start)
        return response

    def _outcome(self, call: CallContext, code: grpc.StatusCode, start: float, error: str = "") -> None:
        duration = f"{(time.monotonic() - start) * 1000:.3f}ms"
        message = f"rpc {call.method} from {call.peer_label} -> {code.name} ({duration})"
        if error:
            message += f": {error}"
        self._verbosity.log(MIN, message)

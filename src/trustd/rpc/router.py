"""
安全服务的 RPC 路由：将线上消息转换为请求内容，交给阶段调用链处理，
并将错误转换为 gRPC 状态。
"""

import asyncio
from collections import defaultdict
from typing import Optional

import grpc
from loguru import logger

from trustd.ca import services
from trustd.ca.loader import CAMaterialLoader
from trustd.ca.schemas import CertificateReply, CertificateRequestPayload
from trustd.config import Config
from trustd.errors import TrustdError
from trustd.verbosity import Verbosity
from .messages import CERTIFICATE_METHOD, SERVICE_NAME, CertificateRequest, CertificateResponse
from .stages import AuditStage, CallContext, TokenAuthStage, compose


def call_context(context, method: str) -> CallContext:
    """从 grpc servicer context 中提取对端和元数据。"""
    peer: Optional[str] = context.peer() or None
    raw = context.invocation_metadata()
    metadata = None
    if raw is not None:
        metadata = defaultdict(list)
        for key, value in raw:
            metadata[key.lower()].append(value)
        metadata = dict(metadata)
    return CallContext(method=method, peer=peer, metadata=metadata)


class SecurityRouter:
    def __init__(self, config: Config):
        self.config = config
        self.verbosity = Verbosity(config.verbosity)
        self.loader = CAMaterialLoader(config.ca_cert, config.ca_key, config.accepted_cas)
        self.stages = [
            AuditStage(self.verbosity),
            TokenAuthStage(config.auth_token.get_secret_value(), self.verbosity),
        ]
        self._certificate_chain = compose(self.stages, self._issue)

    async def _issue(self, call: CallContext, request: CertificateRequestPayload) -> CertificateReply:
        # 签发是 CPU 密集操作且会读文件，放到事件循环之外执行
        return await asyncio.to_thread(
            services.issue_certificate_service,
            request,
            call.peer,
            self.loader,
            ttl=self.config.certificate_ttl,
        )

    async def certificate(self, request, context):
        call = call_context(context, CERTIFICATE_METHOD)
        try:
            reply = await self._certificate_chain(call, CertificateRequestPayload(csr=request.csr))
        except TrustdError as e:
            status, details = e.code, e.message
        except Exception:
            logger.exception(f"unhandled error in {CERTIFICATE_METHOD} from {call.peer_label}")
            status, details = grpc.StatusCode.INTERNAL, "internal server error"
        else:
            return CertificateResponse(ca=reply.ca, crt=reply.crt)
        await context.abort(status, details)

    def generic_handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            SERVICE_NAME,
            {
                "Certificate": grpc.unary_unary_rpc_method_handler(
                    self.certificate,
                    request_deserializer=CertificateRequest.FromString,
                    response_serializer=CertificateResponse.SerializeToString,
                ),
            },
        )

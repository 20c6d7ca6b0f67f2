"""
证书签发服务的业务逻辑层。
此模块将 core 和 loader 封装为 RPC 层调用的单一操作。
"""

from datetime import timedelta
from typing import Optional

from loguru import logger

from trustd.errors import PermissionDeniedError
from . import core
from .loader import CAMaterialLoader
from .schemas import SERVER_ONLY_POLICY, CertificateReply, CertificateRequestPayload, SigningPolicy

DEFAULT_TTL = timedelta(hours=24)


def issue_certificate_service(
    req: CertificateRequestPayload,
    peer: Optional[str],
    loader: CAMaterialLoader,
    *,
    policy: SigningPolicy = SERVER_ONLY_POLICY,
    ttl: timedelta = DEFAULT_TTL,
) -> CertificateReply:
    """
    为节点签发服务端证书。
    先解码 CSR 再读取 CA 材料，格式错误的请求不会触及 CA 文件。
    :param req: 携带 PEM CSR 的请求对象。
    :param peer: 传输层报告的对端地址，未知时为 None。
    :param loader: CA 材料来源，本次调用重新读取。
    :return: 签发的证书以及受信任的 CA 证书包。
    :raises PermissionDeniedError: 如果对端地址未知。
    :raises ValidationError: 如果 CSR 格式错误。
    :raises InternalError: 如果 CA 材料无法读取或签发失败。
    """
    if not peer:
        raise PermissionDeniedError("peer not found")

    parsed = core.decode_csr(req.csr)
    logger.info(
        f"received CSR from {peer}: subject {parsed.subject.rfc4514_string()} "
        f"dns {list(parsed.dns_names)} ips {[str(ip) for ip in parsed.ip_addresses]}"
    )

    ca_cert_pem, ca_key_pem = loader.load_ca()
    accepted_cas = loader.load_accepted_cas()
    ca = core.load_ca_identity(ca_cert_pem, ca_key_pem)

    options = core.enforce_policy(parsed, policy)
    # TODO: 校验对端地址是否属于 CSR 请求的 IP SAN
    issued = core.sign_certificate(parsed, options, ca, ttl)

    logger.info(
        f"issued certificate for {issued.subject} to {peer}: "
        f"notBefore={issued.not_before.isoformat()} notAfter={issued.not_after.isoformat()} "
        f"sanDNS={issued.dns_names} sanIP={issued.ip_addresses}"
    )
    return core.assemble_response(issued, accepted_cas)

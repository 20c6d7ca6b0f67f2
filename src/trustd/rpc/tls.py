"""
传输层认证：gRPC 监听端口的双向 TLS 凭据。

客户端必须出示能链到受信任 CA 证书包的证书，握手失败的连接不会到达 RPC 层。
gRPC core 协商 TLS 1.2 及以上版本。
"""

from pathlib import Path

import grpc
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from loguru import logger

from trustd.ca.core import normalize_key_pem
from trustd.errors import TransportError


def _read(path: Path, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise TransportError(f"failed to read {what}: {e}") from e


def load_server_credentials(server_cert: Path, server_key: Path, accepted_cas: Path) -> grpc.ServerCredentials:
    """
    启动时读取并校验一次服务端密钥对和受信任 CA 证书包。
    :raises TransportError: 如果任一文件缺失或无法解析。
    """
    cert_pem = _read(server_cert, "server certificate")
    key_pem = normalize_key_pem(_read(server_key, "server key"))
    accepted_pem = _read(accepted_cas, "accepted CAs")

    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
        key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise TransportError(f"failed to parse server certificate and key: {e}") from e

    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    if cert.public_key().public_bytes(serialization.Encoding.DER, spki) != key.public_key().public_bytes(
        serialization.Encoding.DER, spki
    ):
        raise TransportError("failed to parse server certificate and key: key does not match certificate")

    try:
        accepted = x509.load_pem_x509_certificates(accepted_pem)
    except ValueError as e:
        raise TransportError(f"failed to parse accepted CAs: {e}") from e

    logger.info(
        f"mTLS: server certificate {cert.subject.rfc4514_string()}, "
        f"{len(accepted)} accepted CA(s): {[c.subject.rfc4514_string() for c in accepted]}"
    )
    return grpc.ssl_server_credentials(
        private_key_certificate_chain_pairs=[(key_pem, cert_pem)],
        root_certificates=accepted_pem,
        require_client_auth=True,
    )

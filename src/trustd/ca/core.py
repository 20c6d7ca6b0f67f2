"""
证书签发的核心逻辑：CSR 解码、策略执行、签名以及响应组装。
此模块中的函数均为同步函数，不做任何 I/O。
"""

from datetime import datetime, timedelta, timezone
from typing import Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519
from cryptography.x509.oid import NameOID
from loguru import logger

from trustd.errors import InternalError, ValidationError
from .schemas import (
    CAIdentity,
    CertificateReply,
    IssuedCertificate,
    ParsedCSR,
    SigningOptions,
    SigningPolicy,
)

PEM_BEGIN = b"-----BEGIN "
# Talos 工具用此标签标记 PKCS#8 Ed25519 私钥，cryptography 只识别 "PRIVATE KEY"
ED25519_PEM_LABEL = b"ED25519 PRIVATE KEY"
# 容忍 CA 与请求节点之间的少量时钟偏差
NOT_BEFORE_SKEW = timedelta(minutes=1)


def decode_csr(csr_pem: bytes) -> ParsedCSR:
    """
    解码 PEM 格式的 PKCS#10 请求并校验其自签名。
    :param csr_pem: 调用方发送的 PEM 字节。
    :return: 解析后的请求。
    :raises ValidationError: 如果 PEM 封装或内部结构无效。
    """
    if not csr_pem or PEM_BEGIN not in csr_pem:
        raise ValidationError("failed to decode CSR")

    try:
        csr = x509.load_pem_x509_csr(csr_pem)
        subject = csr.subject
        public_key = csr.public_key()
        signature_valid = csr.is_signature_valid
        try:
            san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        except x509.ExtensionNotFound:
            san = x509.SubjectAlternativeName([])
    except (
        ValueError,
        UnsupportedAlgorithm,
        x509.DuplicateExtension,
        x509.InvalidVersion,
        x509.UnsupportedGeneralNameType,
    ) as e:
        raise ValidationError(f"failed to parse CSR: {e}") from e

    if not signature_valid:
        raise ValidationError("failed to parse CSR: signature is invalid")

    common_names = subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return ParsedCSR(
        subject=subject,
        common_name=str(common_names[0].value) if common_names else None,
        organizations=tuple(
            str(a.value) for a in subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
        ),
        dns_names=tuple(san.get_values_for_type(x509.DNSName)),
        ip_addresses=tuple(san.get_values_for_type(x509.IPAddress)),
        public_key=public_key,
    )


def _strip_organization(subject: x509.Name) -> x509.Name:
    rdns = []
    for rdn in subject.rdns:
        kept = [a for a in rdn if a.oid != NameOID.ORGANIZATION_NAME]
        if kept:
            rdns.append(x509.RelativeDistinguishedName(kept))
    return x509.Name(rdns)


def enforce_policy(parsed: ParsedCSR, policy: SigningPolicy) -> SigningOptions:
    """
    按固定策略从请求构建签名选项，忽略请求中的密钥用途。主体中的组织字段会被移除而不是拒绝：
    旧节点仍会发送该字段且必须能继续获得证书，而没有客户端认证用途和组织字段的证书
    无法声明客户端身份。
    """
    subject = parsed.subject
    removed: Tuple[str, ...] = ()
    if policy.strip_organization and parsed.organizations:
        logger.info(f"removing client auth organization from CSR: {list(parsed.organizations)}")
        subject = _strip_organization(subject)
        removed = parsed.organizations

    return SigningOptions(
        subject=subject,
        key_usage=policy.key_usage,
        extended_key_usages=policy.extended_key_usages,
        dns_names=parsed.dns_names,
        ip_addresses=parsed.ip_addresses,
        removed_organizations=removed,
    )


def normalize_key_pem(key_pem: bytes) -> bytes:
    return key_pem.replace(ED25519_PEM_LABEL, b"PRIVATE KEY")


def load_ca_identity(cert_pem: bytes, key_pem: bytes) -> CAIdentity:
    """
    解析从磁盘读取的 CA 证书和私钥。
    :raises InternalError: 如果任一无法解析，或私钥与证书不匹配。
    """
    try:
        certificate = x509.load_pem_x509_certificate(cert_pem)
        private_key = serialization.load_pem_private_key(normalize_key_pem(key_pem), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InternalError(f"failed to load CA identity: {e}") from e

    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    cert_spki = certificate.public_key().public_bytes(serialization.Encoding.DER, spki)
    key_spki = private_key.public_key().public_bytes(serialization.Encoding.DER, spki)
    if cert_spki != key_spki:
        raise InternalError("failed to load CA identity: private key does not match certificate")

    return CAIdentity(certificate=certificate, private_key=private_key)


def _signature_hash(private_key):
    if isinstance(private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return hashes.SHA256()


def sign_certificate(
    parsed: ParsedCSR,
    options: SigningOptions,
    ca: CAIdentity,
    ttl: timedelta,
) -> IssuedCertificate:
    """
    用 CA 为请求方公钥签发证书。主体和 SAN 来自签名选项，密钥用途来自策略。
    仅在签名成功时返回结果。
    :raises InternalError: 如果证书无法构建或签名。
    """
    now = datetime.now(timezone.utc)
    sans = [x509.DNSName(name) for name in options.dns_names]
    sans += [x509.IPAddress(ip) for ip in options.ip_addresses]

    try:
        builder = (
            x509.CertificateBuilder()
            .subject_name(options.subject)
            .issuer_name(ca.certificate.subject)
            .public_key(parsed.public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - NOT_BEFORE_SKEW)
            .not_valid_after(now + ttl)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(options.key_usage, critical=True)
            .add_extension(x509.ExtendedKeyUsage(list(options.extended_key_usages)), critical=False)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(parsed.public_key), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.certificate.public_key()),
                critical=False,
            )
        )
        if sans:
            # RFC 5280：主体为空时 SAN 必须为关键扩展
            builder = builder.add_extension(
                x509.SubjectAlternativeName(sans), critical=len(options.subject) == 0
            )
        cert = builder.sign(private_key=ca.private_key, algorithm=_signature_hash(ca.private_key))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InternalError(f"failed to sign CSR: {e}") from e

    return IssuedCertificate(
        pem=cert.public_bytes(serialization.Encoding.PEM),
        subject=cert.subject.rfc4514_string(),
        serial_number=cert.serial_number,
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        dns_names=list(options.dns_names),
        ip_addresses=[str(ip) for ip in options.ip_addresses],
    )


def assemble_response(issued: IssuedCertificate, accepted_cas: bytes) -> CertificateReply:
    return CertificateReply(ca=accepted_cas, crt=issued.pem)

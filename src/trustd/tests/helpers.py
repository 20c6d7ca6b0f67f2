"""
测试辅助函数：生成临时 CA、叶子证书和 CSR。
"""

import base64
import ipaddress
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID


def _private_pem(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _hash_for(key):
    return None if isinstance(key, ed25519.Ed25519PrivateKey) else hashes.SHA256()


def new_key(kind: str = "ed25519"):
    if kind == "ed25519":
        return ed25519.Ed25519PrivateKey.generate()
    return ec.generate_private_key(ec.SECP256R1())


def make_ca(organization: str = "test-ca", kind: str = "ed25519"):
    """有效期一小时的自签名 CA，返回 (cert_pem, key_pem, cert, key)"""
    key = new_key(kind)
    name = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(hours=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, _hash_for(key))
    )
    return cert.public_bytes(serialization.Encoding.PEM), _private_pem(key), cert, key


def make_leaf(ca_cert, ca_key, common_name: str, server: bool, kind: str = "ec"):
    """TLS 测试用的叶子证书，返回 (cert_pem, key_pem)"""
    key = new_key(kind)
    now = datetime.now(timezone.utc)
    usage = ExtendedKeyUsageOID.SERVER_AUTH if server else ExtendedKeyUsageOID.CLIENT_AUTH
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(hours=1))
        .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
    )
    if server:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
    cert = builder.sign(ca_key, _hash_for(ca_key))
    return cert.public_bytes(serialization.Encoding.PEM), _private_pem(key)


def make_csr(
    common_name: Optional[str] = "test-server",
    dns_names: Optional[List[str]] = None,
    ip_addresses: Optional[List[str]] = None,
    organizations: Optional[List[str]] = None,
    key=None,
    extensions: Optional[list] = None,
) -> bytes:
    """用 key 签名的 PEM CSR（未给出时使用新的 Ed25519 密钥）"""
    key = key or new_key("ed25519")
    attributes = []
    if common_name is not None:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    for org in organizations or []:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))

    builder = x509.CertificateSigningRequestBuilder().subject_name(x509.Name(attributes))
    sans = [x509.DNSName(n) for n in dns_names or []]
    sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses or []]
    if sans:
        builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
    for ext, critical in extensions or []:
        builder = builder.add_extension(ext, critical=critical)
    return builder.sign(key, _hash_for(key)).public_bytes(serialization.Encoding.PEM)


def der_to_pem_csr(der: bytes) -> bytes:
    body = base64.encodebytes(der)
    return b"-----BEGIN CERTIFICATE REQUEST-----\n" + body + b"-----END CERTIFICATE REQUEST-----\n"


def make_duplicate_extension_csr() -> bytes:
    """包含两个相同 OID 扩展的 CSR（签名因此失效）"""
    first = x509.UnrecognizedExtension(x509.ObjectIdentifier("1.2.3.4"), b"\x05\x00")
    second = x509.UnrecognizedExtension(x509.ObjectIdentifier("1.2.3.5"), b"\x05\x00")
    pem = make_csr(extensions=[(first, False), (second, False)])
    der = x509.load_pem_x509_csr(pem).public_bytes(serialization.Encoding.DER)
    # 1.2.3.5 的 DER 编码改写为 1.2.3.4
    der = der.replace(b"\x06\x03\x2a\x03\x05", b"\x06\x03\x2a\x03\x04")
    return der_to_pem_csr(der)


def make_bad_version_csr(version: int = 5) -> bytes:
    der = x509.load_pem_x509_csr(make_csr()).public_bytes(serialization.Encoding.DER)
    # CertificationRequestInfo 的第一个 INTEGER 就是版本号
    der = der.replace(b"\x02\x01\x00", b"\x02\x01" + bytes([version]), 1)
    return der_to_pem_csr(der)

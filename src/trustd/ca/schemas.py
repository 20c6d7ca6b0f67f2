"""
证书签发流程的数据模型。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID
from pydantic import BaseModel, ConfigDict


class CertificateRequestPayload(BaseModel):
    """
    Certificate 调用的请求：PEM 格式的 PKCS#10 CSR。
    """
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    csr: bytes

    def describe(self, method: str) -> List[str]:
        return [
            f"rpc {method} request json:\n{self.model_dump_json(indent=2)}",
            f"rpc {method} request.csr (len={len(self.csr)}):\n{self.csr.decode('utf-8', 'replace')}",
        ]


class CertificateReply(BaseModel):
    """
    Certificate 调用的响应：受信任的 CA 证书包和签发的叶子证书，均为 PEM。
    """
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    ca: bytes
    crt: bytes

    def describe(self, method: str) -> List[str]:
        return [
            f"rpc {method} response json:\n{self.model_dump_json(indent=2)}",
            f"rpc {method} response.ca (len={len(self.ca)}):\n{self.ca.decode('utf-8', 'replace')}",
            f"rpc {method} response.crt (len={len(self.crt)}):\n{self.crt.decode('utf-8', 'replace')}",
        ]


class IssuedCertificate(BaseModel):
    """
    签发的叶子证书，以及签发时写入日志的元数据。
    """
    pem: bytes
    subject: str
    serial_number: int
    not_before: datetime
    not_after: datetime
    dns_names: List[str] = []
    ip_addresses: List[str] = []


@dataclass(frozen=True)
class ParsedCSR:
    subject: x509.Name
    common_name: Optional[str]
    organizations: Tuple[str, ...]
    dns_names: Tuple[str, ...]
    ip_addresses: Tuple[Any, ...]
    public_key: Any


@dataclass(frozen=True)
class SigningPolicy:
    """固定的签发规则，从不取自请求。"""

    key_usage: x509.KeyUsage
    extended_key_usages: Tuple[x509.ObjectIdentifier, ...]
    strip_organization: bool = True


@dataclass(frozen=True)
class SigningOptions:
    subject: x509.Name
    key_usage: x509.KeyUsage
    extended_key_usages: Tuple[x509.ObjectIdentifier, ...]
    dns_names: Tuple[str, ...]
    ip_addresses: Tuple[Any, ...]
    removed_organizations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CAIdentity:
    certificate: x509.Certificate
    private_key: Any = field(repr=False)


SERVER_ONLY_POLICY = SigningPolicy(
    key_usage=x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    ),
    extended_key_usages=(ExtendedKeyUsageOID.SERVER_AUTH,),
)

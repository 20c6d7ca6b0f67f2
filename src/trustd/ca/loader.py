"""
从磁盘读取 CA 材料。不做缓存：每次调用都读取文件的当前内容，
CA 轮换后无需重启即可生效。
"""

from pathlib import Path
from typing import Tuple

from trustd.errors import InternalError


def _read(path: Path, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise InternalError(f"failed to read {what}: {e}") from e


class CAMaterialLoader:
    def __init__(self, ca_cert: Path, ca_key: Path, accepted_cas: Path):
        self.ca_cert = ca_cert
        self.ca_key = ca_key
        self.accepted_cas = accepted_cas

    def load_ca(self) -> Tuple[bytes, bytes]:
        """
        读取 CA 证书和私钥。
        :return: (证书 PEM, 私钥 PEM)
        :raises InternalError: 如果任一文件无法读取。
        """
        return _read(self.ca_cert, "CA certificate"), _read(self.ca_key, "CA key")

    def load_accepted_cas(self) -> bytes:
        """读取用于校验客户端的受信任 CA PEM 证书包。"""
        return _read(self.accepted_cas, "accepted CAs")

"""
共享 fixture：临时 CA、磁盘上的 CA 文件以及 loguru 日志捕获。
"""

from typing import List

import pytest
from loguru import logger

from trustd.ca.loader import CAMaterialLoader
from trustd.tests.helpers import make_ca


@pytest.fixture
def ca():
    return make_ca()


@pytest.fixture
def ca_files(tmp_path, ca):
    """磁盘上的 CA 证书、私钥和受信任 CA 证书包，证书包即 CA 自身"""
    cert_pem, key_pem, _, _ = ca
    paths = {
        "ca_cert": tmp_path / "ca.crt",
        "ca_key": tmp_path / "ca.key",
        "accepted_cas": tmp_path / "accepted-cas.crt",
    }
    paths["ca_cert"].write_bytes(cert_pem)
    paths["ca_key"].write_bytes(key_pem)
    paths["accepted_cas"].write_bytes(cert_pem)
    return paths


@pytest.fixture
def loader(ca_files):
    return CAMaterialLoader(ca_files["ca_cert"], ca_files["ca_key"], ca_files["accepted_cas"])


@pytest.fixture
def log_messages():
    """测试期间通过 loguru 输出的日志消息"""
    messages: List[str] = []
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)

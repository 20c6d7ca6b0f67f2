"""
测试 tls.py 模块：服务端凭据加载。
"""

import grpc
import pytest

from trustd.errors import TransportError
from trustd.rpc.tls import load_server_credentials
from trustd.tests.helpers import make_ca, make_leaf


@pytest.fixture
def tls_files(tmp_path):
    ca_pem, _, ca_cert, ca_key = make_ca(kind="ec")
    cert_pem, key_pem = make_leaf(ca_cert, ca_key, "trustd", server=True)
    paths = {
        "server_cert": tmp_path / "server.crt",
        "server_key": tmp_path / "server.key",
        "accepted_cas": tmp_path / "accepted-cas.crt",
    }
    paths["server_cert"].write_bytes(cert_pem)
    paths["server_key"].write_bytes(key_pem)
    paths["accepted_cas"].write_bytes(ca_pem)
    return paths


def _load(paths):
    return load_server_credentials(paths["server_cert"], paths["server_key"], paths["accepted_cas"])


def test_load_server_credentials(tls_files):
    assert isinstance(_load(tls_files), grpc.ServerCredentials)


def test_load_server_credentials_with_bundle_of_several_cas(tls_files):
    other_pem = make_ca(organization="other-ca")[0]
    tls_files["accepted_cas"].write_bytes(tls_files["accepted_cas"].read_bytes() + other_pem)
    assert isinstance(_load(tls_files), grpc.ServerCredentials)


def test_missing_file(tls_files):
    tls_files["server_key"].unlink()
    with pytest.raises(TransportError, match="failed to read server key"):
        _load(tls_files)


def test_unparsable_accepted_cas(tls_files):
    tls_files["accepted_cas"].write_bytes(b"not a certificate")
    with pytest.raises(TransportError, match="failed to parse accepted CAs"):
        _load(tls_files)


def test_key_not_matching_certificate(tls_files):
    _, _, ca_cert, ca_key = make_ca(kind="ec")
    _, other_key = make_leaf(ca_cert, ca_key, "other", server=True)
    tls_files["server_key"].write_bytes(other_key)
    with pytest.raises(TransportError, match="does not match"):
        _load(tls_files)

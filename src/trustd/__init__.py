"""
独立 trustd：通过双向 TLS 为集群节点签发服务端证书。
"""

__version__ = "0.1.0"

"""
基于 loguru 的按详细级别过滤的日志。

级别：0 = 最少，1 = 连接，2 = RPC 头部与认证细节，3 = 请求/响应内容。
"""

from loguru import logger

MIN = 0
CONN = 1
RPC = 2
PAYLOAD = 3

REDACTED = "******"
SECRET_HEADERS = frozenset({"token", "authorization"})


class Verbosity:
    def __init__(self, level: int):
        self.level = level

    def enabled(self, level: int) -> bool:
        return self.level >= level

    def log(self, level: int, message: str) -> None:
        """配置的详细级别不低于 level 时以 INFO 输出 message。"""
        if self.enabled(level):
            logger.opt(depth=1).info(message)


def redact_metadata(metadata: dict[str, list[str]] | None) -> dict[str, list[str]]:
    if not metadata:
        return {}
    return {
        key: [REDACTED] * len(values) if key.lower() in SECRET_HEADERS else list(values)
        for key, values in metadata.items()
    }

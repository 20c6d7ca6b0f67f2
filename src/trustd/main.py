"""
进程组装：信号处理、调试端口、双向 TLS 凭据以及 gRPC 服务端。
"""

import asyncio
import signal

from loguru import logger

from trustd.ca.core import load_ca_identity
from trustd.ca.loader import CAMaterialLoader
from trustd.config import Config
from trustd.debug import run_debug_server
from trustd.errors import InternalError, TransportError
from trustd.rpc.server import TrustdServer
from trustd.rpc.tls import load_server_credentials


def check_ca_material(config: Config) -> None:
    """
    启动时校验一次 CA 证书和私钥。每次调用仍会重新读取，这里只确保路径和内容在启动时有效。
    :raises TransportError: 如果 CA 材料无法读取或解析。
    """
    loader = CAMaterialLoader(config.ca_cert, config.ca_key, config.accepted_cas)
    try:
        load_ca_identity(*loader.load_ca())
    except InternalError as e:
        raise TransportError(f"failed to create TLS configuration: {e.message}") from e


async def run(config: Config) -> None:
    """
    运行服务直到收到 SIGTERM 或 SIGINT。
    :raises TransportError: 如果 TLS 或 CA 材料无法加载。
    :raises BindError: 如果监听地址无法绑定。
    :raises ServeError: 如果服务循环失败。
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    logger.info(f"config: {config.summary()}")

    debug_task = asyncio.create_task(run_debug_server(config, stop))
    try:
        credentials = load_server_credentials(config.server_cert, config.server_key, config.accepted_cas)
        check_ca_material(config)
        server = TrustdServer(config, credentials)
        await server.serve(stop)
    finally:
        stop.set()
        await debug_task
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

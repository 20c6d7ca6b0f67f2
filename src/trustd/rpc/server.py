"""
gRPC 服务端生命周期：绑定端口，服务直到停止事件触发，然后等待进行中的调用结束。
"""

import asyncio
from typing import Optional

import grpc
from grpc import aio
from loguru import logger

from trustd.config import Config
from trustd.errors import BindError, ServeError
from .router import SecurityRouter


class TrustdServer:
    def __init__(
        self,
        config: Config,
        credentials: grpc.ServerCredentials,
        router: Optional[SecurityRouter] = None,
    ):
        self.config = config
        self.credentials = credentials
        self.router = router or SecurityRouter(config)
        self.bound_port: Optional[int] = None
        self._server: Optional[aio.Server] = None

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    async def start(self) -> None:
        """
        绑定监听地址并开始接受连接。
        :raises BindError: 如果地址无法绑定。
        """
        # 同一端口上的第二个进程必须绑定失败，而不是共享端口
        server = aio.server(options=[("grpc.so_reuseport", 0)])
        server.add_generic_rpc_handlers((self.router.generic_handler(),))
        try:
            port = server.add_secure_port(self.address, self.credentials)
        except RuntimeError as e:
            raise BindError(f"failed to listen on {self.address}: {e}") from e
        if not port:
            raise BindError(f"failed to listen on {self.address}")

        await server.start()
        self._server = server
        self.bound_port = port
        logger.info(f"Starting standalone trustd on {self.config.host}:{port}")

    async def serve(self, stop: asyncio.Event) -> None:
        """
        持续服务直到 stop 被设置，然后停止接受新调用，并给进行中的调用
        shutdown_grace 秒时间完成。
        :raises ServeError: 如果服务端自行停止或在收尾时失败。
        """
        if self._server is None:
            await self.start()
        server = self._server

        termination = asyncio.create_task(server.wait_for_termination())
        stopping = asyncio.create_task(stop.wait())
        done, _ = await asyncio.wait({termination, stopping}, return_when=asyncio.FIRST_COMPLETED)

        if termination in done:
            stopping.cancel()
            error = termination.exception()
            raise ServeError(f"server failed: {error}" if error else "server terminated unexpectedly")

        logger.info("Shutting down server...")
        try:
            await server.stop(self.config.shutdown_grace)
            await termination
        except Exception as e:
            raise ServeError(f"server failed: {e}") from e
        logger.info("Server stopped")

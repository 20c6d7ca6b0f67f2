"""
调试 HTTP 端口：健康检查和配置摘要，由 uvicorn 在 gRPC 监听端口之外提供服务。
"""

import asyncio
import threading

import uvicorn
from fastapi import FastAPI
from loguru import logger

from trustd import __version__
from trustd.config import Config
from trustd.verbosity import CONN, Verbosity


def create_debug_app(config: Config) -> FastAPI:
    app = FastAPI(title="standalone trustd debug", version=__version__)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/debug/info")
    async def info():
        return {
            "version": __version__,
            "port": config.port,
            "debug_port": config.debug_port,
            "verbosity": config.verbosity,
            "certificate_ttl_seconds": int(config.certificate_ttl.total_seconds()),
        }

    return app


async def run_debug_server(config: Config, stop: asyncio.Event) -> None:
    """
    提供调试服务直到 stop 被设置。uvicorn 运行在独立线程中，不会接管进程的信号处理。
    """
    verbosity = Verbosity(config.verbosity)
    if not config.debug_port:
        verbosity.log(CONN, "debug server disabled")
        await stop.wait()
        return

    server = uvicorn.Server(
        uvicorn.Config(
            create_debug_app(config),
            host="127.0.0.1",
            port=config.debug_port,
            log_level="warning",
        )
    )
    thread = threading.Thread(target=server.run, name="trustd-debug", daemon=True)
    thread.start()
    verbosity.log(CONN, f"debug server started on 127.0.0.1:{config.debug_port}")
    try:
        await stop.wait()
    finally:
        server.should_exit = True
        await asyncio.to_thread(thread.join)
        verbosity.log(CONN, "debug server stopped")

#!/usr/bin/env python
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from trustd.config import Config
from trustd.errors import BindError, ServeError, TransportError
from trustd.main import run

# 与 Config 字段一一对应的命令行参数
_FLAGS = (
    "port",
    "host",
    "ca_cert",
    "ca_key",
    "server_cert",
    "server_key",
    "accepted_cas",
    "auth_token",
    "debug_port",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trustd", description="Standalone trustd certificate service")
    parser.add_argument("--port", type=int, help="port to listen on (default 50001)")
    parser.add_argument("--host", help="address to listen on (default [::])")
    parser.add_argument("--ca-cert", help="path to CA certificate file")
    parser.add_argument("--ca-key", help="path to CA private key file")
    parser.add_argument("--server-cert", help="path to server certificate file")
    parser.add_argument("--server-key", help="path to server private key file")
    parser.add_argument("--accepted-cas", help="path to accepted CA certificates file")
    parser.add_argument("--auth-token", help="authentication token for client connections")
    parser.add_argument("--debug-port", type=int, help="debug server port, 0 disables (default 9983)")
    parser.add_argument(
        "-v", dest="verbosity", type=int, choices=range(4),
        help="verbosity level (0=min, 1=conn, 2=rpc, 3=payload; default 2)",
    )
    return parser


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """只有命令行中给出的参数才会覆盖其他配置源。"""
    overrides = {name: getattr(args, name) for name in _FLAGS if getattr(args, name) is not None}
    if args.verbosity is not None:
        overrides["verbosity"] = args.verbosity
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(Path.cwd() / ".env")
    args = build_parser().parse_args(argv)

    try:
        config = Config(**config_overrides(args))
    except ValidationError as e:
        logger.error(f"invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run(config))
    except (TransportError, BindError, ServeError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
配置加载：构造参数、环境变量、.env 以及工作目录下的 JSON 文件（或 TRUSTD_CONFIG_FILE
指定的路径），按此顺序合并。
公开接口：
- Config: 配置对象，由入口构建一次后传给服务端、拦截阶段和证书处理器
内部：
- JsonFileSettingsSource: 读取 JSON 配置文件
- Config.settings_customise_sources: 配置源优先级
"""

from __future__ import annotations

import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_FILE_ENV = "TRUSTD_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "trustd.json"


class JsonFileSettingsSource(PydanticBaseSettingsSource):
    """从工作目录下的 trustd.json 或 TRUSTD_CONFIG_FILE 指定的文件加载配置。"""

    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        self._data: Dict[str, Any] | None = None

    def _load(self) -> None:
        if self._data is not None:
            return
        cfg_path = os.environ.get(CONFIG_FILE_ENV)
        path = Path(cfg_path) if cfg_path else Path.cwd() / DEFAULT_CONFIG_FILE
        if not path.exists():
            self._data = {}
            return
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"ignoring unreadable config file {path}: {e}")
            data = {}
        self._data = data if isinstance(data, dict) else {}

    def __call__(self) -> Dict[str, Any]:
        self._load()
        return dict(self._data or {})

    def get_field_value(self, field, field_name):  # type: ignore[override]
        self._load()
        data = self._data or {}
        if field_name in data:
            return data[field_name], field_name, False
        return None, field_name, False


class Config(BaseSettings):
    port: int = Field(50001, ge=0, le=65535)
    host: str = "[::]"
    ca_cert: Optional[Path] = None
    ca_key: Optional[Path] = None
    server_cert: Optional[Path] = None
    server_key: Optional[Path] = None
    accepted_cas: Optional[Path] = None
    auth_token: SecretStr = SecretStr("")
    debug_port: int = Field(9983, ge=0, le=65535)
    # 0=min, 1=conn, 2=rpc, 3=payload
    verbosity: int = Field(2, ge=0, le=3)
    certificate_ttl: timedelta = timedelta(hours=24)
    shutdown_grace: float = Field(5.0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="TRUSTD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_required(self) -> "Config":
        if self.ca_cert is None or self.ca_key is None:
            raise ValueError("ca_cert and ca_key are required")
        if self.server_cert is None or self.server_key is None:
            raise ValueError("server_cert and server_key are required")
        if self.accepted_cas is None:
            raise ValueError("accepted_cas is required")
        if not self.auth_token.get_secret_value():
            raise ValueError("auth_token is required")
        if self.certificate_ttl <= timedelta(0):
            raise ValueError("certificate_ttl must be positive")
        return self

    def summary(self) -> Dict[str, Any]:
        """可写入日志的配置视图，token 始终被掩码。"""
        data = self.model_dump(mode="json")
        data["auth_token"] = "******"
        return data

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """配置源优先级：构造参数 > 环境变量 > .env > trustd.json > secrets。"""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonFileSettingsSource(settings_cls),
            file_secret_settings,
        )

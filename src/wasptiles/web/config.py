from __future__ import annotations

import os
from dataclasses import dataclass, field

from wasptiles.config import EngineConfig, load_config as load_engine_config


@dataclass(frozen=True)
class ServerConfig:
    engine: EngineConfig = field(default_factory=load_engine_config)
    host: str = "0.0.0.0"
    port: int = 8000
    production: bool = False

    @property
    def cache_control(self) -> str:
        max_age = 3600 if self.production else 0
        return f"max-age={max_age}, s-maxage=3600"


def load_config() -> ServerConfig:
    host = os.getenv("WASPTILES_WEB_HOST", "0.0.0.0")
    port_str = os.getenv("WASPTILES_WEB_PORT", "8000")
    try:
        port = int(port_str)
    except ValueError:
        port = 8000
    production = os.getenv("WASPTILES_ENV", "development").lower() == "production"
    return ServerConfig(
        engine=load_engine_config(), host=host, port=port, production=production
    )

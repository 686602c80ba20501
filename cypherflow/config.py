from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_MODEL_NAME, DEFAULT_PORT


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class ModelConfig(BaseModel):
    """Generative model settings used by the pipeline activities."""

    name: str = DEFAULT_MODEL_NAME
    api_key: Optional[str] = None
    generator: Literal["static", "agent"] = "static"
    enforce_validity: bool = True


class CypherflowConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    model: ModelConfig = ModelConfig()
    database_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> CypherflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CYPHERFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CYPHERFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CypherflowConfig(**data)
    else:
        config = CypherflowConfig()

    env_db_url = os.getenv("CYPHERFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_transport = os.getenv("CYPHERFLOW_TRANSPORT")
    if env_transport:
        config.transport.backend = env_transport.lower()
    env_port = os.getenv("PORT")
    if env_port:
        config.port = int(env_port)
    env_api_key = os.getenv("GEMINI_API_KEY")
    if env_api_key:
        config.model.api_key = env_api_key
    env_log_level = os.getenv("LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level.upper()
    return config

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from database.base import KeyValueStore
from database.memory_store import MemoryStore
from database.redis_store import RedisStore

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:9002"
DEFAULT_COLLECTION_TTL = 7 * 24 * 60 * 60


def _load_env_file(env_path: Optional[Path] = None) -> None:
    # existing environment variables take precedence over the file
    load_dotenv(dotenv_path=env_path, override=False)


def _to_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer.") from exc


def _parse_float(name: str, raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number.") from exc


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    decode_responses: bool = True
    socket_timeout: Optional[float] = None
    ssl: bool = False
    in_memory: bool = False

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "RedisConfig":
        _load_env_file(env_path)

        uri = os.getenv("REDIS_URI") or os.getenv("REDIS_URL")
        if uri:
            return cls.from_uri(uri)

        host = os.getenv("REDIS_HOST", cls.host)
        password = os.getenv("REDIS_PASSWORD") or None
        decode = _to_bool(os.getenv("REDIS_DECODE_RESPONSES"), default=True)

        port = _parse_int("REDIS_PORT", os.getenv("REDIS_PORT"), cls.port)
        db = _parse_int("REDIS_DB", os.getenv("REDIS_DB"), cls.db)
        timeout = _parse_float("REDIS_SOCKET_TIMEOUT", os.getenv("REDIS_SOCKET_TIMEOUT"))

        return cls(host=host, port=port, db=db, password=password,
                   decode_responses=decode, socket_timeout=timeout)

    @classmethod
    def from_uri(cls, uri: str) -> "RedisConfig":
        parsed = urlparse(uri)
        if parsed.scheme == "memory":
            return cls(in_memory=True)
        if parsed.scheme not in {"redis", "rediss"}:
            raise ValueError(
                f"Unsupported Redis URI scheme: {parsed.scheme!r}")

        host = parsed.hostname or cls.host
        port = parsed.port or cls.port
        password = parsed.password or None
        db_fragment = parsed.path.lstrip("/")
        db = int(db_fragment) if db_fragment else cls.db

        decode = _to_bool(os.getenv("REDIS_DECODE_RESPONSES"), default=True)
        timeout = _parse_float("REDIS_SOCKET_TIMEOUT", os.getenv("REDIS_SOCKET_TIMEOUT"))

        return cls(host=host, port=port, db=db, password=password,
                   decode_responses=decode, socket_timeout=timeout,
                   ssl=parsed.scheme == "rediss")

    def create_store(self) -> KeyValueStore:
        if self.in_memory:
            logger.warning("Using in-memory store; collections are lost on restart")
            return MemoryStore()
        return RedisStore(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=self.decode_responses,
            socket_timeout=self.socket_timeout,
            ssl=self.ssl,
        )


@dataclass(frozen=True)
class AppConfig:
    base_url: str = DEFAULT_BASE_URL
    collection_ttl: int = DEFAULT_COLLECTION_TTL
    log_level: str = "INFO"
    redis: RedisConfig = field(default_factory=RedisConfig)

    def __post_init__(self) -> None:
        if self.collection_ttl <= 0:
            raise ValueError("collection_ttl must be a positive number of seconds")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "AppConfig":
        _load_env_file(env_path)
        return cls(
            base_url=os.getenv("CLIPSHARE_BASE_URL") or DEFAULT_BASE_URL,
            collection_ttl=_parse_int(
                "CLIPSHARE_COLLECTION_TTL", os.getenv("CLIPSHARE_COLLECTION_TTL"), DEFAULT_COLLECTION_TTL),
            log_level=(os.getenv("CLIPSHARE_LOG_LEVEL") or "INFO").upper(),
            redis=RedisConfig.from_env(env_path=env_path),
        )

"""
Client configuration models.

All defaults live here as named constants; nothing is read from module
state at write time. Build a ClientConfig explicitly, from the environment
(ClientConfig.from_env) or through ConfigLoader.
"""

import os
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator

from .batching import DEFAULT_BATCH_SIZE, DEFAULT_CAPACITY
from .point import Precision

DEFAULT_HOST = "http://localhost:8181"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_WRITE_BATCH_SIZE = 5000
DEFAULT_MAX_BATCH_BYTES = 50_000_000
DEFAULT_FLUSH_INTERVAL_SECONDS = 60.0
DEFAULT_EXPIRATION_SECONDS = 180.0


class WriteOptions(BaseModel):
    """Options applied to every synchronous write"""
    precision: Precision = Precision.NANOSECOND
    default_tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator('precision', mode='before')
    @classmethod
    def parse_precision(cls, value: Any) -> Precision:
        return Precision.parse(value)


class BatchingConfig(BaseModel):
    """Configuration for Batcher / LPBatcher"""
    size: int = Field(DEFAULT_BATCH_SIZE, ge=1)  # Points (Batcher) or bytes (LPBatcher) per batch
    capacity: int = Field(DEFAULT_CAPACITY, ge=0)


class WriteParams(WriteOptions):
    """Configuration for the asynchronous PointsWriter"""
    batch_size: int = Field(DEFAULT_WRITE_BATCH_SIZE, ge=1)  # Lines per batch
    max_batch_bytes: int = Field(DEFAULT_MAX_BATCH_BYTES, ge=1)  # Bytes per batch
    flush_interval_seconds: float = Field(DEFAULT_FLUSH_INTERVAL_SECONDS, gt=0)
    expiration_seconds: float = Field(DEFAULT_EXPIRATION_SECONDS, ge=0)  # Unsent batches older than this are dropped
    # write_failed(error, lines or None, expires or None)
    write_failed: Optional[Callable[..., Any]] = Field(default=None, exclude=True)


class ClientConfig(BaseModel):
    host: str = DEFAULT_HOST
    token: str = ""
    organization: str = ""
    database: str = ""
    timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)
    write_options: WriteOptions = Field(default_factory=WriteOptions)
    write_params: WriteParams = Field(default_factory=WriteParams)
    batching: BatchingConfig = Field(default_factory=BatchingConfig)

    @field_validator('host')
    @classmethod
    def check_host(cls, value: str) -> str:
        if not value:
            raise ValueError("empty host")
        if urlsplit(value).scheme not in ('http', 'https'):
            raise ValueError("only http or https is supported")
        return value

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load config from environment variables"""
        precision = os.getenv("LINEFLUX_PRECISION", "ns")
        return cls(
            host=os.getenv("LINEFLUX_HOST", DEFAULT_HOST),
            token=os.getenv("LINEFLUX_TOKEN", ""),
            organization=os.getenv("LINEFLUX_ORG", ""),
            database=os.getenv("LINEFLUX_DATABASE", ""),
            timeout_seconds=float(os.getenv("LINEFLUX_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
            write_options=WriteOptions(precision=precision),
            write_params=WriteParams(
                precision=precision,
                batch_size=int(os.getenv("LINEFLUX_WRITE_BATCH_SIZE", str(DEFAULT_WRITE_BATCH_SIZE))),
                max_batch_bytes=int(os.getenv("LINEFLUX_WRITE_MAX_BATCH_BYTES", str(DEFAULT_MAX_BATCH_BYTES))),
                flush_interval_seconds=float(
                    os.getenv("LINEFLUX_WRITE_FLUSH_INTERVAL", str(DEFAULT_FLUSH_INTERVAL_SECONDS))
                ),
                expiration_seconds=float(
                    os.getenv("LINEFLUX_WRITE_EXPIRATION", str(DEFAULT_EXPIRATION_SECONDS))
                ),
            ),
            batching=BatchingConfig(
                size=int(os.getenv("LINEFLUX_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
                capacity=int(os.getenv("LINEFLUX_BATCH_CAPACITY", str(DEFAULT_CAPACITY))),
            ),
        )

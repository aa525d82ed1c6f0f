# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Pydantic models for the pystalk client.

Provides validated configuration for the client and the worker loop.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .serde import Deserializer, Serializer
from .types import DEFAULT_PORT, DEFAULT_PRIORITY


class FailureAction(str, Enum):
    """What a worker does with a job whose handler raised."""
    BURY = "bury"
    RELEASE = "release"


# ============================================================================
# Configuration Models
# ============================================================================


class ClientConfig(BaseModel):
    """Configuration for a beanstalkd connection."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    host: str = "localhost"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    connect_timeout_ms: int = Field(default=10000, ge=100, le=300000)
    socket_timeout_ms: int | None = Field(
        default=None,
        ge=100,
        description="Read/write timeout; None blocks, which plain reserve needs",
    )
    keepalive: bool = True

    # Job body encryption
    encryption_enabled: bool = False
    encryption_key: str | None = Field(
        default=None,
        description="64-character hex string for AES-256 encryption"
    )

    # Default serializer and deserializer for put_object/reserve_object
    value_serializer: Serializer | None = None
    value_deserializer: Deserializer | None = None

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str | None) -> str | None:
        if v is not None:
            if len(v) != 64:
                raise ValueError("Encryption key must be 64 hex characters (256 bits)")
            try:
                bytes.fromhex(v)
            except ValueError:
                raise ValueError("Encryption key must be valid hexadecimal")
        return v


class WorkerConfig(BaseModel):
    """Configuration for a Worker loop."""

    model_config = ConfigDict(validate_assignment=True)

    reserve_timeout: int = Field(default=5, ge=0, description="Seconds sent with reserve-with-timeout")
    ignore_default: bool = Field(default=True, description="Stop watching 'default' once other tubes are watched")
    failure_action: FailureAction = FailureAction.BURY
    failure_priority: int = Field(default=DEFAULT_PRIORITY, ge=0, lt=2**32)
    release_delay: int = Field(default=0, ge=0)

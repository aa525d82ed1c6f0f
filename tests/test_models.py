# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for ClientConfig validation."""

import pytest
from pydantic import ValidationError

from pystalk import ClientConfig, generate_key
from pystalk.serde import JsonSerializer


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.host == "localhost"
        assert config.port == 11300
        assert config.socket_timeout_ms is None
        assert config.keepalive is True
        assert config.encryption_enabled is False

    @pytest.mark.parametrize("port", [0, 65536])
    def test_rejects_bad_port(self, port: int) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(port=port)

    def test_rejects_tiny_timeouts(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(connect_timeout_ms=10)
        with pytest.raises(ValidationError):
            ClientConfig(socket_timeout_ms=10)

    def test_encryption_key(self) -> None:
        key = generate_key()
        assert ClientConfig(encryption_key=key).encryption_key == key

    @pytest.mark.parametrize("key", ["abc", "zz" * 32])
    def test_rejects_bad_encryption_key(self, key: str) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(encryption_key=key)

    def test_validates_assignment(self) -> None:
        config = ClientConfig()
        with pytest.raises(ValidationError):
            config.port = -1

    def test_accepts_serializer(self) -> None:
        serializer = JsonSerializer()
        assert ClientConfig(value_serializer=serializer).value_serializer is serializer

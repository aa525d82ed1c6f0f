# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for body serializers and stats decoding."""

import pytest

from pystalk import UnexpectedResponseError
from pystalk.serde import (
    BytesSerializer,
    JsonSerializer,
    SerdeRegistry,
    Serdes,
    StringDeserializer,
    decode_stats,
)


class TestSerdes:
    """Tests for the built-in serializers."""

    def test_string(self) -> None:
        ser, deser = Serdes.string()
        assert ser.serialize("héllo") == "héllo".encode("utf-8")
        assert ser.serialize(42) == b"42"
        assert deser.deserialize(b"abc") == "abc"

    def test_bytes_rejects_other_types(self) -> None:
        with pytest.raises(ValueError):
            BytesSerializer().serialize("text")

    def test_json(self) -> None:
        ser, deser = Serdes.json()
        data = ser.serialize({"to": "a@example.com", "retries": 3})
        assert deser.deserialize(data) == {"to": "a@example.com", "retries": 3}

    def test_json_custom_encoder(self) -> None:
        ser = JsonSerializer(encoder=lambda obj: sorted(obj))
        assert ser.serialize({"tags": {"b", "a"}}) == b'{"tags": ["a", "b"]}'

    def test_registry_defaults(self) -> None:
        ser, deser = SerdeRegistry.get("string")
        assert ser is not None
        assert isinstance(deser, StringDeserializer)
        assert SerdeRegistry.get("missing") == (None, None)

    def test_registry_lookup_by_name(self) -> None:
        assert isinstance(SerdeRegistry.serializer("json"), JsonSerializer)
        with pytest.raises(ValueError, match="yaml"):
            SerdeRegistry.deserializer("yaml")


class TestDecodeStats:
    """Tests for decode_stats."""

    def test_values_stay_strings(self) -> None:
        body = b"---\ncurrent-jobs-ready: 3\ndraining: false\nversion: \"1.13\"\nrusage-utime: 0.5\n"
        assert decode_stats(body) == {
            "current-jobs-ready": "3",
            "draining": "false",
            "version": "1.13",
            "rusage-utime": "0.5",
        }

    def test_non_mapping(self) -> None:
        with pytest.raises(UnexpectedResponseError):
            decode_stats(b"---\n- one\n- two\n")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(UnexpectedResponseError):
            decode_stats(b"key: [unclosed\n")

    def test_invalid_utf8(self) -> None:
        with pytest.raises(UnexpectedResponseError):
            decode_stats(b"\xff\xfe: x\n")

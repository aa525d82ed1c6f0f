import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import yaml

from .exceptions import UnexpectedResponseError

class Serializer(ABC):
    @abstractmethod
    def serialize(self, data: Any) -> bytes:
        pass

class Deserializer(ABC):
    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        pass

class StringSerializer(Serializer):
    def serialize(self, data: Any) -> bytes:
        if isinstance(data, str):
            return data.encode('utf-8')
        return str(data).encode('utf-8')

class StringDeserializer(Deserializer):
    def deserialize(self, data: bytes) -> str:
        return data.decode('utf-8')

class BytesSerializer(Serializer):
    def serialize(self, data: Any) -> bytes:
        if isinstance(data, bytes):
            return data
        raise ValueError(f"BytesSerializer expects bytes, got {type(data)}")

class BytesDeserializer(Deserializer):
    def deserialize(self, data: bytes) -> bytes:
        return data

class JsonSerializer(Serializer):
    def __init__(self, encoder: Optional[Callable] = None):
        self._encoder = encoder

    def serialize(self, data: Any) -> bytes:
        return json.dumps(data, default=self._encoder).encode('utf-8')

class JsonDeserializer(Deserializer):
    def __init__(self, object_hook: Optional[Callable] = None):
        self._object_hook = object_hook

    def deserialize(self, data: bytes) -> Any:
        return json.loads(data.decode('utf-8'), object_hook=self._object_hook)

class SerdeRegistry:
    _serializers = {}
    _deserializers = {}

    @classmethod
    def register(cls, name: str, serializer: Serializer, deserializer: Deserializer):
        cls._serializers[name] = serializer
        cls._deserializers[name] = deserializer

    @classmethod
    def get(cls, name: str) -> tuple[Optional[Serializer], Optional[Deserializer]]:
        return cls._serializers.get(name), cls._deserializers.get(name)

    @classmethod
    def serializer(cls, name: str) -> Serializer:
        """Look up a registered serializer, raising ValueError if unknown."""
        try:
            return cls._serializers[name]
        except KeyError:
            raise ValueError(f"No serializer registered as {name!r}") from None

    @classmethod
    def deserializer(cls, name: str) -> Deserializer:
        """Look up a registered deserializer, raising ValueError if unknown."""
        try:
            return cls._deserializers[name]
        except KeyError:
            raise ValueError(f"No deserializer registered as {name!r}") from None

class Serdes:
    @staticmethod
    def string():
        return StringSerializer(), StringDeserializer()

    @staticmethod
    def bytes():
        return BytesSerializer(), BytesDeserializer()

    @staticmethod
    def json(encoder=None, object_hook=None):
        return JsonSerializer(encoder), JsonDeserializer(object_hook)

def decode_stats(data: bytes) -> dict[str, str]:
    """Decode a stats body (a YAML mapping) keeping every value as a string."""
    try:
        # BaseLoader resolves no tags, so "false" and "0.5" stay strings.
        doc = yaml.load(data.decode('utf-8'), Loader=yaml.BaseLoader)
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise UnexpectedResponseError(data[:64], f"a YAML mapping ({e})") from e
    if not isinstance(doc, dict):
        raise UnexpectedResponseError(data[:64], "a YAML mapping")
    return {str(k): str(v) for k, v in doc.items()}

# Register default SerDes
s_str, d_str = Serdes.string()
SerdeRegistry.register("string", s_str, d_str)
s_bytes, d_bytes = Serdes.bytes()
SerdeRegistry.register("binary", s_bytes, d_bytes)
s_json, d_json = Serdes.json()
SerdeRegistry.register("json", s_json, d_json)

"""
Value codecs — turn Python values into bytes before encryption.

Two codecs are available:
- ``orjson`` (default): JSON, limited to str, int, float, bool, None,
  lists, tuples, str-keyed dicts and bytes. Decoding never builds
  arbitrary objects.
- ``jsonpickle``: arbitrary objects, with handlers for datamodel and
  pydantic models. Decoding can instantiate any importable class, so
  only use it for values written by the same application.
"""
import base64
import binascii
import math
from abc import ABC, abstractmethod
from typing import Any

import orjson
import jsonpickle
from jsonpickle.unpickler import loadclass
from datamodel import BaseModel
from pydantic import BaseModel as PydanticBaseModel

from .exceptions import SerializationError


class Codec(ABC):
    """Serialization contract used by the encrypted store."""

    name: str = ""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Serialize ``value``.

        Raises:
            SerializationError: If the value's type is not supported.
        """

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """Deserialize bytes produced by :meth:`encode`.

        Raises:
            SerializationError: If ``data`` is not a valid payload.
        """


# ---------------------------------------------------------------------------
# orjson
# ---------------------------------------------------------------------------

_BYTES_TAG = "__vault_bytes_b64__"
_FLOAT_TAG = "__vault_float__"
_INT_TAG = "__vault_int__"
_DICT_TAG = "__vault_dict__"
_TAGS = frozenset((_BYTES_TAG, _FLOAT_TAG, _INT_TAG, _DICT_TAG))

# signed 64-bit range, larger integers are written as decimal strings
_INT_MIN = -(2 ** 63)
_INT_MAX = 2 ** 63 - 1


def _wrap_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {_BYTES_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    raise TypeError(f"Type is not serializable: {type(value).__name__}")


def _tag(value: Any) -> Any:
    """Rewrite values JSON cannot carry into single-key tag dicts."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if _INT_MIN <= value <= _INT_MAX:
            return value
        return {_INT_TAG: str(value)}
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return {_FLOAT_TAG: repr(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _wrap_bytes(value)
    if isinstance(value, dict):
        tagged = {k: _tag(v) for k, v in value.items()}
        if len(value) == 1 and next(iter(value)) in _TAGS:
            # a user dict shaped like a tag is escaped
            return {_DICT_TAG: tagged}
        return tagged
    if isinstance(value, (list, tuple)):
        return [_tag(v) for v in value]
    return value


def _untag(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1:
            tag, inner = next(iter(value.items()))
            if tag == _BYTES_TAG:
                return base64.b64decode(inner, validate=True)
            if tag == _FLOAT_TAG:
                return float(inner)
            if tag == _INT_TAG:
                return int(inner)
            if tag == _DICT_TAG:
                return {k: _untag(v) for k, v in inner.items()}
        return {k: _untag(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_untag(v) for v in value]
    return value


class OrjsonCodec(Codec):
    """JSON codec backed by orjson.

    Values JSON cannot represent are written as single-key tag dicts:
    bytes as ``{"__vault_bytes_b64__": "<base64>"}``, ``nan``/``inf`` as
    ``{"__vault_float__": "inf"}`` and integers beyond 64 bits as
    ``{"__vault_int__": "<decimal>"}``. A user dict that looks like a tag
    is wrapped in ``{"__vault_dict__": ...}``. Tuples come back as lists.
    """

    name = "orjson"

    def encode(self, value: Any) -> bytes:
        try:
            return orjson.dumps(_tag(value), default=_wrap_bytes)
        except (orjson.JSONEncodeError, ValueError) as err:
            raise SerializationError(str(err)) from err

    def decode(self, data: bytes) -> Any:
        try:
            return _untag(orjson.loads(data))
        except (
            orjson.JSONDecodeError, binascii.Error, ValueError, TypeError, AttributeError
        ) as err:
            raise SerializationError(str(err)) from err


# ---------------------------------------------------------------------------
# jsonpickle
# ---------------------------------------------------------------------------

class ModelHandler(jsonpickle.handlers.BaseHandler):
    """ModelHandler.
    Flattens datamodel models through ``to_dict`` and rebuilds them with
    the model constructor so field parsing runs again on restore.
    """
    def flatten(self, obj, data):
        data['model'] = self.context.flatten(obj.to_dict(), reset=False)
        return data

    def restore(self, obj):
        mdl = loadclass(obj['py/object'])
        return mdl(**self.context.restore(obj['model'], reset=False))


class PydanticHandler(jsonpickle.handlers.BaseHandler):
    """PydanticHandler.
    Flattens Pydantic Models through ``model_dump`` and rebuilds them
    with ``model_validate`` so validators run again on restore.
    """
    def flatten(self, obj, data):
        data['model'] = self.context.flatten(obj.model_dump(), reset=False)
        return data

    def restore(self, obj):
        mdl = loadclass(obj['py/object'])
        return mdl.model_validate(self.context.restore(obj['model'], reset=False))


jsonpickle.handlers.registry.register(BaseModel, ModelHandler, base=True)
jsonpickle.handlers.registry.register(PydanticBaseModel, PydanticHandler, base=True)


class JsonPickleCodec(Codec):
    """Codec for arbitrary Python objects, backed by jsonpickle."""

    name = "jsonpickle"

    def encode(self, value: Any) -> bytes:
        try:
            return jsonpickle.encode(value, keys=True).encode("utf-8")
        except Exception as err:
            raise SerializationError(str(err)) from err

    def decode(self, data: bytes) -> Any:
        try:
            return jsonpickle.decode(data.decode("utf-8"), keys=True)
        except Exception as err:
            raise SerializationError(str(err)) from err


_CODECS: dict[str, type[Codec]] = {
    OrjsonCodec.name: OrjsonCodec,
    JsonPickleCodec.name: JsonPickleCodec,
}


def get_codec(name: str) -> Codec:
    """Return a codec instance by name (``orjson`` or ``jsonpickle``).

    Raises:
        ValueError: If the codec name is unknown.
    """
    try:
        return _CODECS[name]()
    except KeyError:
        raise ValueError(f"Unsupported codec: {name}") from None

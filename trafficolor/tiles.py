"""Traffic tile decoding — extract color categories from Mapbox vector tiles.

The review tile server emits one feature per road segment, each carrying an
integer ``color`` property:

    1 = BLACK   (blocked / very slow)
    2 = RED     (slow)
    3 = ORANGE  (dense)

Only the set of categories matters to the suite, so decoding collapses every
layer and feature into a set of codes.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable

from google.protobuf.message import DecodeError
from mapbox_vector_tile.Mapbox import vector_tile_pb2

COLOR_PROPERTY = "color"


class TrafficColor(IntEnum):
    """Traffic categories encoded in the ``color`` feature property."""

    BLACK = 1
    RED = 2
    ORANGE = 3


class TileDecodeError(Exception):
    """Raised when a response body is not a decodable vector tile."""


def _as_color_code(value) -> int | None:
    """Integer check with the same semantics as JS Number.isInteger."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


_VALUE_FIELDS = (
    "string_value",
    "float_value",
    "double_value",
    "int_value",
    "uint_value",
    "sint_value",
    "bool_value",
)


def _value(value):
    for field in _VALUE_FIELDS:
        if value.HasField(field):
            return getattr(value, field)
    return None


def decode_colors(buffer: bytes) -> set[int]:
    """Decode a vector tile and return the distinct color codes it carries.

    Only feature tags are resolved; geometry is never parsed, so features
    with UNKNOWN or malformed geometry still contribute their color.

    Raises:
        TileDecodeError: If the buffer is not a valid vector tile.
    """
    tile = vector_tile_pb2.tile()
    try:
        tile.ParseFromString(bytes(buffer))
    except DecodeError as e:
        raise TileDecodeError(f"not a vector tile ({len(buffer)} bytes): {e}") from e

    colors: set[int] = set()
    for layer in tile.layers:
        keys = list(layer.keys)
        values = layer.values
        for feature in layer.features:
            tags = feature.tags
            # tags are flat key_index, value_index pairs
            for i in range(0, len(tags) - 1, 2):
                k, v = tags[i], tags[i + 1]
                if k >= len(keys) or v >= len(values) or keys[k] != COLOR_PROPERTY:
                    continue
                code = _as_color_code(_value(values[v]))
                if code is not None:
                    colors.add(code)
    return colors


def missing_colors(
    colors: Iterable[int], expected: Iterable[TrafficColor] = TrafficColor
) -> list[TrafficColor]:
    """Expected categories absent from an observed color set."""
    seen = set(colors)
    return [c for c in expected if int(c) not in seen]

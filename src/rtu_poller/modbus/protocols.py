"""
Modbus Value Decoding
=====================

Data conversion from raw Modbus responses to display values.

This module handles ONLY data format conversion:
- 16-bit words -> bool, unsigned and signed 16-bit integers
- Word pairs -> unsigned and signed 32-bit integers, IEEE 754 floats
- Coil / discrete input bits -> bool

Word Order:
- Two-word values are sent low word first: words[0] holds bits 0-15 and
  words[1] holds bits 16-31 of the combined value.

No protocol logic, no I/O, no guessing: too few words is an error.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import numpy as np
from typing import Sequence, Union

from ..exceptions import InsufficientDataError
from .register_map import ValueType


Value = Union[bool, int, float]

# Little-endian dtypes: the low word comes first in memory
_WORDS = np.dtype("<u2")
_INT16 = np.dtype("<i2")
_UINT32 = np.dtype("<u4")
_INT32 = np.dtype("<i4")
_FLOAT32 = np.dtype("<f4")


class ValueDecoder:
    """
    Decoder for converting Modbus register words to Python values.

    Reinterpretation is done with numpy dtype views, so signed and float
    results are exact bit-pattern casts rather than arithmetic.
    """

    @staticmethod
    def words_needed(value_type: ValueType) -> int:
        """
        Number of 16-bit words a value type occupies.

        Raises:
            ValueError: If the value type is unknown
        """
        if value_type in (ValueType.BOOL, ValueType.UINT16, ValueType.INT16):
            return 1
        elif value_type in (ValueType.UINT32, ValueType.INT32, ValueType.FLOAT32):
            return 2
        else:
            raise ValueError(f"Unknown value type: {value_type}")

    @classmethod
    def decode_value(cls, value_type: ValueType, words: Sequence[int]) -> Value:
        """
        Convert raw words to a typed Python value.

        Args:
            value_type: Decoding scheme
            words: 16-bit unsigned words as returned by the device

        Returns:
            bool, int or float depending on the value type

        Raises:
            InsufficientDataError: If fewer words than needed were supplied
            ValueError: If a word is outside [0, 65535]

        Example:
            >>> ValueDecoder.decode_value(ValueType.UINT32, [1, 2])
            131073
        """
        needed = cls.words_needed(value_type)
        if len(words) < needed:
            raise InsufficientDataError(value_type.value, needed, len(words))

        raw = _as_words(words[:needed])

        if value_type == ValueType.BOOL:
            return bool(raw[0] != 0)
        elif value_type == ValueType.UINT16:
            return int(raw[0])
        elif value_type == ValueType.INT16:
            return int(raw.view(_INT16)[0])
        elif value_type == ValueType.UINT32:
            return int(raw.view(_UINT32)[0])
        elif value_type == ValueType.INT32:
            return int(raw.view(_INT32)[0])
        elif value_type == ValueType.FLOAT32:
            return float(raw.view(_FLOAT32)[0])
        else:
            raise ValueError(f"Unknown value type: {value_type}")

    @classmethod
    def decode(cls, value_type: ValueType, words: Sequence[int]) -> str:
        """
        Convert raw words to the string shown to the operator.

        Booleans render as 'true'/'false', floats with exactly three
        fractional digits.
        """
        value = cls.decode_value(value_type, words)
        return format_value(value_type, value)

    @staticmethod
    def decode_bits(bits: Sequence[bool]) -> str:
        """
        Render a coil / discrete input response.

        Only the first bit is used; an empty response reads as false.
        """
        return "true" if bits and bits[0] else "false"


def format_value(value_type: ValueType, value: Value) -> str:
    """Render a decoded value for display."""
    if value_type == ValueType.BOOL:
        return "true" if value else "false"
    if value_type == ValueType.FLOAT32:
        return f"{value:.3f}"
    return str(value)


def _as_words(words: Sequence[int]) -> np.ndarray:
    for word in words:
        if not 0 <= int(word) <= 0xFFFF:
            raise ValueError(f"register word {word} out of range [0, 65535]")
    return np.array([int(w) for w in words], dtype=_WORDS)

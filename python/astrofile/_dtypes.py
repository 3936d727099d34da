# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "KeywordType",
    "KeywordValue",
    "bitpix_for_dtype",
    "dtype_for_bitpix",
)

import enum
import math

import numpy as np
import numpy.typing as npt

from ._errors import InvalidArgumentError, KeywordRangeError

type KeywordValue = bool | int | float | str


class KeywordType(enum.StrEnum):
    """Enumeration of the value types a keyword may hold."""

    bool = enum.auto()
    uint8 = enum.auto()
    uint16 = enum.auto()
    uint32 = enum.auto()
    uint64 = enum.auto()
    int8 = enum.auto()
    int16 = enum.auto()
    int32 = enum.auto()
    int64 = enum.auto()
    float32 = enum.auto()
    float64 = enum.auto()
    string = enum.auto()

    @property
    def is_integer(self) -> bool:
        """Whether this is a signed or unsigned integer type."""
        return self.value.startswith(("int", "uint"))

    @property
    def is_unsigned(self) -> bool:
        """Whether this is an unsigned integer type."""
        return self.value.startswith("uint")

    @property
    def is_float(self) -> bool:
        """Whether this is a floating-point type."""
        return self.value.startswith("float")

    def to_numpy(self) -> type:
        """Convert a numeric enumeration member to the corresponding numpy
        scalar type object.

        Raises
        ------
        TypeError
            Raised for `string`, which has no fixed-width numpy equivalent.
        """
        if self is KeywordType.string:
            raise TypeError("String keywords have no numpy scalar type.")
        if self is KeywordType.bool:
            return np.bool_
        return getattr(np, self.value)

    @classmethod
    def from_numpy(cls, dtype: npt.DTypeLike) -> KeywordType:
        """Construct an enumeration member from anything that can be coerced
        to `numpy.dtype`.
        """
        dtype = np.dtype(dtype)
        if dtype.kind in "US":
            return cls.string
        return cls(dtype.name)

    @classmethod
    def infer(cls, value: object) -> KeywordType:
        """Pick the type used to store a Python or numpy value when no
        explicit type is given.

        Integers are stored as the narrowest of ``int32``, ``int64`` and
        ``uint64`` that holds them.
        """
        match value:
            case bool() | np.bool_():
                return cls.bool
            case np.integer() | np.floating():
                return cls.from_numpy(value.dtype)
            case int():
                if -(2**31) <= value < 2**31:
                    return cls.int32
                if -(2**63) <= value < 2**63:
                    return cls.int64
                if 0 <= value < 2**64:
                    return cls.uint64
                raise KeywordRangeError(f"Integer {value} does not fit in any keyword type.")
            case float():
                return cls.float64
            case str():
                return cls.string
        raise InvalidArgumentError(f"Unsupported keyword value {value!r} of type {type(value).__name__}.")

    def convert(self, value: KeywordValue) -> KeywordValue:
        """Return ``value`` viewed as this type.

        Parameters
        ----------
        value
            Stored keyword value.

        Returns
        -------
        `bool` | `int` | `float` | `str`
            The converted value, as a builtin Python type.

        Raises
        ------
        KeywordRangeError
            Raised if a numeric value does not fit in this type.
        InvalidArgumentError
            Raised if a string cannot be parsed as this type.
        """
        if self is KeywordType.string:
            if isinstance(value, bool | np.bool_):
                return "T" if value else "F"
            return str(value)
        if isinstance(value, str):
            value = _parse(value, self)
        if self is KeywordType.bool:
            if isinstance(value, bool | np.bool_):
                return bool(value)
            if value in (0, 1):
                return bool(value)
            raise KeywordRangeError(f"Value {value!r} cannot be represented as a boolean.")
        if isinstance(value, bool | np.bool_):
            value = int(value)
        if self.is_integer:
            if isinstance(value, float | np.floating):
                if not math.isfinite(value) or not float(value).is_integer():
                    raise KeywordRangeError(f"Value {value!r} is not an integer.")
                value = int(value)
            info = np.iinfo(self.to_numpy())
            if not (info.min <= value <= info.max):
                raise KeywordRangeError(
                    f"Value {value} is out of range for {self} [{info.min}, {info.max}]."
                )
            return int(value)
        result = float(value)
        if self is KeywordType.float32 and math.isfinite(result):
            if abs(result) > float(np.finfo(np.float32).max):
                raise KeywordRangeError(f"Value {value!r} is out of range for float32.")
            return float(np.float32(result))
        return result


def _parse(text: str, target: KeywordType) -> KeywordValue:
    stripped = text.strip()
    if target is KeywordType.bool:
        match stripped.upper():
            case "T" | "TRUE":
                return True
            case "F" | "FALSE":
                return False
        raise InvalidArgumentError(f"String {text!r} is not a boolean.")
    try:
        if target.is_integer:
            try:
                return int(stripped)
            except ValueError:
                return float(stripped)
        return float(stripped)
    except ValueError:
        raise InvalidArgumentError(f"String {text!r} is not a number.") from None


# FITS stores unsigned (and signed 8-bit) pixels as the opposite signedness
# with a BZERO offset.
_BITPIX = {
    "uint8": (8, 0),
    "int8": (8, -128),
    "int16": (16, 0),
    "uint16": (16, 2**15),
    "int32": (32, 0),
    "uint32": (32, 2**31),
    "int64": (64, 0),
    "uint64": (64, 2**63),
    "float32": (-32, 0),
    "float64": (-64, 0),
}


def bitpix_for_dtype(dtype: npt.DTypeLike) -> tuple[int, int]:
    """Return the FITS ``BITPIX`` code and ``BZERO`` offset used to store
    pixels of the given type.

    Raises
    ------
    InvalidArgumentError
        Raised if the type cannot be stored as FITS pixels.
    """
    name = np.dtype(dtype).name
    try:
        return _BITPIX[name]
    except KeyError:
        raise InvalidArgumentError(f"Pixel type {name!r} has no FITS representation.") from None


def dtype_for_bitpix(bitpix: int, bzero: float = 0) -> np.dtype:
    """Return the in-memory pixel type for a FITS ``BITPIX`` code and
    ``BZERO`` offset.
    """
    for name, (code, offset) in _BITPIX.items():
        if code == bitpix and offset == bzero:
            return np.dtype(name)
    for name, (code, offset) in _BITPIX.items():
        if code == bitpix and offset == 0:
            return np.dtype(name)
    raise InvalidArgumentError(f"Invalid BITPIX value {bitpix}.")

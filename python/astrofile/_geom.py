# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "XY",
    "Box",
    "Interval",
)

from collections.abc import Callable, Sequence
from typing import NamedTuple, final

from ._errors import InvalidArgumentError

# Points are plain named tuples rather than a richer vector type; the pixel
# frame is continuous, with pixel (i, j) covering [i, i + 1) x [j, j + 1).


class XY[T](NamedTuple):
    """A pair of values ordered ``(x, y)``."""

    x: T
    """Column (horizontal) coordinate."""

    y: T
    """Row (vertical) coordinate."""

    def map[U](self, func: Callable[[T], U]) -> XY[U]:
        """Apply a function to both values."""
        return XY(func(self.x), func(self.y))


@final
class Interval:
    """A 1-d integer interval with positive size.

    Parameters
    ----------
    start
        Inclusive minimum point in the interval.
    stop
        One past the maximum point in the interval.
    """

    def __init__(self, start: int, stop: int):
        # Coerce to be defensive against numpy int scalars.
        self._start = int(start)
        self._stop = int(stop)
        if not (self._stop > self._start):
            raise InvalidArgumentError(f"Interval must have positive size; got [{self._start}, {self._stop})")

    __slots__ = ("_start", "_stop")

    @classmethod
    def from_size(cls, size: int, start: int = 0) -> Interval:
        """Construct an interval from its size and optional start."""
        return cls(start=start, stop=start + size)

    @property
    def start(self) -> int:
        """Inclusive minimum point in the interval."""
        return self._start

    @property
    def stop(self) -> int:
        """One past the maximum point in the interval."""
        return self._stop

    @property
    def size(self) -> int:
        """Size of the interval."""
        return self._stop - self._start

    @property
    def center(self) -> float:
        """The center of the interval in the continuous pixel frame."""
        return 0.5 * (self._start + self._stop)

    def __str__(self) -> str:
        return f"{self._start}:{self._stop}"

    def __repr__(self) -> str:
        return f"Interval(start={self._start}, stop={self._stop})"

    def __eq__(self, other: object) -> bool:
        if type(other) is Interval:
            return self._start == other._start and self._stop == other._stop
        return False

    def __hash__(self) -> int:
        return hash((self._start, self._stop))

    def contains(self, other: Interval) -> bool:
        """Test whether this interval fully contains another."""
        return self._start <= other._start and self._stop >= other._stop

    def slice_within(self, other: Interval) -> slice:
        """Return the `slice` that selects this interval from a container
        whose items correspond to ``other``.
        """
        return slice(self._start - other._start, self._stop - other._start)


@final
class Box:
    """A 2-d axis-aligned rectangular region of pixels.

    Parameters
    ----------
    y
        Row interval.
    x
        Column interval.

    Notes
    -----
    Arguments are ordered ``(y, x)`` to match numpy array indexing, while
    `from_origin_extent` takes ``(x, y)`` pairs to match the point types used
    elsewhere.
    """

    def __init__(self, y: Interval, x: Interval):
        self._y = y
        self._x = x

    __slots__ = ("_x", "_y")

    @classmethod
    def from_shape(cls, shape: Sequence[int]) -> Box:
        """Construct a box at the origin from a ``(..., height, width)``
        array shape.
        """
        return cls(Interval.from_size(shape[-2]), Interval.from_size(shape[-1]))

    @classmethod
    def from_origin_extent(cls, origin: XY[int], extent: XY[int]) -> Box:
        """Construct a box from its lower-left pixel and its
        ``(width, height)``.
        """
        return cls(Interval.from_size(extent.y, start=origin.y), Interval.from_size(extent.x, start=origin.x))

    @property
    def x(self) -> Interval:
        """Column interval."""
        return self._x

    @property
    def y(self) -> Interval:
        """Row interval."""
        return self._y

    @property
    def shape(self) -> tuple[int, int]:
        """Array shape ``(height, width)`` of the box."""
        return (self._y.size, self._x.size)

    @property
    def origin(self) -> XY[int]:
        """Lower-left pixel of the box."""
        return XY(self._x.start, self._y.start)

    @property
    def center(self) -> XY[float]:
        """Geometric center of the box in the continuous pixel frame."""
        return XY(self._x.center, self._y.center)

    def __eq__(self, other: object) -> bool:
        if type(other) is Box:
            return self._x == other._x and self._y == other._y
        return False

    def __hash__(self) -> int:
        return hash((self._y, self._x))

    def __str__(self) -> str:
        return f"[{self._y}, {self._x}]"

    def __repr__(self) -> str:
        return f"Box({self._y!r}, {self._x!r})"

    def contains(self, other: Box) -> bool:
        """Test whether this box fully contains another."""
        return self._x.contains(other._x) and self._y.contains(other._y)

    def slice_within(self, other: Box) -> tuple[slice, slice]:
        """Return the ``(row, column)`` slices that select this box from an
        array covering ``other``.

        This assumes ``other.contains(self)``.
        """
        return (self._y.slice_within(other._y), self._x.slice_within(other._x))

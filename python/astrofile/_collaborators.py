# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Interfaces for the external components an `AstroFile` delegates to.

None of these are implemented here beyond the FITS codec in `astrofile.fits`;
callers supply objects that satisfy the protocols.
"""

from __future__ import annotations

__all__ = (
    "Calibrator",
    "Decoder",
    "Encoder",
    "PlateSolveResult",
    "PlateSolver",
    "SourceDetector",
)

import dataclasses
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np

from ._geom import XY
from ._solution import CoordinateSolution

if TYPE_CHECKING:
    from ._blocks import Block, ImageBlock
    from ._registry import DecodedRecord


@runtime_checkable
class Decoder(Protocol):
    """Interface for objects that split serialized bytes into records."""

    def decode(self, data: bytes) -> Iterable[DecodedRecord]:
        """Decode a byte stream.

        Raises
        ------
        InvalidArgumentError
            Raised if the stream is malformed.
        """
        ...


@runtime_checkable
class Encoder(Protocol):
    """Interface for objects that serialize blocks."""

    def encode(self, blocks: Sequence[Block]) -> bytes:
        """Serialize blocks in order, primary first."""
        ...


@runtime_checkable
class SourceDetector(Protocol):
    """Interface for star/source detection."""

    def find_sources(self, array: np.ndarray, **parameters: Any) -> list[XY[float]]:
        """Return the continuous pixel positions of sources in a 2-d
        array.
        """
        ...


@dataclasses.dataclass(frozen=True)
class PlateSolveResult:
    """Outcome of a plate-solving attempt."""

    success: bool
    """Whether a solution was found."""

    solution: CoordinateSolution | None = None
    """The solution found, if any."""

    message: str = ""
    """Diagnostic text from the solver."""


@runtime_checkable
class PlateSolver(Protocol):
    """Interface for plate solving."""

    def solve(self, array: np.ndarray, **parameters: Any) -> PlateSolveResult:
        """Attempt to compute a coordinate solution for a 2-d array."""
        ...


@runtime_checkable
class Calibrator(Protocol):
    """Interface for frame calibration (dark, flat, bias)."""

    def calibrate(self, target: ImageBlock, frame: ImageBlock, **options: Any) -> np.ndarray:
        """Return calibrated pixels for ``target`` using a calibration frame.

        The returned array must have the target's shape; the target itself
        must not be modified.
        """
        ...

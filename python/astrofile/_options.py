# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("CalibrationOptions", "CentroidOptions", "TransformOptions")

import dataclasses
from typing import ClassVar

from ._errors import InvalidArgumentError


@dataclasses.dataclass(frozen=True)
class TransformOptions:
    """Configuration options for geometric transforms that interpolate."""

    order: int = 1
    """Spline interpolation order passed to `scipy.ndimage` (0-5).

    Transforms that only permute pixels (flip, flop, crop, quarter-turn
    rotations of square images) never interpolate.
    """

    fill_value: float = 0.0
    """Value assigned to output pixels that map outside the input image."""

    DEFAULT: ClassVar[TransformOptions]
    """Default options (bilinear, zero fill)."""

    def __post_init__(self) -> None:
        if not (0 <= self.order <= 5):
            raise InvalidArgumentError(f"Interpolation order must be in [0, 5]; got {self.order}.")


TransformOptions.DEFAULT = TransformOptions()


@dataclasses.dataclass(frozen=True)
class CentroidOptions:
    """Configuration options for centroid and profile measurements."""

    tolerance: float = 0.01
    """Shift (pixels) below which an iterated centroid has converged."""

    subtract_background: bool = True
    """Whether to subtract the median of the aperture before weighting."""

    DEFAULT: ClassVar[CentroidOptions]
    """Default options."""

    def __post_init__(self) -> None:
        if self.tolerance <= 0:
            raise InvalidArgumentError(f"Centroid tolerance must be positive; got {self.tolerance}.")


CentroidOptions.DEFAULT = CentroidOptions()


@dataclasses.dataclass(frozen=True)
class CalibrationOptions:
    """Configuration options for checking that a calibration frame was taken
    under the same conditions as the image it calibrates.

    Each check is skipped when either image lacks the relevant keyword.
    """

    exposure_tolerance: float | None = 0.01
    """Largest allowed relative difference between the exposure times, or
    `None` to skip the check (as for flat fields).
    """

    temperature_tolerance: float | None = 1.0
    """Largest allowed difference in ``CCD-TEMP`` (degrees Celsius), or
    `None` to skip the check.
    """

    DEFAULT: ClassVar[CalibrationOptions]
    """Default options, suitable for dark frames."""

    def __post_init__(self) -> None:
        for name in ("exposure_tolerance", "temperature_tolerance"):
            value = getattr(self, name)
            if value is not None and not value >= 0:
                raise InvalidArgumentError(f"{name} must be non-negative; got {value}.")


CalibrationOptions.DEFAULT = CalibrationOptions()

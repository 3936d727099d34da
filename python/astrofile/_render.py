# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("PlaneRenderParameters", "RenderMode", "Renderer", "TransferFunction")

import enum
from collections.abc import Sequence
from typing import Annotated, Protocol, Self, runtime_checkable

import numpy as np
import pydantic


class TransferFunction(enum.StrEnum):
    """Curves that map scaled pixel values to display intensity."""

    LINEAR = "LINEAR"
    LOG = "LOG"
    EXP = "EXP"
    SQRT = "SQRT"
    SQUARE = "SQUARE"
    CUBE_ROOT = "CUBE_ROOT"
    GAMMA = "GAMMA"
    GAMMA_LOG = "GAMMA_LOG"


class RenderMode(enum.StrEnum):
    """How the planes of an image are combined for display."""

    GREY = "GREY"
    RGB = "RGB"
    FALSE_COLOUR = "FALSE_COLOUR"


_UnitFloat = Annotated[float, pydantic.Field(ge=0.0, le=1.0)]


class PlaneRenderParameters(pydantic.BaseModel):
    """Display parameters stored for one plane of an image.

    Only the parameters live here; the mapping to a display raster is the job
    of a `Renderer`.
    """

    black_point: float = pydantic.Field(default=0.0, description="Pixel value displayed as black.")
    white_point: float = pydantic.Field(default=1.0, description="Pixel value displayed as white.")
    invert: bool = pydantic.Field(default=False, description="Whether to invert the display scale.")
    transfer_function: TransferFunction = pydantic.Field(
        default=TransferFunction.LINEAR, description="Curve applied between black and white points."
    )
    transfer_parameter: float = pydantic.Field(
        default=1.0, description="Shape parameter of the transfer function (e.g. gamma)."
    )
    colour: tuple[_UnitFloat, _UnitFloat, _UnitFloat] = pydantic.Field(
        default=(1.0, 1.0, 1.0), description="RGB weights used when compositing planes."
    )
    transparency: _UnitFloat = pydantic.Field(
        default=1.0, description="Weight of this plane when compositing planes."
    )

    model_config = pydantic.ConfigDict(frozen=True)

    @pydantic.model_validator(mode="after")
    def _check_points(self) -> Self:
        if not self.white_point > self.black_point:
            raise ValueError(
                f"White point ({self.white_point}) must exceed black point ({self.black_point})."
            )
        return self

    @classmethod
    def from_array(cls, plane: np.ndarray) -> PlaneRenderParameters:
        """Construct default parameters that span the finite range of a
        plane's pixel values.
        """
        finite = plane[np.isfinite(plane)]
        if finite.size == 0:
            return cls()
        low = float(finite.min())
        high = float(finite.max())
        if high <= low:
            high = low + 1.0
        return cls(black_point=low, white_point=high)


@runtime_checkable
class Renderer(Protocol):
    """Interface for the collaborator that maps pixels to a display raster."""

    def render(
        self, array: np.ndarray, parameters: Sequence[PlaneRenderParameters], mode: RenderMode
    ) -> np.ndarray:
        """Render a ``(height, width)`` or ``(planes, height, width)`` array.

        Parameters
        ----------
        array
            Pixel values.
        parameters
            Display parameters, one per plane.
        mode
            How planes are combined.

        Returns
        -------
        numpy.ndarray
            Display-ready raster.
        """
        ...

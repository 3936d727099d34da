# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "AstrometryBlock",
    "AstrometryObservation",
    "Observation",
    "ObservationBlock",
    "PhotometryBlock",
    "PhotometryObservation",
)

import math
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, ClassVar, Self, final

import astropy.table
import astropy.units as u
import numpy as np
import pydantic
from astropy.coordinates import SkyCoord

from ._blocks import AsciiTableBlock, BlockKind
from ._errors import InvalidArgumentError, NotFoundError
from ._geom import XY
from ._keywords import Keyword, KeywordStore
from ._transforms import GeometricTransform


class Observation(pydantic.BaseModel):
    """Base class for a named object measured on an image.

    Positions are optional: an object may be known only on the sky (e.g. a
    catalog reference star) or only on the image.
    """

    name: str = pydantic.Field(min_length=1, description="Identifier, unique within its block.")
    x: float | None = pydantic.Field(default=None, description="Image x coordinate (continuous pixels).")
    y: float | None = pydantic.Field(default=None, description="Image y coordinate (continuous pixels).")
    ra: float | None = pydantic.Field(default=None, description="ICRS right ascension in degrees.")
    dec: float | None = pydantic.Field(default=None, description="ICRS declination in degrees.")

    model_config = pydantic.ConfigDict(frozen=True)

    @property
    def position(self) -> XY[float] | None:
        """Image position, or `None` if it is not known."""
        if self.x is None or self.y is None:
            return None
        return XY(self.x, self.y)

    @property
    def sky(self) -> SkyCoord | None:
        """Sky position, or `None` if it is not known."""
        if self.ra is None or self.dec is None:
            return None
        return SkyCoord(ra=self.ra * u.deg, dec=self.dec * u.deg, frame="icrs")

    def moved(self, position: XY[float]) -> Self:
        """Return a copy at a new image position."""
        return self.model_copy(update={"x": float(position.x), "y": float(position.y)})


class AstrometryObservation(Observation):
    """An object used to register an image to the sky."""

    magnitude: float | None = pydantic.Field(default=None, description="Catalog magnitude.")


class PhotometryObservation(Observation):
    """An aperture-photometry measurement of an object."""

    aperture: float | None = pydantic.Field(default=None, gt=0, description="Aperture radius in pixels.")
    annulus_inner: float | None = pydantic.Field(
        default=None, gt=0, description="Inner radius of the sky annulus in pixels."
    )
    annulus_outer: float | None = pydantic.Field(
        default=None, gt=0, description="Outer radius of the sky annulus in pixels."
    )
    source_flux: float | None = pydantic.Field(
        default=None, description="Background-subtracted counts in the aperture."
    )
    sky_flux: float | None = pydantic.Field(default=None, description="Sky counts per pixel.")
    exposure: float | None = pydantic.Field(default=None, gt=0, description="Exposure time in seconds.")

    @pydantic.model_validator(mode="after")
    def _check_annulus(self) -> Self:
        if self.annulus_inner is not None and self.annulus_outer is not None:
            if self.annulus_outer <= self.annulus_inner:
                raise ValueError("The sky annulus must have its outer radius beyond its inner radius.")
        return self

    @property
    def instrumental_magnitude(self) -> float | None:
        """``-2.5 log10(flux / exposure)``, or `None` if the flux is not
        positive or unknown.
        """
        if self.source_flux is None or not self.source_flux > 0:
            return None
        rate = self.source_flux / self.exposure if self.exposure else self.source_flux
        return -2.5 * math.log10(rate)


class ObservationBlock[O: Observation](AsciiTableBlock):
    """Base class for table blocks that hold a list of named observations.

    Parameters
    ----------
    observations, optional
        Initial observations.
    keywords, optional
        Keyword store or entries.

    Notes
    -----
    The observation list is authoritative; the table payload is regenerated
    from it after every change, with one column per model field and missing
    values stored as NaN.

    Blocks keep a single iteration cursor for `first` and `next`.  Any change
    to the list resets it.  Use `snapshot` (or plain iteration) when a stable
    sequence is needed.
    """

    observation_type: ClassVar[type[Observation]]
    extname: ClassVar[str]

    def __init__(
        self,
        observations: Iterable[O] = (),
        keywords: KeywordStore | Iterable[Keyword] | None = None,
    ):
        self._observations: dict[str, O] = {}
        self._cursor: Iterator[O] | None = None
        super().__init__(None, keywords)
        self._keywords.write("EXTNAME", self.extname)
        self.replace_observations(observations)

    @classmethod
    def from_table(
        cls, table: astropy.table.Table | None, keywords: KeywordStore | Iterable[Keyword] | None = None
    ) -> Self:
        """Construct from a table with (a subset of) the observation model's
        fields as columns.

        Raises
        ------
        InvalidArgumentError
            Raised if a row cannot be interpreted as an observation.
        """
        observations = []
        if table is not None:
            fields = [name for name in cls.observation_type.model_fields if name in table.colnames]
            for row in table:
                data = {name: _from_cell(row[name]) for name in fields}
                try:
                    observations.append(cls.observation_type.model_validate(data))
                except pydantic.ValidationError as err:
                    raise InvalidArgumentError(f"Invalid {cls.kind} row {data}: {err}") from err
        return cls(observations, keywords)  # type: ignore[arg-type]

    @classmethod
    def from_record(cls, record: Any) -> Self:
        return cls.from_table(record.payload, record.keywords)

    def copy(self) -> Self:
        return type(self)(self._observations.values(), self._keywords.copy())

    def _check_type(self, observation: Observation) -> None:
        if not isinstance(observation, self.observation_type):
            raise InvalidArgumentError(
                f"{self.kind} blocks hold {self.observation_type.__name__}, not {type(observation).__name__}."
            )

    def add(self, observation: O) -> bool:
        """Append an observation; returns `False` (and changes nothing) if
        one with the same name already exists.
        """
        self._check_type(observation)
        if observation.name in self._observations:
            return False
        self._observations[observation.name] = observation
        self._sync()
        return True

    def remove(self, name: str) -> bool:
        """Remove an observation by name; returns `False` if it was absent."""
        if self._observations.pop(name, None) is None:
            return False
        self._sync()
        return True

    def remove_all(self) -> None:
        """Remove every observation."""
        self._observations.clear()
        self._sync()

    def count(self) -> int:
        """Number of observations."""
        return len(self._observations)

    def __len__(self) -> int:
        return len(self._observations)

    def __contains__(self, name: object) -> bool:
        return name in self._observations

    def get(self, name: str) -> O:
        """Return an observation by name."""
        try:
            return self._observations[name]
        except KeyError:
            raise NotFoundError(f"No {self.kind} observation named {name!r}.") from None

    def first(self) -> O | None:
        """Reset the cursor and return the first observation, or `None` if
        there are none.
        """
        self._cursor = iter(list(self._observations.values()))
        return next(self._cursor, None)

    def next(self) -> O | None:
        """Advance the cursor; returns `None` at the end, or if `first` has
        not been called since the last change.
        """
        if self._cursor is None:
            return None
        return next(self._cursor, None)

    def snapshot(self) -> list[O]:
        """Return the observations as a list, in insertion order."""
        return list(self._observations.values())

    def __iter__(self) -> Iterator[O]:
        return iter(self.snapshot())

    def transform_positions(self, transform: GeometricTransform, shape: Sequence[int]) -> list[O]:
        """Return the observations with their image positions mapped by a
        transform of an image with the given shape.  The block is not
        modified.
        """
        result = []
        for observation in self._observations.values():
            if (position := observation.position) is not None:
                observation = observation.moved(transform.apply_to_points(position.x, position.y, shape))
            result.append(observation)
        return result

    def replace_observations(self, observations: Iterable[O]) -> None:
        """Replace the whole list at once."""
        observations = list(observations)
        for observation in observations:
            self._check_type(observation)
        names = [o.name for o in observations]
        if len(set(names)) != len(names):
            raise InvalidArgumentError("Observation names must be unique within a block.")
        self._observations = {o.name: o for o in observations}
        self._sync()

    def add_row(self, values: Any) -> None:
        """Append a row, interpreted as an observation."""
        if isinstance(values, Observation):
            observation = values
        else:
            try:
                data = dict(values) if hasattr(values, "keys") else dict(zip(self.column_names, values))
                observation = self.observation_type.model_validate(data)
            except (pydantic.ValidationError, TypeError) as err:
                raise InvalidArgumentError(f"Invalid {self.kind} row {values!r}: {err}") from err
        if not self.add(observation):  # type: ignore[arg-type]
            raise InvalidArgumentError(f"Duplicate observation name {observation.name!r}.")

    def _sync(self) -> None:
        self._cursor = None
        columns: dict[str, Any] = {}
        for field in self.observation_type.model_fields:
            values = [getattr(o, field) for o in self._observations.values()]
            if field == "name":
                width = max((len(v) for v in values), default=1)
                columns[field] = np.array(values, dtype=f"U{width}")
            else:
                columns[field] = np.array([np.nan if v is None else v for v in values], dtype=np.float64)
        self._table = astropy.table.Table(columns)
        self._sync_reserved()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(count={len(self._observations)})"


@final
class AstrometryBlock(ObservationBlock[AstrometryObservation]):
    """Block holding the reference objects used to register an image."""

    kind = BlockKind.ASTROMETRY
    observation_type = AstrometryObservation
    extname = "ASTROMETRY"


@final
class PhotometryBlock(ObservationBlock[PhotometryObservation]):
    """Block holding aperture-photometry measurements."""

    kind = BlockKind.PHOTOMETRY
    observation_type = PhotometryObservation
    extname = "PHOTOMETRY"


def _from_cell(value: Any) -> Any:
    if value is np.ma.masked:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value

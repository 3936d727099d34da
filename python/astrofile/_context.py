# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("LINKED_KEYWORDS", "ContextGroup", "ObservationContext", "Telescope", "Weather")

import dataclasses
import enum
from logging import getLogger
from typing import TYPE_CHECKING

import astropy.units as u
import pydantic
from astropy.coordinates import EarthLocation, Latitude, Longitude, SkyCoord
from astropy.time import Time

if TYPE_CHECKING:
    from ._keywords import KeywordStore

_LOG = getLogger(__name__)


class ContextGroup(enum.StrEnum):
    """The parts of the observation context that keywords feed."""

    TARGET = "target"
    TIME = "time"
    TELESCOPE = "telescope"
    WEATHER = "weather"
    LOCATION = "location"


LINKED_KEYWORDS: dict[str, ContextGroup] = {
    "OBJECT": ContextGroup.TARGET,
    "OBJCTRA": ContextGroup.TARGET,
    "OBJCTDEC": ContextGroup.TARGET,
    "DATE-OBS": ContextGroup.TIME,
    "TIME-OBS": ContextGroup.TIME,
    "TELESCOP": ContextGroup.TELESCOPE,
    "FOCALLEN": ContextGroup.TELESCOPE,
    "APTDIA": ContextGroup.TELESCOPE,
    "AMBTEMP": ContextGroup.WEATHER,
    "PRESSURE": ContextGroup.WEATHER,
    "HUMIDITY": ContextGroup.WEATHER,
    "SITELAT": ContextGroup.LOCATION,
    "SITELONG": ContextGroup.LOCATION,
    "SITEELEV": ContextGroup.LOCATION,
}
"""Primary-block keywords whose values are mirrored into the
`ObservationContext`, and the group each one refreshes.
"""


class Telescope(pydantic.BaseModel):
    """Optical train used for an observation."""

    name: str | None = pydantic.Field(default=None, description="Telescope name (TELESCOP).")
    focal_length: float | None = pydantic.Field(
        default=None, gt=0, description="Focal length in millimeters (FOCALLEN)."
    )
    aperture: float | None = pydantic.Field(
        default=None, gt=0, description="Aperture diameter in millimeters (APTDIA)."
    )

    model_config = pydantic.ConfigDict(frozen=True)

    @property
    def focal_ratio(self) -> float | None:
        """Focal length over aperture, if both are known."""
        if self.focal_length is None or self.aperture is None:
            return None
        return self.focal_length / self.aperture


class Weather(pydantic.BaseModel):
    """Ambient conditions at the time of an observation."""

    temperature: float | None = pydantic.Field(
        default=None, description="Ambient temperature in degrees Celsius (AMBTEMP)."
    )
    pressure: float | None = pydantic.Field(
        default=None, ge=0, description="Atmospheric pressure in hPa (PRESSURE)."
    )
    humidity: float | None = pydantic.Field(
        default=None, ge=0, le=100, description="Relative humidity in percent (HUMIDITY)."
    )

    model_config = pydantic.ConfigDict(frozen=True)


@dataclasses.dataclass
class ObservationContext:
    """Records describing the circumstances of an observation.

    These are attached to a file, not to any one block, and are refreshed
    whenever a linked keyword (see `LINKED_KEYWORDS`) of the primary block is
    written or deleted.  Each record is `None` until the keywords it is built
    from are present and interpretable.
    """

    target_name: str | None = None
    target: SkyCoord | None = None
    time: Time | None = None
    telescope: Telescope | None = None
    weather: Weather | None = None
    location: EarthLocation | None = None

    def refresh(self, keywords: KeywordStore, group: ContextGroup | None = None) -> None:
        """Rebuild one group (or all groups) from a keyword store.

        Values that cannot be interpreted leave their record `None` and log a
        warning; they never make the keyword write that triggered the refresh
        fail.
        """
        groups = [group] if group is not None else list(ContextGroup)
        for g in groups:
            try:
                match g:
                    case ContextGroup.TARGET:
                        self._refresh_target(keywords)
                    case ContextGroup.TIME:
                        self._refresh_time(keywords)
                    case ContextGroup.TELESCOPE:
                        self._refresh_telescope(keywords)
                    case ContextGroup.WEATHER:
                        self._refresh_weather(keywords)
                    case ContextGroup.LOCATION:
                        self._refresh_location(keywords)
            except (ValueError, TypeError) as err:
                _LOG.warning("Could not interpret %s keywords: %s", g, err)
                self._clear(g)

    def _clear(self, group: ContextGroup) -> None:
        match group:
            case ContextGroup.TARGET:
                self.target = None
            case ContextGroup.TIME:
                self.time = None
            case ContextGroup.TELESCOPE:
                self.telescope = None
            case ContextGroup.WEATHER:
                self.weather = None
            case ContextGroup.LOCATION:
                self.location = None

    def _refresh_target(self, keywords: KeywordStore) -> None:
        name = keywords.get("OBJECT")
        self.target_name = str(name).strip() if name is not None else None
        ra = keywords.get("OBJCTRA")
        dec = keywords.get("OBJCTDEC")
        self.target = None
        if ra is None or dec is None:
            return
        if isinstance(ra, str):
            # Conventionally sexagesimal hours and degrees.
            self.target = SkyCoord(ra, str(dec), unit=(u.hourangle, u.deg), frame="icrs")
        else:
            self.target = SkyCoord(ra=float(ra) * u.deg, dec=float(dec) * u.deg, frame="icrs")

    def _refresh_time(self, keywords: KeywordStore) -> None:
        date = keywords.get("DATE-OBS")
        self.time = None
        if date is None:
            return
        date = str(date).strip()
        clock = keywords.get("TIME-OBS")
        if "T" not in date and clock is not None:
            date = f"{date}T{str(clock).strip()}"
        self.time = Time(date, format="isot" if "T" in date else "iso", scale="utc")

    def _refresh_telescope(self, keywords: KeywordStore) -> None:
        values = {
            "name": keywords.get("TELESCOP"),
            "focal_length": keywords.get("FOCALLEN"),
            "aperture": keywords.get("APTDIA"),
        }
        if all(v is None for v in values.values()):
            self.telescope = None
            return
        if values["name"] is not None:
            values["name"] = str(values["name"]).strip()
        self.telescope = Telescope.model_validate(values)

    def _refresh_weather(self, keywords: KeywordStore) -> None:
        values = {
            "temperature": keywords.get("AMBTEMP"),
            "pressure": keywords.get("PRESSURE"),
            "humidity": keywords.get("HUMIDITY"),
        }
        if all(v is None for v in values.values()):
            self.weather = None
            return
        self.weather = Weather.model_validate(values)

    def _refresh_location(self, keywords: KeywordStore) -> None:
        lat = keywords.get("SITELAT")
        lon = keywords.get("SITELONG")
        self.location = None
        if lat is None or lon is None:
            return
        height = float(keywords.get("SITEELEV", 0.0))
        self.location = EarthLocation.from_geodetic(
            lon=Longitude(lon, unit=u.deg, wrap_angle=180 * u.deg),
            lat=Latitude(lat, unit=u.deg),
            height=height * u.m,
        )

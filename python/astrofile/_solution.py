# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("WCS_KEYWORDS", "CoordinateSolution", "is_solution_keyword")

import copy
import math
from logging import getLogger
from typing import TYPE_CHECKING, final

import astropy.io.fits
import astropy.units as u
import astropy.wcs
import numpy as np
from astropy.coordinates import SkyCoord

from ._errors import InvalidArgumentError
from ._geom import XY

if TYPE_CHECKING:
    from ._keywords import KeywordStore

_LOG = getLogger(__name__)

WCS_KEYWORDS = (
    "WCSAXES",
    "CTYPE1",
    "CTYPE2",
    "CUNIT1",
    "CUNIT2",
    "CRPIX1",
    "CRPIX2",
    "CRVAL1",
    "CRVAL2",
    "CDELT1",
    "CDELT2",
    "CROTA1",
    "CROTA2",
    "CD1_1",
    "CD1_2",
    "CD2_1",
    "CD2_2",
    "PC1_1",
    "PC1_2",
    "PC2_1",
    "PC2_2",
    "LONPOLE",
    "LATPOLE",
    "RADESYS",
    "EQUINOX",
    "A_ORDER",
    "B_ORDER",
    "AP_ORDER",
    "BP_ORDER",
)
"""Keywords that describe a coordinate solution and are rewritten whenever the
solution changes.
"""

_SIP_PREFIXES = ("A_", "B_", "AP_", "BP_")


def is_solution_keyword(name: str) -> bool:
    """Test whether a (normalized) keyword name is part of a coordinate
    solution.
    """
    return name in WCS_KEYWORDS or name.startswith(_SIP_PREFIXES)


@final
class CoordinateSolution:
    """A mapping between pixel coordinates and ICRS sky coordinates.

    Parameters
    ----------
    wcs
        Celestial FITS WCS to wrap.  It is copied, so later changes to the
        argument do not affect the solution.
    stale
        Whether the solution is already known to be out of date.

    Notes
    -----
    Pixel coordinates use the continuous frame in which pixel ``(i, j)``
    covers ``[i, i + 1) x [j, j + 1)``; Astropy's convention puts pixel
    centers on integers instead, so points are shifted by half a pixel at the
    boundary.

    A stale solution still answers queries; it is up to callers to check
    `is_stale` before relying on it for registration-sensitive work.
    Solutions are never recomputed automatically.
    """

    def __init__(self, wcs: astropy.wcs.WCS, *, stale: bool = False):
        if not wcs.has_celestial or wcs.naxis != 2:
            raise InvalidArgumentError("A coordinate solution requires a 2-d celestial WCS.")
        self._wcs = wcs.deepcopy()
        self._stale = stale

    @classmethod
    def from_wcs(cls, wcs: astropy.wcs.WCS) -> CoordinateSolution:
        """Construct a fresh solution from an externally computed WCS (e.g.
        the output of a plate solver).
        """
        return cls(wcs)

    @classmethod
    def from_linear(
        cls,
        reference_pixel: XY[float],
        reference_sky: SkyCoord,
        scale: u.Quantity,
        rotation: u.Quantity = 0.0 * u.deg,
        *,
        parity: int = -1,
    ) -> CoordinateSolution:
        """Construct a gnomonic (``TAN``) solution from linear terms.

        Parameters
        ----------
        reference_pixel
            Continuous pixel coordinates of the reference point.
        reference_sky
            Sky position of the reference point.
        scale
            Angular size of a pixel (angle per pixel).
        rotation, optional
            Counter-clockwise rotation of the sky axes relative to the pixel
            axes.
        parity, optional
            Sign of the ``x`` scale; ``-1`` (the default) puts east to the
            left, as on the sky.
        """
        if parity not in (-1, 1):
            raise InvalidArgumentError(f"Parity must be -1 or 1; got {parity}.")
        icrs = reference_sky.icrs
        wcs = astropy.wcs.WCS(naxis=2)
        wcs.wcs.ctype = ["RA---TAN", "DEC--TAN"]
        wcs.wcs.cunit = ["deg", "deg"]
        wcs.wcs.crval = [icrs.ra.to_value(u.deg), icrs.dec.to_value(u.deg)]
        wcs.wcs.crpix = [reference_pixel[0] + 0.5, reference_pixel[1] + 0.5]
        s = u.Quantity(scale).to_value(u.deg)
        theta = u.Quantity(rotation).to_value(u.rad)
        c, sn = math.cos(theta), math.sin(theta)
        wcs.wcs.cd = np.array([[parity * s * c, -s * sn], [parity * s * sn, s * c]])
        wcs.wcs.radesys = "ICRS"
        return cls(wcs)

    @classmethod
    def from_keywords(cls, keywords: KeywordStore) -> CoordinateSolution | None:
        """Derive a solution from the WCS keywords in a store.

        Returns
        -------
        `CoordinateSolution` | `None`
            The solution, or `None` if the keywords do not describe a
            celestial solution.  A warning is logged if they appear to but
            cannot be interpreted.
        """
        if not (keywords.exists("CTYPE1") and keywords.exists("CTYPE2")):
            return None
        header = astropy.io.fits.Header()
        header["NAXIS"] = 2
        for entry in keywords:
            if is_solution_keyword(entry.name):
                header[entry.name] = entry.value
        try:
            wcs = astropy.wcs.WCS(header, naxis=2)
        except (ValueError, KeyError, MemoryError, astropy.wcs.WcsError) as err:
            _LOG.warning("Ignoring uninterpretable WCS keywords: %s", err)
            return None
        if not wcs.has_celestial:
            return None
        return cls(wcs)

    @property
    def wcs(self) -> astropy.wcs.WCS:
        """A copy of the wrapped `astropy.wcs.WCS`.

        As for any Astropy WCS, this uses zero-based pixel indices with pixel
        centers on integers.
        """
        return self._wcs.deepcopy()

    @property
    def is_present(self) -> bool:
        """Whether this solution can answer queries (always `True`; an image
        without a solution holds `None` instead).
        """
        return True

    @property
    def is_stale(self) -> bool:
        """Whether a geometric transform has been applied since the solution
        was derived.
        """
        return self._stale

    def mark_stale(self) -> None:
        """Flag the solution as out of date."""
        self._stale = True

    @property
    def has_distortion(self) -> bool:
        """Whether the solution carries nonlinear (SIP) terms."""
        return self._wcs.sip is not None

    @property
    def cd_matrix(self) -> np.ndarray:
        """Linear terms mapping pixel offsets to intermediate world
        coordinates in degrees.
        """
        return self._wcs.pixel_scale_matrix.copy()

    @property
    def reference_pixel(self) -> XY[float]:
        """Continuous pixel coordinates of the reference point."""
        crpix = self._wcs.wcs.crpix
        return XY(float(crpix[0]) - 0.5, float(crpix[1]) - 0.5)

    @property
    def reference_sky(self) -> SkyCoord:
        """Sky position of the reference point."""
        crval = self._wcs.wcs.crval
        return SkyCoord(ra=crval[0], dec=crval[1], unit=u.deg, frame="icrs")

    @property
    def scale(self) -> u.Quantity:
        """Mean pixel scale (angle per pixel)."""
        return math.sqrt(abs(np.linalg.det(self.cd_matrix))) * 3600.0 * u.arcsec

    @property
    def rotation(self) -> u.Quantity:
        """Counter-clockwise rotation of the declination axis relative to the
        pixel ``y`` axis.
        """
        cd = self.cd_matrix
        return math.degrees(math.atan2(-cd[0, 1], cd[1, 1])) * u.deg

    def pixel_to_sky[T: np.ndarray | float](self, x: T, y: T) -> SkyCoord:
        """Transform one or more pixel points to sky coordinates.

        Parameters
        ----------
        x : `numpy.ndarray` | `float`
            ``x`` values of the pixel points to transform.
        y : `numpy.ndarray` | `float`
            ``y`` values of the pixel points to transform.

        Returns
        -------
        astropy.coordinates.SkyCoord
            Transformed sky coordinates (ICRS).
        """
        ra, dec = self._wcs.all_pix2world(np.asarray(x) - 0.5, np.asarray(y) - 0.5, 0)
        return SkyCoord(ra=ra, dec=dec, unit=u.deg, frame="icrs")

    def sky_to_pixel(self, sky: SkyCoord) -> XY[np.ndarray | float]:
        """Transform one or more sky coordinates to pixels.

        Parameters
        ----------
        sky
            Sky coordinates to transform.

        Returns
        -------
        `XY` [`numpy.ndarray` | `float`]
            Transformed pixel coordinates.
        """
        icrs = sky.icrs
        x, y = self._wcs.all_world2pix(icrs.ra.to_value(u.deg), icrs.dec.to_value(u.deg), 0)
        if np.ndim(x) == 0:
            return XY(float(x) + 0.5, float(y) + 0.5)
        return XY(x + 0.5, y + 0.5)

    def transformed(self, a: np.ndarray, t: np.ndarray, *, stale: bool | None = None) -> CoordinateSolution:
        """Return a solution for an image whose pixels were mapped by
        ``p' = a @ p + t``.

        Parameters
        ----------
        a
            2x2 linear part of the pixel mapping.
        t
            Translation part of the pixel mapping.
        stale, optional
            Staleness of the result.  Defaults to keeping the current flag for
            pure translations and `True` otherwise.

        Notes
        -----
        The reference pixel and linear terms are updated exactly.  Nonlinear
        distortion terms cannot follow a non-translation mapping and are
        dropped, which is one reason such results are flagged stale.
        """
        a = np.asarray(a, dtype=float)
        t = np.asarray(t, dtype=float)
        is_translation = bool(np.array_equal(a, np.identity(2)))
        if stale is None:
            stale = self._stale or not is_translation
        wcs = self._wcs.deepcopy()
        crpix = a @ (wcs.wcs.crpix - 0.5) + t + 0.5
        if not is_translation:
            if wcs.sip is not None:
                _LOG.debug("Dropping SIP distortion terms from transformed solution.")
                wcs.sip = None
                wcs.wcs.ctype = [ctype.removesuffix("-SIP") for ctype in wcs.wcs.ctype]
            cd = self._wcs.pixel_scale_matrix @ np.linalg.inv(a)
            if wcs.wcs.has_cd():
                wcs.wcs.cd = cd
            else:
                cdelt = wcs.wcs.get_cdelt()
                wcs.wcs.pc = cd / cdelt[:, np.newaxis]
        elif wcs.sip is not None:
            wcs.sip = astropy.wcs.Sip(wcs.sip.a, wcs.sip.b, wcs.sip.ap, wcs.sip.bp, crpix)
        wcs.wcs.crpix = crpix
        wcs.wcs.set()
        return CoordinateSolution(wcs, stale=stale)

    def to_keywords(self, keywords: KeywordStore) -> None:
        """Replace the WCS keywords in a store with this solution's terms."""
        clear_keywords(keywords)
        header = self._wcs.to_header(relax=True)
        for card in header.cards:
            if is_solution_keyword(card.keyword):
                keywords.write(card.keyword, card.value, card.comment)

    def copy(self) -> CoordinateSolution:
        """Return an independent copy."""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        ref = self.reference_sky
        return (
            f"CoordinateSolution(ra={ref.ra.deg:.6f}, dec={ref.dec.deg:.6f}, "
            f"scale={self.scale.to_value(u.arcsec):.4f}arcsec, stale={self._stale})"
        )


def clear_keywords(keywords: KeywordStore) -> None:
    """Remove all coordinate-solution keywords from a store."""
    for name in keywords.names:
        if is_solution_keyword(name):
            keywords.delete(name)

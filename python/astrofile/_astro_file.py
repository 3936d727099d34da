# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("AstroFile",)

import os
from collections.abc import Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from ._blocks import Block, BlockKind, ImageBlock
from ._context import LINKED_KEYWORDS, ObservationContext
from ._dtypes import KeywordType, KeywordValue
from ._errors import (
    InconsistentStateError,
    InvalidArgumentError,
    NotFoundError,
    UnsupportedOperationError,
)
from ._geom import XY
from ._keywords import Keyword, normalize_name
from ._observations import (
    AstrometryBlock,
    AstrometryObservation,
    ObservationBlock,
    PhotometryBlock,
    PhotometryObservation,
)
from ._options import CalibrationOptions, CentroidOptions, TransformOptions
from ._registry import BlockRegistry, default_registry
from ._render import Renderer, RenderMode, TransferFunction
from ._solution import CoordinateSolution, is_solution_keyword
from ._transforms import Affine, Bin, Crop, Flip, Float, Flop, GeometricTransform, Resample, Rotate

if TYPE_CHECKING:
    from astropy.coordinates import SkyCoord

    from ._collaborators import Calibrator, Decoder, Encoder, PlateSolver, SourceDetector
    from .fits import FitsCompressionOptions

_LOG = getLogger(__name__)


class AstroFile:
    """An ordered collection of blocks that together make up one data file,
    with a facade for reading, transforming and analysing its images.

    Parameters
    ----------
    name, optional
        Name of the file (usually its path), for diagnostics.
    registry, optional
        Constructors used to materialize decoded blocks.  Defaults to a new
        `default_registry`.
    renderer, optional
        Collaborator used by `rendered_view` when none is passed explicitly.

    Notes
    -----
    Block 0 is always the primary image once the file has data.  Methods that
    address a block take an ``index`` argument that defaults to it; an index
    that does not exist raises `InvalidArgumentError`, and an operation the
    addressed block does not support raises `UnsupportedOperationError`.

    Geometric transforms of the primary image are propagated to its
    coordinate solution and to the image positions in the astrometry and
    photometry blocks, so those stay registered to the pixels.  All inputs
    are validated and all results computed before anything is modified.  If
    propagation fails after validation, `InconsistentStateError` is raised,
    the file is left unmodified, and `needs_reload` is set: the file then
    refuses further changes until it is reloaded.

    Instances are not thread-safe; distinct instances share no state.
    """

    def __init__(
        self,
        name: str = "",
        registry: BlockRegistry | None = None,
        renderer: Renderer | None = None,
    ):
        self.name = name
        self._registry = registry if registry is not None else default_registry()
        self.renderer = renderer
        self._blocks: list[Block] = []
        self._dirty = False
        self._needs_reload = False
        self._context = ObservationContext()
        self._astrometry: AstrometryBlock | None = None
        self._photometry: PhotometryBlock | None = None

    # State.

    @property
    def registry(self) -> BlockRegistry:
        """Constructors used by `load` (`BlockRegistry`)."""
        return self._registry

    @property
    def blocks(self) -> Sequence[Block]:
        """The blocks, in order (read-only sequence)."""
        return tuple(self._blocks)

    @property
    def block_count(self) -> int:
        """Number of blocks."""
        return len(self._blocks)

    @property
    def is_dirty(self) -> bool:
        """Whether the file has changed since it was loaded or last marked
        saved.
        """
        return self._dirty

    @property
    def has_data(self) -> bool:
        """Whether a primary image has been created or loaded."""
        return bool(self._blocks)

    @property
    def needs_reload(self) -> bool:
        """Whether a failed propagation has left the file unusable."""
        return self._needs_reload

    @property
    def context(self) -> ObservationContext:
        """Target, time, telescope, weather and location records derived from
        the primary block's keywords.
        """
        return self._context

    @property
    def astrometry_block(self) -> AstrometryBlock | None:
        """The tracked astrometry block, if any."""
        return self._astrometry

    @property
    def photometry_block(self) -> PhotometryBlock | None:
        """The tracked photometry block, if any."""
        return self._photometry

    def mark_saved(self) -> None:
        """Acknowledge that the current state has been persisted."""
        self._dirty = False

    def _check_mutable(self) -> None:
        if self._needs_reload:
            raise InconsistentStateError(
                f"File {self.name!r} is in an inconsistent state and must be reloaded."
            )

    def _modified(self) -> None:
        self._dirty = True

    # Lifecycle.

    def create_primary_image(
        self, shape_or_array: Sequence[int] | npt.ArrayLike, dtype: npt.DTypeLike = np.float64
    ) -> ImageBlock:
        """Create the primary image block.

        Parameters
        ----------
        shape_or_array
            Either a sequence ``(height, width)`` or ``(planes, height,
            width)`` for a zero-filled image, or an array of pixel values.
        dtype, optional
            Pixel type of a zero-filled image.

        Raises
        ------
        InconsistentStateError
            Raised if the file already has data.
        """
        self._check_mutable()
        if self._blocks:
            raise InconsistentStateError(f"File {self.name!r} already has a primary block.")
        if _is_shape(shape_or_array):
            array = np.zeros(shape_or_array, dtype=dtype)
        else:
            array = np.asarray(shape_or_array)
        block = ImageBlock(array)
        self._blocks.append(block)
        self._context.refresh(block.keywords)
        self._modified()
        _LOG.debug("Created primary image with shape %s in %r.", block.shape, self.name)
        return block

    def add_block(self, block: Block) -> int:
        """Append a block, returning its index.

        Raises
        ------
        InvalidArgumentError
            Raised if the file has no blocks and ``block`` is not an image.
        InconsistentStateError
            Raised if ``block`` is a second astrometry or photometry block.
        """
        self._check_mutable()
        if not self._blocks and not isinstance(block, ImageBlock):
            raise InvalidArgumentError("The first block of a file must be an image.")
        if isinstance(block, AstrometryBlock) and self._astrometry is not None:
            raise InconsistentStateError(f"File {self.name!r} already has an astrometry block.")
        if isinstance(block, PhotometryBlock) and self._photometry is not None:
            raise InconsistentStateError(f"File {self.name!r} already has a photometry block.")
        self._blocks.append(block)
        if isinstance(block, AstrometryBlock):
            self._astrometry = block
        elif isinstance(block, PhotometryBlock):
            self._photometry = block
        if len(self._blocks) == 1:
            self._context.refresh(block.keywords)
        self._modified()
        return len(self._blocks) - 1

    def load(self, data: bytes, decoder: Decoder) -> None:
        """Replace the contents of the file with decoded bytes.

        Every block is constructed before any existing state is discarded, so
        a failure leaves the file as it was.  Loading clears `is_dirty` and
        `needs_reload`.

        Raises
        ------
        InvalidArgumentError
            Raised if the data holds no blocks or does not start with an
            image.
        NotFoundError
            Raised if a record's signature is not registered.
        """
        blocks = [self._registry.create(record) for record in decoder.decode(data)]
        if not blocks:
            raise InvalidArgumentError(f"No blocks found while loading {self.name!r}.")
        if not isinstance(blocks[0], ImageBlock):
            raise InvalidArgumentError(f"The first block of {self.name!r} is not an image.")
        astrometry = [b for b in blocks if isinstance(b, AstrometryBlock)]
        photometry = [b for b in blocks if isinstance(b, PhotometryBlock)]
        if len(astrometry) > 1 or len(photometry) > 1:
            _LOG.warning(
                "%r holds %d astrometry and %d photometry blocks; only the first of each is tracked.",
                self.name,
                len(astrometry),
                len(photometry),
            )
        self._blocks = blocks
        self._astrometry = astrometry[0] if astrometry else None
        self._photometry = photometry[0] if photometry else None
        self._context = ObservationContext()
        self._context.refresh(blocks[0].keywords)
        self._dirty = False
        self._needs_reload = False
        _LOG.debug("Loaded %d blocks into %r.", len(blocks), self.name)

    def save(self, encoder: Encoder) -> bytes:
        """Serialize the blocks.

        This does not clear `is_dirty`; call `mark_saved` once the bytes have
        been persisted.
        """
        if not self._blocks:
            raise InconsistentStateError(f"File {self.name!r} has no data to save.")
        data = encoder.encode(self.blocks)
        _LOG.debug("Encoded %d blocks from %r (%d bytes).", len(self._blocks), self.name, len(data))
        return data

    @classmethod
    def read_fits(cls, path: str | os.PathLike[str], registry: BlockRegistry | None = None) -> AstroFile:
        """Read a FITS file from disk."""
        from .fits import FitsDecoder

        with open(path, "rb") as stream:
            data = stream.read()
        result = cls(os.fspath(path), registry)
        result.load(data, FitsDecoder())
        return result

    def write_fits(
        self, path: str | os.PathLike[str], compression: FitsCompressionOptions | None = None
    ) -> None:
        """Write the file to disk as FITS and mark it saved."""
        from .fits import FitsEncoder

        data = self.save(FitsEncoder(compression))
        with open(path, "wb") as stream:
            stream.write(data)
        self.mark_saved()

    def copy(self) -> AstroFile:
        """Return an independent deep copy."""
        result = AstroFile(self.name, self._registry, self.renderer)
        result._blocks = [block.copy() for block in self._blocks]
        for block in result._blocks:
            if isinstance(block, AstrometryBlock) and result._astrometry is None:
                result._astrometry = block
            elif isinstance(block, PhotometryBlock) and result._photometry is None:
                result._photometry = block
        if result._blocks:
            result._context.refresh(result._blocks[0].keywords)
        result._dirty = self._dirty
        result._needs_reload = self._needs_reload
        return result

    # Block access.

    def block(self, index: int = 0) -> Block:
        """Return the block at an index."""
        if isinstance(index, bool) or not isinstance(index, int | np.integer):
            raise InvalidArgumentError(f"Block index must be an integer; got {index!r}.")
        if not (0 <= index < len(self._blocks)):
            raise InvalidArgumentError(f"Block index {index} is invalid for {len(self._blocks)} blocks.")
        return self._blocks[index]

    def block_kind(self, index: int = 0) -> BlockKind:
        """Return the kind of a block."""
        return self.block(index).kind

    def block_name(self, index: int = 0) -> str:
        """Return the ``EXTNAME`` of a block, or ``"PRIMARY"`` for an unnamed
        block 0.
        """
        name = self.block(index).name
        if not name and index == 0:
            return "PRIMARY"
        return name

    def image_block(self, index: int = 0) -> ImageBlock:
        """Return an image block.

        Raises
        ------
        UnsupportedOperationError
            Raised if the block is not an image.
        """
        block = self.block(index)
        if not isinstance(block, ImageBlock):
            raise UnsupportedOperationError(f"Block {index} is a {block.kind} block, not an image.")
        return block

    # Keywords.

    def keyword_read(self, name: str, index: int = 0, as_type: KeywordType | None = None) -> KeywordValue:
        """Read a keyword value, optionally converted to another type."""
        return self.block(index).keywords.read(name, as_type)

    def keyword_write(
        self,
        name: str,
        value: KeywordValue,
        comment: str = "",
        index: int = 0,
        type: KeywordType | None = None,
    ) -> None:
        """Write a keyword.

        Writes to linked keywords of block 0 refresh `context`; writes to WCS
        keywords of an image block re-derive its coordinate solution.
        """
        self._check_mutable()
        block = self.block(index)
        entry = block.keywords.write(name, value, comment, type)
        self._keyword_changed(block, index, entry.name)

    def keyword_delete(self, name: str, index: int = 0) -> bool:
        """Delete a keyword, returning `False` if it was absent."""
        self._check_mutable()
        block = self.block(index)
        if not block.keywords.delete(name):
            return False
        self._keyword_changed(block, index, normalize_name(name))
        return True

    def keyword_exists(self, name: str, index: int = 0) -> bool:
        """Test whether a keyword exists."""
        return self.block(index).keywords.exists(name)

    def keyword_type(self, name: str, index: int = 0) -> KeywordType:
        """Return the stored type of a keyword."""
        return self.block(index).keywords.type(name)

    def keyword_comment(self, name: str, index: int = 0) -> str:
        """Return the comment attached to a keyword."""
        return self.block(index).keywords.comment(name)

    def keyword_count(self, index: int = 0) -> int:
        """Return the number of keywords in a block."""
        return len(self.block(index).keywords)

    def keywords(self, index: int = 0) -> list[Keyword]:
        """Return the keywords of a block, in order."""
        return list(self.block(index).keywords)

    def comment_write(self, text: str, index: int = 0) -> None:
        """Append a ``COMMENT`` card."""
        self._check_mutable()
        self.block(index).keywords.comment_write(text)
        self._modified()

    def history_write(self, text: str, index: int = 0) -> None:
        """Append a ``HISTORY`` card."""
        self._check_mutable()
        self.block(index).keywords.history_write(text)
        self._modified()

    def copy_keywords(self, other: AstroFile, index: int = 0, source_index: int = 0) -> None:
        """Copy the non-reserved keywords of a block of another file into a
        block of this one.
        """
        self._check_mutable()
        block = self.block(index)
        block.keywords.update_from(other.block(source_index).keywords)
        if index == 0:
            self._context.refresh(block.keywords)
        if isinstance(block, ImageBlock):
            block.refresh_solution()
        self._modified()

    def _keyword_changed(self, block: Block, index: int, name: str) -> None:
        if index == 0 and (group := LINKED_KEYWORDS.get(name)) is not None:
            self._context.refresh(block.keywords, group)
        if isinstance(block, ImageBlock) and is_solution_keyword(name):
            block.refresh_solution()
        self._modified()

    # Geometric transforms.

    def _apply(
        self,
        transform: GeometricTransform,
        index: int,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> np.ndarray | None:
        self._check_mutable()
        image = self.image_block(index)
        # Recoverable errors (bad parameters) surface here, before anything
        # has changed.
        array, validity, new_solution = image.transformed(transform, options, solution)
        pending: list[tuple[ObservationBlock, list[Any]]] = []
        if index == 0:
            for block in (self._astrometry, self._photometry):
                if block is None:
                    continue
                try:
                    pending.append((block, block.transform_positions(transform, image.shape)))
                except (ValueError, TypeError, ArithmeticError) as err:
                    self._needs_reload = True
                    raise InconsistentStateError(
                        f"Could not propagate {transform!r} to the {block.kind} block of {self.name!r}."
                    ) from err
        image.commit(array, new_solution)
        for block, observations in pending:
            block.replace_observations(observations)
        self._modified()
        _LOG.debug(
            "Applied %r to block %d of %r (%d observation blocks).", transform, index, self.name, len(pending)
        )
        return validity

    def flip(self, index: int = 0, *, solution: CoordinateSolution | None = None) -> None:
        """Mirror an image top to bottom.

        Parameters
        ----------
        index, optional
            Index of the image block.
        solution, optional
            Replacement coordinate solution for the result; if not provided,
            the current one is transformed and marked stale.
        """
        self._apply(Flip(), index, solution=solution)

    def flop(self, index: int = 0, *, solution: CoordinateSolution | None = None) -> None:
        """Mirror an image left to right (see `flip` for parameters)."""
        self._apply(Flop(), index, solution=solution)

    def rotate(
        self,
        angle: float,
        index: int = 0,
        *,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> None:
        """Rotate an image counter-clockwise about its center.

        Parameters
        ----------
        angle
            Rotation in degrees.  Multiples of 90 on square images (and of
            180 on any image) permute pixels exactly; other angles
            interpolate.
        index, optional
            Index of the image block.
        options, optional
            Interpolation options.
        solution, optional
            Replacement coordinate solution.
        """
        self._apply(Rotate(angle), index, options, solution)

    def crop(
        self,
        origin: XY[int],
        extent: XY[int],
        index: int = 0,
        *,
        solution: CoordinateSolution | None = None,
    ) -> None:
        """Keep only a rectangular region of an image.

        Raises
        ------
        OutOfRangeError
            Raised if the region is not entirely inside the image.
        InvalidArgumentError
            Raised if the extent is not positive.
        """
        self._apply(Crop(XY(*origin), XY(*extent)), index, solution=solution)

    def resample(
        self,
        width: int,
        height: int,
        index: int = 0,
        *,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> None:
        """Resample an image onto a smaller grid covering the same area.

        Raises
        ------
        OutOfRangeError
            Raised if the new size exceeds the current size.
        InvalidArgumentError
            Raised if the new size is not positive.
        """
        self._apply(Resample(width, height), index, options, solution)

    def bin(self, factor: int, index: int = 0, *, solution: CoordinateSolution | None = None) -> None:
        """Average ``factor`` x ``factor`` blocks of pixels.

        Raises
        ------
        InvalidArgumentError
            Raised if ``factor`` is not positive or does not divide the image.
        """
        self._apply(Bin(factor), index, solution=solution)

    def affine_transform(
        self,
        center: XY[float],
        offset: XY[float],
        angle: float,
        scale: float,
        pixel_size: XY[float] = XY(1.0, 1.0),
        index: int = 0,
        *,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> np.ndarray:
        """Rotate and scale an image about a point, then translate it.

        Returns
        -------
        numpy.ndarray
            Boolean ``(height, width)`` mask, `True` where output pixels were
            mapped from inside the original image.
        """
        validity = self._apply(Affine(center, offset, angle, scale, pixel_size), index, options, solution)
        image = self.image_block(index)
        return validity if validity is not None else np.ones((image.height, image.width), dtype=bool)

    def float_image(
        self,
        width: int,
        height: int,
        background: float = 0.0,
        index: int = 0,
        *,
        solution: CoordinateSolution | None = None,
    ) -> None:
        """Center an image on a larger canvas filled with ``background``.

        Raises
        ------
        OutOfRangeError
            Raised if the canvas is smaller than the image.
        """
        self._apply(Float(width, height, background), index, solution=solution)

    # Image information and statistics.

    def width(self, index: int = 0) -> int:
        """Width of an image in pixels."""
        return self.image_block(index).width

    def height(self, index: int = 0) -> int:
        """Height of an image in pixels."""
        return self.image_block(index).height

    def plane_count(self, index: int = 0) -> int:
        """Number of planes in an image."""
        return self.image_block(index).plane_count

    def is_mono(self, index: int = 0) -> bool:
        return self.image_block(index).is_mono

    def is_poly(self, index: int = 0) -> bool:
        return self.image_block(index).is_poly

    def image_max(self, index: int = 0, plane: int | None = None) -> float:
        return self.image_block(index).max(plane)

    def image_min(self, index: int = 0, plane: int | None = None) -> float:
        return self.image_block(index).min(plane)

    def image_mean(self, index: int = 0, plane: int | None = None) -> float:
        return self.image_block(index).mean(plane)

    def image_stddev(self, index: int = 0, plane: int | None = None) -> float:
        return self.image_block(index).stddev(plane)

    # Analysis.

    def centroid(
        self,
        seed: XY[float],
        radius: float,
        iterations: int,
        index: int = 0,
        *,
        plane: int = 0,
        options: CentroidOptions = CentroidOptions.DEFAULT,
    ) -> XY[float] | None:
        """Find the centroid of a source near ``seed``; see
        `ImageBlock.centroid`.
        """
        return self.image_block(index).centroid(seed, radius, iterations, plane=plane, options=options)

    def object_profile(
        self, center: XY[float], radius: float, index: int = 0, *, plane: int = 0
    ) -> list[tuple[float, float]]:
        """Return ``(distance, value)`` pairs around a point."""
        return self.image_block(index).object_profile(center, radius, plane=plane)

    def fwhm(
        self, center: XY[float], radius: float = 10.0, index: int = 0, *, plane: int = 0
    ) -> float | None:
        """Estimate the FWHM of the source at ``center``."""
        return self.image_block(index).fwhm(center, radius, plane=plane)

    def mean_fwhm(self, radius: float = 10.0) -> float | None:
        """Average the FWHM of every photometry object with an image
        position, or return `None` if none can be measured.
        """
        if self._photometry is None:
            return None
        image = self.image_block(0)
        values = [
            value
            for observation in self._photometry
            if (position := observation.position) is not None
            and (value := image.fwhm(position, radius)) is not None
        ]
        return float(np.mean(values)) if values else None

    def find_stars(
        self, detector: SourceDetector, index: int = 0, *, plane: int = 0, **parameters: Any
    ) -> list[XY[float]]:
        """Detect sources with an external detector.  The file is not
        modified.
        """
        sources = detector.find_sources(self.image_block(index).plane_array(plane), **parameters)
        _LOG.debug("Detector found %d sources in block %d of %r.", len(sources), index, self.name)
        return list(sources)

    def plate_solve(self, solver: PlateSolver, index: int = 0, **parameters: Any) -> bool:
        """Compute a coordinate solution with an external solver.

        Returns
        -------
        bool
            `True` if a solution was found and installed (as a fresh,
            non-stale solution); `False` if the solver reported failure, in
            which case nothing changes.
        """
        self._check_mutable()
        image = self.image_block(index)
        result = solver.solve(image.plane_array(0), **parameters)
        if not result.success or result.solution is None:
            _LOG.info("Plate solve of block %d of %r failed: %s", index, self.name, result.message)
            return False
        image.set_solution(CoordinateSolution.from_wcs(result.solution.wcs))
        self._modified()
        return True

    def calibrate(
        self,
        frame: ImageBlock | AstroFile,
        calibrator: Calibrator,
        index: int = 0,
        *,
        calibration_options: CalibrationOptions = CalibrationOptions.DEFAULT,
        **options: Any,
    ) -> None:
        """Replace an image's pixels with the output of a calibrator.

        The existing pixels are only discarded once the calibrated ones have
        been computed and checked.

        Parameters
        ----------
        frame
            Calibration frame (dark, flat or bias), or a file whose primary
            image is one.
        calibrator
            Collaborator that performs the arithmetic.
        index, optional
            Index of the image block to calibrate.
        calibration_options, optional
            Tolerances for the exposure time and sensor temperature of the
            frame.  The defaults suit dark frames; pass
            ``CalibrationOptions(exposure_tolerance=None)`` for flat fields.
        **options
            Forwarded to the calibrator.

        Raises
        ------
        InvalidArgumentError
            Raised if the frame's shape, exposure time or ``CCD-TEMP`` differ
            from the image's, or the calibrator returns an array of the wrong
            shape.
        """
        self._check_mutable()
        target = self.image_block(index)
        frame_block = frame.image_block(0) if isinstance(frame, AstroFile) else frame
        if frame_block.shape != target.shape:
            raise InvalidArgumentError(
                f"Calibration frame shape {frame_block.shape} does not match image shape {target.shape}."
            )
        _check_calibration_frame(target, frame_block, calibration_options)
        result = np.asarray(calibrator.calibrate(target, frame_block, **options))
        if result.shape != target.shape:
            raise InvalidArgumentError(
                f"Calibrator returned shape {result.shape}; expected {target.shape}."
            )
        target.set_array(result)
        target.keywords.history_write(f"Calibrated with frame {frame_block.name or 'PRIMARY'}.")
        self._modified()

    # Rendering.

    def rendered_view(
        self, mode: RenderMode = RenderMode.GREY, index: int = 0, renderer: Renderer | None = None
    ) -> np.ndarray:
        """Produce a display raster of an image.

        Raises
        ------
        InvalidArgumentError
            Raised if no renderer was given here or at construction.
        """
        renderer = renderer if renderer is not None else self.renderer
        if renderer is None:
            raise InvalidArgumentError("No renderer available.")
        return self.image_block(index).rendered_view(mode, renderer)

    def set_plane_render_function(
        self,
        plane: int,
        black_point: float,
        white_point: float,
        invert: bool = False,
        transfer_function: TransferFunction = TransferFunction.LINEAR,
        transfer_parameter: float = 1.0,
        index: int = 0,
    ) -> None:
        """Set the display mapping of one plane of an image."""
        self._check_mutable()
        self.image_block(index).set_plane_render_function(
            plane, black_point, white_point, invert, transfer_function, transfer_parameter
        )
        self._modified()

    def set_plane_colour_values(
        self, plane: int, colour: tuple[float, float, float], transparency: float = 1.0, index: int = 0
    ) -> None:
        """Set the compositing colour of one plane of an image."""
        self._check_mutable()
        self.image_block(index).set_plane_colour_values(plane, colour, transparency)
        self._modified()

    def black_point(self, plane: int = 0, index: int = 0) -> float:
        return self.image_block(index).black_point(plane)

    def white_point(self, plane: int = 0, index: int = 0) -> float:
        return self.image_block(index).white_point(plane)

    # Coordinate solution.

    def has_solution(self, index: int = 0) -> bool:
        """Whether an image has a coordinate solution."""
        return self.image_block(index).has_solution

    def solution_is_stale(self, index: int = 0) -> bool:
        """Whether an image's coordinate solution has been invalidated by a
        transform (`False` if there is no solution).
        """
        solution = self.image_block(index).solution
        return solution is not None and solution.is_stale

    def solution(self, index: int = 0) -> CoordinateSolution | None:
        """Return an image's coordinate solution."""
        return self.image_block(index).solution

    def set_solution(self, solution: CoordinateSolution | None, index: int = 0) -> None:
        """Attach or remove an image's coordinate solution."""
        self._check_mutable()
        self.image_block(index).set_solution(solution)
        self._modified()

    def pixel_to_sky(self, point: XY[float], index: int = 0) -> SkyCoord | None:
        """Map a pixel position to the sky; `None` without a solution."""
        return self.image_block(index).pixel_to_sky(point)

    def sky_to_pixel(self, coord: SkyCoord, index: int = 0) -> XY[float] | None:
        """Map a sky position to pixels; `None` without a solution."""
        return self.image_block(index).sky_to_pixel(coord)

    # Astrometry.

    def create_astrometry_block(self) -> AstrometryBlock:
        """Append an empty astrometry block and start tracking it.

        Raises
        ------
        InconsistentStateError
            Raised if there is no primary image or an astrometry block already
            exists.
        """
        if not self._blocks:
            raise InconsistentStateError(f"File {self.name!r} has no primary image.")
        block = AstrometryBlock()
        self.add_block(block)
        return block

    @property
    def has_astrometry_block(self) -> bool:
        """Whether an astrometry block is tracked."""
        return self._astrometry is not None

    def _require_astrometry(self) -> AstrometryBlock:
        if self._astrometry is None:
            raise NotFoundError(f"File {self.name!r} has no astrometry block.")
        return self._astrometry

    def astrometry_add(self, observation: AstrometryObservation) -> bool:
        """Add an astrometry observation; `False` if the name is taken."""
        self._check_mutable()
        added = self._require_astrometry().add(observation)
        if added:
            self._modified()
        return added

    def astrometry_remove(self, name: str) -> bool:
        """Remove an astrometry observation; `False` if it was absent."""
        self._check_mutable()
        removed = self._require_astrometry().remove(name)
        if removed:
            self._modified()
        return removed

    def astrometry_remove_all(self) -> None:
        self._check_mutable()
        self._require_astrometry().remove_all()
        self._modified()

    def astrometry_get(self, name: str) -> AstrometryObservation:
        return self._require_astrometry().get(name)

    def astrometry_first(self) -> AstrometryObservation | None:
        return self._require_astrometry().first()

    def astrometry_next(self) -> AstrometryObservation | None:
        return self._require_astrometry().next()

    def astrometry_count(self) -> int:
        """Number of astrometry observations (0 without a block)."""
        return self._astrometry.count() if self._astrometry is not None else 0

    # Photometry.

    def create_photometry_block(self) -> PhotometryBlock:
        """Append an empty photometry block and start tracking it.

        Raises
        ------
        InconsistentStateError
            Raised if there is no primary image or a photometry block already
            exists.
        """
        if not self._blocks:
            raise InconsistentStateError(f"File {self.name!r} has no primary image.")
        block = PhotometryBlock()
        self.add_block(block)
        return block

    @property
    def has_photometry_block(self) -> bool:
        """Whether a photometry block is tracked."""
        return self._photometry is not None

    def _require_photometry(self) -> PhotometryBlock:
        if self._photometry is None:
            raise NotFoundError(f"File {self.name!r} has no photometry block.")
        return self._photometry

    def photometry_add(self, observation: PhotometryObservation) -> bool:
        """Add a photometry observation; `False` if the name is taken."""
        self._check_mutable()
        added = self._require_photometry().add(observation)
        if added:
            self._modified()
        return added

    def photometry_remove(self, name: str) -> bool:
        """Remove a photometry observation; `False` if it was absent."""
        self._check_mutable()
        removed = self._require_photometry().remove(name)
        if removed:
            self._modified()
        return removed

    def photometry_remove_all(self) -> None:
        self._check_mutable()
        self._require_photometry().remove_all()
        self._modified()

    def photometry_get(self, name: str) -> PhotometryObservation:
        return self._require_photometry().get(name)

    def photometry_first(self) -> PhotometryObservation | None:
        return self._require_photometry().first()

    def photometry_next(self) -> PhotometryObservation | None:
        return self._require_photometry().next()

    def photometry_count(self) -> int:
        """Number of photometry observations (0 without a block)."""
        return self._photometry.count() if self._photometry is not None else 0

    def __repr__(self) -> str:
        kinds = ", ".join(str(block.kind) for block in self._blocks)
        return f"AstroFile(name={self.name!r}, blocks=[{kinds}], dirty={self._dirty})"


def _is_shape(value: object) -> bool:
    # A flat sequence of 2 or 3 integers is a shape; anything else is pixel data.
    return (
        isinstance(value, Sequence)
        and not isinstance(value, str | bytes)
        and len(value) in (2, 3)
        and all(isinstance(n, int | np.integer) and not isinstance(n, bool) for n in value)
    )


def _check_calibration_frame(target: ImageBlock, frame: ImageBlock, options: CalibrationOptions) -> None:
    if options.exposure_tolerance is not None:
        ours, theirs = target.exposure, frame.exposure
        if ours is not None and theirs is not None and abs(ours - theirs) > options.exposure_tolerance * ours:
            raise InvalidArgumentError(
                f"Calibration frame exposure {theirs}s does not match image exposure {ours}s."
            )
    if options.temperature_tolerance is not None:
        ours, theirs = target.keywords.get("CCD-TEMP"), frame.keywords.get("CCD-TEMP")
        if not isinstance(ours, int | float) or not isinstance(theirs, int | float):
            return
        if abs(ours - theirs) > options.temperature_tolerance:
            raise InvalidArgumentError(
                f"Calibration frame CCD-TEMP {theirs} does not match image CCD-TEMP {ours}."
            )

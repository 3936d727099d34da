# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Decoder and encoder for the FITS file format, built on `astropy.io.fits`.

Each block maps to one HDU, in order:

- image blocks to the primary HDU (block 0) or ``IMAGE`` extensions,
  optionally tile-compressed;
- ASCII table blocks (including astrometry and photometry blocks) to
  ``TABLE`` extensions;
- binary table blocks to ``BINTABLE`` extensions.

Astrometry and photometry blocks are recognized on read by their ``EXTNAME``
(``ASTROMETRY`` or ``PHOTOMETRY``).  Structural header cards (``SIMPLE``,
``XTENSION``, ``NAXISn``, ``TFORMn``, ...) are not exposed as keywords; they
are regenerated from the payload on write.
"""

from __future__ import annotations

__all__ = (
    "FitsCompressionAlgorithm",
    "FitsCompressionOptions",
    "FitsDecoder",
    "FitsEncoder",
)

import dataclasses
import enum
import io
import re
from collections.abc import Sequence
from logging import getLogger
from typing import ClassVar

import astropy.io.fits
import astropy.table
import numpy as np

from ._blocks import AsciiTableBlock, Block, ImageBlock, TableBlock
from ._dtypes import KeywordType
from ._errors import InvalidArgumentError
from ._keywords import KeywordStore, is_reserved
from ._registry import DecodedRecord

_LOG = getLogger(__name__)

_STRUCTURAL_PATTERN = re.compile(
    r"^(SIMPLE|XTENSION|EXTEND|PCOUNT|GCOUNT|TFIELDS|CHECKSUM|DATASUM|"
    r"T(TYPE|FORM|BCOL|UNIT|NULL|DISP|DIM|SCAL|ZERO)\d+)$"
)

_OBSERVATION_EXTNAMES = frozenset({"ASTROMETRY", "PHOTOMETRY"})

type FitsHDU = (
    astropy.io.fits.PrimaryHDU
    | astropy.io.fits.ImageHDU
    | astropy.io.fits.CompImageHDU
    | astropy.io.fits.TableHDU
    | astropy.io.fits.BinTableHDU
)


class FitsCompressionAlgorithm(enum.StrEnum):
    """Lossless FITS tile-compression algorithms supported by the encoder.

    See the FITS standard for definitions.
    """

    GZIP_1 = "GZIP_1"
    GZIP_2 = "GZIP_2"
    RICE_1 = "RICE_1"


@dataclasses.dataclass(frozen=True)
class FitsCompressionOptions:
    """Configuration options for compressing image extensions.

    The primary HDU cannot be compressed, so these only apply to image
    blocks after the first.
    """

    algorithm: FitsCompressionAlgorithm = FitsCompressionAlgorithm.GZIP_2
    """Compression algorithm to use."""

    tile_shape: tuple[int, ...] | None = None
    """Shape ``(..., y, x)`` of independently compressed tiles.

    The default of `None` compresses each row separately.
    """

    DEFAULT: ClassVar[FitsCompressionOptions]
    """Default compression options (lossless ``GZIP_2``)."""

    def make_hdu(self, data: np.ndarray) -> astropy.io.fits.CompImageHDU:
        """Make an `astropy.io.fits.CompImageHDU` from these options."""
        if self.algorithm is FitsCompressionAlgorithm.RICE_1 and not np.issubdtype(data.dtype, np.integer):
            raise InvalidArgumentError("RICE_1 compression is only lossless for integer images.")
        return astropy.io.fits.CompImageHDU(
            data,
            compression_type=self.algorithm.value,
            tile_shape=self.tile_shape,
            quantize_level=0.0,
        )


FitsCompressionOptions.DEFAULT = FitsCompressionOptions()


class FitsDecoder:
    """Split the bytes of a FITS file into `DecodedRecord` objects.

    Pixel arrays are returned in physical units (``BSCALE`` and ``BZERO``
    applied; unsigned integer images come back as unsigned dtypes).
    """

    def decode(self, data: bytes) -> list[DecodedRecord]:
        """Decode a FITS byte stream.

        Raises
        ------
        InvalidArgumentError
            Raised if the bytes are not a readable FITS file, or the primary
            HDU holds no image.
        """
        try:
            with astropy.io.fits.open(io.BytesIO(data), mode="readonly") as hdu_list:
                records = [self._decode_hdu(index, hdu) for index, hdu in enumerate(hdu_list)]
        except (OSError, astropy.io.fits.VerifyError) as err:
            raise InvalidArgumentError(f"Could not read FITS data: {err}") from err
        _LOG.debug("Decoded %d FITS HDUs.", len(records))
        return records

    def _decode_hdu(self, index: int, hdu: FitsHDU) -> DecodedRecord:
        keywords = _keywords_from_header(hdu.header)
        match hdu:
            case astropy.io.fits.PrimaryHDU() | astropy.io.fits.ImageHDU() | astropy.io.fits.CompImageHDU():
                if hdu.data is None:
                    if index == 0:
                        raise InvalidArgumentError("The primary HDU holds no image data.")
                    return DecodedRecord("IMAGE", keywords, None)
                return DecodedRecord("IMAGE", keywords, np.array(hdu.data))
            case astropy.io.fits.BinTableHDU() | astropy.io.fits.TableHDU():
                table = astropy.table.Table(hdu.data) if hdu.data is not None else astropy.table.Table()
                extname = str(hdu.header.get("EXTNAME", "")).strip().upper()
                if extname in _OBSERVATION_EXTNAMES:
                    signature = extname
                elif isinstance(hdu, astropy.io.fits.BinTableHDU):
                    signature = "BINTABLE"
                else:
                    signature = "TABLE"
                return DecodedRecord(signature, keywords, table)
        raise InvalidArgumentError(f"HDU {index} has unsupported type {type(hdu).__name__}.")


class FitsEncoder:
    """Serialize blocks as a FITS file.

    Parameters
    ----------
    compression, optional
        Tile compression for image extensions.  `None` (the default) writes
        them uncompressed.
    """

    def __init__(self, compression: FitsCompressionOptions | None = None):
        self._compression = compression

    def encode(self, blocks: Sequence[Block]) -> bytes:
        """Serialize blocks in order.

        Raises
        ------
        InvalidArgumentError
            Raised if there are no blocks or the first is not an image.
        """
        if not blocks or not isinstance(blocks[0], ImageBlock):
            raise InvalidArgumentError("FITS files must start with an image block.")
        hdu_list = astropy.io.fits.HDUList()
        for index, block in enumerate(blocks):
            hdu_list.append(self._encode_block(index, block))
        buffer = io.BytesIO()
        hdu_list.writeto(buffer, output_verify="fix+warn")
        _LOG.debug("Encoded %d blocks as FITS.", len(hdu_list))
        return buffer.getvalue()

    def _encode_block(self, index: int, block: Block) -> FitsHDU:
        match block:
            case ImageBlock():
                data = np.array(block.array)
                if index == 0:
                    hdu = astropy.io.fits.PrimaryHDU(data)
                elif self._compression is not None:
                    hdu = self._compression.make_hdu(data)
                else:
                    hdu = astropy.io.fits.ImageHDU(data)
            case AsciiTableBlock():
                hdu = _table_hdu(block.table, ascii=True)
            case TableBlock():
                hdu = _table_hdu(block.table, ascii=False)
            case _:
                raise InvalidArgumentError(f"Cannot encode block of type {type(block).__name__}.")
        _update_header(hdu.header, block.keywords)
        return hdu


def _keywords_from_header(header: astropy.io.fits.Header) -> KeywordStore:
    store = KeywordStore()
    for card in header.cards:
        name = card.keyword
        if not name:
            continue
        if name == "COMMENT":
            store.comment_write(str(card.value))
            continue
        if name == "HISTORY":
            store.history_write(str(card.value))
            continue
        if is_reserved(name) or _STRUCTURAL_PATTERN.match(name):
            continue
        value = card.value
        if isinstance(value, astropy.io.fits.card.Undefined) or value is None:
            _LOG.debug("Skipping keyword %s with undefined value.", name)
            continue
        if isinstance(value, bool | np.bool_):
            store.write(name, bool(value), card.comment, KeywordType.bool)
        elif isinstance(value, float | np.floating):
            store.write(name, float(value), card.comment, KeywordType.float64)
        elif isinstance(value, int | np.integer):
            store.write(name, int(value), card.comment)
        elif isinstance(value, complex):
            _LOG.warning("Skipping complex-valued keyword %s.", name)
        else:
            store.write(name, str(value), card.comment, KeywordType.string)
    return store


def _update_header(header: astropy.io.fits.Header, keywords: KeywordStore) -> None:
    for entry in keywords:
        if is_reserved(entry.name) or _STRUCTURAL_PATTERN.match(entry.name):
            continue
        value = entry.value
        if entry.type.is_integer:
            value = int(value)
        header[entry.name] = (value, entry.comment)
    for text in keywords.comments:
        header.add_comment(text)
    for text in keywords.history:
        header.add_history(text)


def _table_hdu(
    table: astropy.table.Table, *, ascii: bool
) -> astropy.io.fits.TableHDU | astropy.io.fits.BinTableHDU:
    if not table.colnames:
        return astropy.io.fits.TableHDU() if ascii else astropy.io.fits.BinTableHDU()
    if not ascii:
        return astropy.io.fits.table_to_hdu(table)
    columns = [_ascii_column(name, np.asarray(table[name])) for name in table.colnames]
    return astropy.io.fits.TableHDU.from_columns(columns)


def _ascii_column(name: str, values: np.ndarray) -> astropy.io.fits.Column:
    match values.dtype.kind:
        case "U" | "S":
            width = max(1, max((len(v) for v in values.tolist()), default=1))
            try:
                array = values.astype(f"S{width}")
            except UnicodeEncodeError as err:
                raise InvalidArgumentError(f"Column {name!r} holds non-ASCII text.") from err
            return astropy.io.fits.Column(name=name, format=f"A{width}", array=array, ascii=True)
        case "b" | "i" | "u":
            return astropy.io.fits.Column(
                name=name, format="I20", array=values.astype(np.int64), ascii=True
            )
        case "f":
            # Seventeen significant digits round-trip any float64.
            return astropy.io.fits.Column(
                name=name, format="E25.17", array=values.astype(np.float64), ascii=True
            )
    raise InvalidArgumentError(f"Column {name!r} of dtype {values.dtype} cannot be stored in an ASCII table.")

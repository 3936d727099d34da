# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import io
import os
import tempfile
import unittest

import astropy.io.fits
import astropy.table
import astropy.units as u
import numpy as np
from astropy.coordinates import SkyCoord

from astrofile import (
    XY,
    AsciiTableBlock,
    AstroFile,
    AstrometryObservation,
    BinTableBlock,
    BlockKind,
    CoordinateSolution,
    ImageBlock,
    InvalidArgumentError,
    KeywordType,
    PhotometryObservation,
)
from astrofile.fits import FitsCompressionAlgorithm, FitsCompressionOptions, FitsDecoder, FitsEncoder


def make_file() -> AstroFile:
    """Return a file with every kind of block."""
    astro_file = AstroFile("round-trip")
    rng = np.random.default_rng(11)
    astro_file.create_primary_image(rng.integers(0, 65535, size=(40, 60), dtype=np.uint16))
    astro_file.keyword_write("OBJECT", "M 101", "Target name")
    astro_file.keyword_write("EXPTIME", 300.0, "Exposure in seconds")
    astro_file.keyword_write("GAIN", 2, "e-/ADU")
    astro_file.keyword_write("FLIPPED", False)
    astro_file.comment_write("Synthetic test data")
    astro_file.history_write("Created by the test suite")
    astro_file.set_solution(
        CoordinateSolution.from_linear(
            XY(30.0, 20.0), SkyCoord(ra=210.8 * u.deg, dec=54.35 * u.deg), 1.2 * u.arcsec, 15.0 * u.deg
        )
    )
    extension = ImageBlock(np.arange(12, dtype=np.int32).reshape(3, 4))
    extension.keywords.write("EXTNAME", "SCIENCE")
    astro_file.add_block(extension)
    catalog = BinTableBlock(astropy.table.Table({"id": [1, 2, 3], "flux": [10.5, 20.25, 30.125]}))
    catalog.keywords.write("EXTNAME", "CATALOG")
    astro_file.add_block(catalog)
    astro_file.create_astrometry_block()
    astro_file.astrometry_add(
        AstrometryObservation(name="GSC 1", x=12.5, y=8.25, ra=210.79, dec=54.34, magnitude=11.5)
    )
    astro_file.astrometry_add(
        AstrometryObservation(name="GSC 22", x=40.0, y=30.5, ra=210.81, dec=54.36, magnitude=12.25)
    )
    astro_file.create_photometry_block()
    astro_file.photometry_add(
        PhotometryObservation(
            name="SN",
            x=20.0,
            y=21.0,
            ra=210.8,
            dec=54.35,
            aperture=4.0,
            annulus_inner=6.0,
            annulus_outer=9.0,
            source_flux=1234.5,
            sky_flux=12.0,
            exposure=300.0,
        )
    )
    return astro_file


class FitsTestCase(unittest.TestCase):
    """Tests for the FITS decoder and encoder."""

    def assert_round_trip(self, original: AstroFile, loaded: AstroFile) -> None:
        self.assertEqual(loaded.block_count, original.block_count)
        self.assertEqual(
            [loaded.block_kind(i) for i in range(loaded.block_count)],
            [original.block_kind(i) for i in range(original.block_count)],
        )
        for index in range(original.block_count):
            with self.subTest(index=index):
                loaded_keywords = loaded.keywords(index)
                original_keywords = original.keywords(index)
                self.assertEqual([k.name for k in loaded_keywords], [k.name for k in original_keywords])
                for a, b in zip(loaded_keywords, original_keywords):
                    if isinstance(b.value, float):
                        # Header cards hold at most 20 characters per value.
                        np.testing.assert_allclose(a.value, b.value, rtol=1e-12, err_msg=a.name)
                    else:
                        self.assertEqual(a.value, b.value, msg=a.name)
        primary = loaded.image_block(0)
        self.assertEqual(primary.dtype, np.uint16)
        np.testing.assert_array_equal(primary.array, original.image_block(0).array)
        np.testing.assert_array_equal(loaded.image_block(1).array, original.image_block(1).array)
        self.assertEqual(loaded.block_name(1), "SCIENCE")
        self.assertEqual(loaded.keyword_comment("OBJECT"), "Target name")
        self.assertEqual(loaded.keyword_type("EXPTIME"), KeywordType.float64)
        self.assertIs(loaded.keyword_read("FLIPPED"), False)
        self.assertEqual(primary.keywords.comments, ["Synthetic test data"])
        self.assertEqual(primary.keywords.history, ["Created by the test suite"])
        self.assertEqual(loaded.context.target_name, "M 101")
        catalog = loaded.block(2)
        assert isinstance(catalog, BinTableBlock)
        np.testing.assert_array_equal(catalog.column("flux"), [10.5, 20.25, 30.125])
        self.assertEqual(loaded.astrometry_count(), 2)
        star = loaded.astrometry_get("GSC 22")
        self.assertEqual(star.position, XY(40.0, 30.5))
        assert star.magnitude is not None
        self.assertAlmostEqual(star.magnitude, 12.25)
        measurement = loaded.photometry_get("SN")
        self.assertEqual(measurement.aperture, 4.0)
        self.assertAlmostEqual(measurement.source_flux, 1234.5)
        sky = loaded.pixel_to_sky(XY(5.0, 35.0))
        expected = original.pixel_to_sky(XY(5.0, 35.0))
        assert sky is not None and expected is not None
        self.assertLess(sky.separation(expected).to_value(u.arcsec), 1e-6)
        self.assertFalse(loaded.is_dirty)

    def test_round_trip(self) -> None:
        """Test that encoding and decoding preserves blocks, keywords and
        payloads.
        """
        original = make_file()
        data = original.save(FitsEncoder())
        self.assertTrue(original.is_dirty)
        loaded = AstroFile("loaded")
        loaded.load(data, FitsDecoder())
        self.assert_round_trip(original, loaded)
        with astropy.io.fits.open(io.BytesIO(data)) as hdu_list:
            self.assertEqual(hdu_list[0].header["BITPIX"], 16)
            self.assertEqual(hdu_list[0].header["BZERO"], 32768)
            self.assertIsInstance(hdu_list[3], astropy.io.fits.TableHDU)
            self.assertIsInstance(hdu_list[2], astropy.io.fits.BinTableHDU)

    def test_ascii_tables(self) -> None:
        """Test that ASCII table columns of each supported type survive a
        round trip, including missing observation values.
        """
        original = AstroFile()
        original.create_primary_image((4, 4), np.float32)
        table = astropy.table.Table(
            {"star": ["a", "bcd"], "count": [1, -2], "value": [0.1, 1e-300], "ok": [True, False]}
        )
        original.add_block(AsciiTableBlock(table))
        original.create_astrometry_block()
        original.astrometry_add(AstrometryObservation(name="faint", x=1.5, y=2.5))
        data = original.save(FitsEncoder())
        with astropy.io.fits.open(io.BytesIO(data)) as hdu_list:
            self.assertIsInstance(hdu_list[1], astropy.io.fits.TableHDU)
            self.assertEqual(hdu_list[1].columns["star"].format, "A3")
        loaded = AstroFile()
        loaded.load(data, FitsDecoder())
        block = loaded.block(1)
        assert isinstance(block, AsciiTableBlock)
        self.assertEqual(block.column_names, ["star", "count", "value", "ok"])
        self.assertEqual(block.cell(1, "star"), "bcd")
        self.assertEqual(block.cell(1, "count"), -2)
        self.assertEqual(block.cell(0, "value"), 0.1)
        self.assertEqual(block.cell(1, "value"), 1e-300)
        self.assertEqual(block.cell(0, "ok"), 1)
        star = loaded.astrometry_get("faint")
        self.assertEqual(star.position, XY(1.5, 2.5))
        self.assertIsNone(star.magnitude)
        self.assertIsNone(star.ra)

    def test_files(self) -> None:
        """Test writing to and reading from disk, with compression."""
        original = make_file()
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "test.fits")
            original.write_fits(path, FitsCompressionOptions.DEFAULT)
            self.assertFalse(original.is_dirty)
            loaded = AstroFile.read_fits(path)
            self.assertEqual(loaded.name, path)
            self.assert_round_trip(original, loaded)
            with astropy.io.fits.open(path) as hdu_list:
                self.assertIsInstance(hdu_list[1], astropy.io.fits.CompImageHDU)

    def test_compression_options(self) -> None:
        options = FitsCompressionOptions(FitsCompressionAlgorithm.RICE_1, tile_shape=(1, 4))
        with self.assertRaises(InvalidArgumentError):
            options.make_hdu(np.zeros((3, 4), dtype=np.float32))
        hdu = options.make_hdu(np.zeros((3, 4), dtype=np.int32))
        self.assertIsInstance(hdu, astropy.io.fits.CompImageHDU)

    def test_decode_errors(self) -> None:
        decoder = FitsDecoder()
        with self.assertRaises(InvalidArgumentError):
            decoder.decode(b"definitely not a FITS file")
        buffer = io.BytesIO()
        astropy.io.fits.HDUList([astropy.io.fits.PrimaryHDU()]).writeto(buffer)
        with self.assertRaises(InvalidArgumentError):
            decoder.decode(buffer.getvalue())
        astro_file = make_file()
        with self.assertRaises(InvalidArgumentError):
            astro_file.load(buffer.getvalue(), decoder)
        self.assertEqual(astro_file.block_count, 5)
        with self.assertRaises(InvalidArgumentError):
            FitsEncoder().encode([BinTableBlock()])

    def test_decode_records(self) -> None:
        """Test the records produced for each HDU type."""
        hdu_list = astropy.io.fits.HDUList(
            [
                astropy.io.fits.PrimaryHDU(np.ones((2, 3), dtype=np.float32)),
                astropy.io.fits.BinTableHDU(astropy.table.Table({"a": [1]}), name="OTHER"),
                astropy.io.fits.BinTableHDU(astropy.table.Table({"name": ["x"]}), name="photometry"),
            ]
        )
        hdu_list[0].header["OBSERVER"] = ("someone", "Who")
        buffer = io.BytesIO()
        hdu_list.writeto(buffer)
        records = FitsDecoder().decode(buffer.getvalue())
        self.assertEqual([r.signature for r in records], ["IMAGE", "BINTABLE", "PHOTOMETRY"])
        self.assertEqual(records[0].keywords.names, ["OBSERVER"])
        self.assertEqual(records[0].payload.shape, (2, 3))
        self.assertEqual(records[1].keywords.read("EXTNAME"), "OTHER")
        astro_file = AstroFile()
        astro_file.load(buffer.getvalue(), FitsDecoder())
        self.assertEqual(astro_file.block_kind(2), BlockKind.PHOTOMETRY)
        self.assertEqual(astro_file.photometry_count(), 1)


if __name__ == "__main__":
    unittest.main()

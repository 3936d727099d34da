# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import unittest

import astropy.table
import numpy as np

from astrofile import (
    AstrometryBlock,
    BinTableBlock,
    BlockKind,
    BlockRegistry,
    DecodedRecord,
    ImageBlock,
    InvalidArgumentError,
    KeywordStore,
    NotFoundError,
    PhotometryBlock,
    default_registry,
)


class BlockRegistryTestCase(unittest.TestCase):
    """Tests for BlockRegistry."""

    def test_default(self) -> None:
        registry = default_registry()
        self.assertEqual(registry.signatures, ["IMAGE", "TABLE", "BINTABLE", "ASTROMETRY", "PHOTOMETRY"])
        self.assertIn("bintable", registry)
        self.assertNotIn("SPECTRUM", registry)
        keywords = KeywordStore()
        keywords.write("OBJECT", "M51")
        image = registry.create(DecodedRecord("IMAGE", keywords, np.zeros((4, 6), dtype=np.int32)))
        self.assertIsInstance(image, ImageBlock)
        self.assertEqual(image.keywords.read("OBJECT"), "M51")
        self.assertEqual(image.keywords.read("NAXIS1"), 6)
        table = registry.create(DecodedRecord("BINTABLE", KeywordStore(), astropy.table.Table({"a": [1, 2]})))
        self.assertIsInstance(table, BinTableBlock)
        self.assertEqual(table.kind, BlockKind.BIN_TABLE)
        stars = registry.create(
            DecodedRecord("ASTROMETRY", KeywordStore(), astropy.table.Table({"name": ["A"], "x": [1.0]}))
        )
        self.assertIsInstance(stars, AstrometryBlock)
        self.assertEqual(stars.count(), 1)
        empty = registry.create(DecodedRecord("PHOTOMETRY", KeywordStore()))
        self.assertIsInstance(empty, PhotometryBlock)
        self.assertEqual(empty.count(), 0)
        with self.assertRaises(InvalidArgumentError):
            registry.create(DecodedRecord("IMAGE", KeywordStore()))
        with self.assertRaises(NotFoundError):
            registry.create(DecodedRecord("SPECTRUM", KeywordStore()))

    def test_append_only(self) -> None:
        """Test that signatures can be added but never replaced."""
        registry = BlockRegistry()
        registry.register("custom", BinTableBlock.from_record)
        self.assertIs(registry.resolve("CUSTOM"), registry.resolve(" custom "))
        with self.assertRaises(InvalidArgumentError):
            registry.register("CUSTOM", ImageBlock.from_record)
        with self.assertRaises(InvalidArgumentError):
            registry.register("  ", ImageBlock.from_record)
        with self.assertRaises(NotFoundError):
            registry.resolve("IMAGE")
        self.assertEqual(registry.signatures, ["CUSTOM"])
        self.assertEqual(default_registry().signatures[0], "IMAGE")


if __name__ == "__main__":
    unittest.main()

# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import unittest

import numpy as np

from astrofile import (
    InconsistentStateError,
    InvalidArgumentError,
    KeywordRangeError,
    KeywordStore,
    KeywordType,
    NotFoundError,
    bitpix_for_dtype,
    dtype_for_bitpix,
    is_reserved,
)


class KeywordStoreTestCase(unittest.TestCase):
    """Tests for KeywordStore and KeywordType."""

    def test_round_trip(self) -> None:
        """Test that every value type reads back as written, with its
        comment.
        """
        values = {
            KeywordType.bool: True,
            KeywordType.uint8: 200,
            KeywordType.uint16: 40000,
            KeywordType.uint32: 3_000_000_000,
            KeywordType.uint64: 2**63 + 5,
            KeywordType.int8: -100,
            KeywordType.int16: -30000,
            KeywordType.int32: -2_000_000_000,
            KeywordType.int64: -(2**40),
            KeywordType.float32: 0.5,
            KeywordType.float64: 1.0 / 3.0,
            KeywordType.string: "M31",
        }
        store = KeywordStore()
        for n, (type_, value) in enumerate(values.items()):
            name = f"KEY{n}"
            store.write(name, value, f"comment {n}", type_)
            self.assertEqual(store.read(name), value)
            self.assertEqual(store.type(name), type_)
            self.assertEqual(store.comment(name), f"comment {n}")
        self.assertEqual(len(store), len(values))
        self.assertTrue(store.delete("KEY3"))
        self.assertFalse(store.exists("KEY3"))
        self.assertFalse(store.delete("KEY3"))
        with self.assertRaises(NotFoundError):
            store.read("KEY3")

    def test_narrowing(self) -> None:
        """Test that narrowing reads fail when the value does not fit, and
        widening reads always succeed.
        """
        store = KeywordStore()
        store.write("BIG", 40000, type=KeywordType.uint32)
        with self.assertRaises(KeywordRangeError):
            store.read("BIG", KeywordType.int16)
        self.assertEqual(store.read("BIG", KeywordType.int64), 40000)
        self.assertEqual(store.read("BIG", KeywordType.float64), 40000.0)
        self.assertEqual(store.read("BIG", KeywordType.string), "40000")
        # OverflowError is a builtin base of the range error.
        with self.assertRaises(OverflowError):
            store.read("BIG", KeywordType.uint8)
        with self.assertRaises(KeywordRangeError):
            store.write("SMALL", 300, type=KeywordType.int8)
        self.assertFalse(store.exists("SMALL"))
        store.write("HALF", 2.5)
        with self.assertRaises(KeywordRangeError):
            store.read("HALF", KeywordType.int32)
        store.write("WHOLE", 3.0)
        self.assertEqual(store.read("WHOLE", KeywordType.int16), 3)

    def test_inference(self) -> None:
        """Test the types picked when none is given."""
        store = KeywordStore()
        store.write("A", True)
        store.write("B", 7)
        store.write("C", 2**40)
        store.write("D", 2**63)
        store.write("E", 1.5)
        store.write("F", "text")
        store.write("G", np.int16(3))
        self.assertEqual(
            [store.type(name) for name in "ABCDEFG"],
            [
                KeywordType.bool,
                KeywordType.int32,
                KeywordType.int64,
                KeywordType.uint64,
                KeywordType.float64,
                KeywordType.string,
                KeywordType.int16,
            ],
        )
        with self.assertRaises(InvalidArgumentError):
            store.write("H", [1, 2])

    def test_strings(self) -> None:
        """Test reading string values as other types."""
        store = KeywordStore()
        store.write("NUM", " 42 ")
        store.write("FLAG", "T")
        store.write("WORD", "hello")
        self.assertEqual(store.read("NUM", KeywordType.int32), 42)
        self.assertTrue(store.read("FLAG", KeywordType.bool))
        with self.assertRaises(InvalidArgumentError):
            store.read("WORD", KeywordType.float64)
        store.write("YES", True)
        self.assertEqual(store.read("YES", KeywordType.string), "T")

    def test_names_and_order(self) -> None:
        """Test case-insensitive lookup and stable ordering."""
        store = KeywordStore()
        store.write("exptime", 30.0)
        store.write("FILTER", "V")
        store.write("  ExpTime ", 60.0, "updated")
        self.assertEqual(store.names, ["EXPTIME", "FILTER"])
        self.assertEqual(store.read("EXPTIME"), 60.0)
        self.assertIn("filter", store)
        with self.assertRaises(InvalidArgumentError):
            store.write("  ", 1)
        with self.assertRaises(InvalidArgumentError):
            store.write("COMMENT", "use comment_write")

    def test_commentary(self) -> None:
        """Test COMMENT and HISTORY cards."""
        store = KeywordStore()
        store.comment_write("first")
        store.history_write("flat fielded")
        store.comment_write("second")
        self.assertEqual(store.comments, ["first", "second"])
        self.assertEqual(store.history, ["flat fielded"])
        self.assertEqual(len(store), 0)
        copy = store.copy()
        copy.comment_write("third")
        self.assertEqual(len(store.comments), 2)

    def test_reserved_validator(self) -> None:
        """Test that reserved names are routed through the validator."""
        seen = []

        def validator(name: str, value: object) -> None:
            seen.append((name, value))
            if value != 10:
                raise InconsistentStateError(f"{name} must be 10")

        store = KeywordStore(validator=validator)
        store.write("NAXIS1", 10)
        with self.assertRaises(InconsistentStateError):
            store.write("naxis1", 11)
        self.assertEqual(store.read("NAXIS1"), 10)
        with self.assertRaises(InconsistentStateError):
            store.delete("NAXIS1")
        self.assertTrue(store.exists("NAXIS1"))
        store.write("OBJECT", "M42")
        self.assertEqual(seen, [("NAXIS1", 10), ("NAXIS1", 11), ("NAXIS1", None)])
        self.assertTrue(is_reserved("bitpix"))
        self.assertTrue(is_reserved("NAXIS3"))
        self.assertFalse(is_reserved("NAXISX"))

    def test_update_from(self) -> None:
        """Test copying keywords between stores."""
        source = KeywordStore()
        source.write("NAXIS", 2)
        source.write("OBSERVER", "me", "who")
        source.history_write("made")
        target = KeywordStore()
        target.update_from(source)
        self.assertFalse(target.exists("NAXIS"))
        self.assertEqual(target.read("OBSERVER"), "me")
        self.assertEqual(target.comment("OBSERVER"), "who")
        self.assertEqual(target.history, ["made"])

    def test_bitpix(self) -> None:
        """Test the mapping between pixel types and BITPIX codes."""
        self.assertEqual(bitpix_for_dtype(np.uint16), (16, 32768))
        self.assertEqual(bitpix_for_dtype(np.float32), (-32, 0))
        self.assertEqual(dtype_for_bitpix(16, 32768), np.dtype(np.uint16))
        self.assertEqual(dtype_for_bitpix(16), np.dtype(np.int16))
        self.assertEqual(dtype_for_bitpix(-64), np.dtype(np.float64))
        with self.assertRaises(InvalidArgumentError):
            bitpix_for_dtype(np.complex64)
        with self.assertRaises(InvalidArgumentError):
            dtype_for_bitpix(12)


if __name__ == "__main__":
    unittest.main()

# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "AstroFileError",
    "InconsistentStateError",
    "InvalidArgumentError",
    "KeywordRangeError",
    "NotFoundError",
    "OutOfRangeError",
    "UnsupportedOperationError",
)


class AstroFileError(Exception):
    """Base class for all exceptions raised by this package."""


class NotFoundError(AstroFileError, KeyError):
    """Exception raised when a keyword, observation, or block is absent."""

    def __str__(self) -> str:
        # KeyError quotes its argument; we want the plain message.
        return str(self.args[0]) if self.args else ""


class KeywordRangeError(AstroFileError, OverflowError):
    """Exception raised when a keyword value does not fit in the numeric type
    it is being read or written as.
    """


class OutOfRangeError(AstroFileError, IndexError):
    """Exception raised when geometric parameters or indices fall outside the
    extents of a payload.
    """


class InvalidArgumentError(AstroFileError, ValueError):
    """Exception raised for a malformed factor, size, index, or value."""


class InconsistentStateError(AstroFileError, RuntimeError):
    """Exception raised when a payload and its declared shape or type would
    diverge, or when a transform could not be propagated to every attached
    block.
    """


class UnsupportedOperationError(AstroFileError, NotImplementedError):
    """Exception raised when an operation is invoked on a block kind that does
    not implement it.
    """

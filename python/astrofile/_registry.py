# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("BlockConstructor", "BlockRegistry", "DecodedRecord", "default_registry")

import dataclasses
from collections.abc import Callable
from logging import getLogger
from typing import Any

from ._blocks import AsciiTableBlock, BinTableBlock, Block, ImageBlock
from ._errors import InvalidArgumentError, NotFoundError
from ._keywords import KeywordStore
from ._observations import AstrometryBlock, PhotometryBlock

_LOG = getLogger(__name__)


@dataclasses.dataclass
class DecodedRecord:
    """One block as produced by a `Decoder`, before a `Block` is built."""

    signature: str
    """Registry signature identifying the block variant (e.g. ``"IMAGE"``)."""

    keywords: KeywordStore
    """Keywords read from the record, without its structural keywords."""

    payload: Any = None
    """A `numpy.ndarray` for images, an `astropy.table.Table` for tables."""


type BlockConstructor = Callable[[DecodedRecord], Block]
"""Callable that builds a `Block` from a `DecodedRecord`."""


class BlockRegistry:
    """Mapping from block signature to the constructor that builds that
    variant.

    Registries only grow: there is no way to remove or replace an entry, so
    any signature that resolved once keeps resolving to the same variant.
    """

    def __init__(self) -> None:
        self._constructors: dict[str, BlockConstructor] = {}

    def register(self, signature: str, constructor: BlockConstructor) -> None:
        """Register a constructor.

        Raises
        ------
        InvalidArgumentError
            Raised if ``signature`` is empty or already registered.
        """
        key = signature.strip().upper()
        if not key:
            raise InvalidArgumentError("Block signatures may not be empty.")
        if key in self._constructors:
            raise InvalidArgumentError(f"Block signature {key!r} is already registered.")
        self._constructors[key] = constructor

    def resolve(self, signature: str) -> BlockConstructor:
        """Return the constructor for a signature.

        Raises
        ------
        NotFoundError
            Raised if the signature is not registered.
        """
        try:
            return self._constructors[signature.strip().upper()]
        except KeyError:
            raise NotFoundError(f"No block variant registered for signature {signature!r}.") from None

    def create(self, record: DecodedRecord) -> Block:
        """Construct a block from a decoded record."""
        block = self.resolve(record.signature)(record)
        _LOG.debug("Built %s from record %r.", type(block).__name__, record.signature)
        return block

    def __contains__(self, signature: str) -> bool:
        return signature.strip().upper() in self._constructors

    @property
    def signatures(self) -> list[str]:
        """Registered signatures, in registration order."""
        return list(self._constructors)


def default_registry() -> BlockRegistry:
    """Return a new registry populated with the built-in block variants."""
    registry = BlockRegistry()
    registry.register("IMAGE", ImageBlock.from_record)
    registry.register("TABLE", AsciiTableBlock.from_record)
    registry.register("BINTABLE", BinTableBlock.from_record)
    registry.register("ASTROMETRY", AstrometryBlock.from_record)
    registry.register("PHOTOMETRY", PhotometryBlock.from_record)
    return registry

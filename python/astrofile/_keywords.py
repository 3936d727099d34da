# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "Keyword",
    "KeywordStore",
    "ReservedKeywordValidator",
    "is_reserved",
    "normalize_name",
)

import dataclasses
import re
from collections.abc import Callable, Iterable, Iterator

from ._dtypes import KeywordType, KeywordValue
from ._errors import InvalidArgumentError, NotFoundError

type ReservedKeywordValidator = Callable[[str, KeywordValue | None], None]
"""Callback invoked before a reserved keyword is written (with its new value)
or deleted (with `None`); raises to veto the change.
"""

_RESERVED_PATTERN = re.compile(r"^(NAXIS\d*|BITPIX|BSCALE|BZERO)$")

_COMMENTARY = frozenset({"COMMENT", "HISTORY"})


def normalize_name(name: str) -> str:
    """Return the canonical (stripped, upper-case) form of a keyword name."""
    normalized = name.strip().upper()
    if not normalized:
        raise InvalidArgumentError("Keyword names may not be empty.")
    return normalized


def is_reserved(name: str) -> bool:
    """Test whether a keyword describes the shape or pixel encoding of a
    block's payload.
    """
    return _RESERVED_PATTERN.match(normalize_name(name)) is not None


@dataclasses.dataclass(frozen=True)
class Keyword:
    """A single named, typed metadata value."""

    name: str
    """Normalized keyword name (`str`)."""

    value: KeywordValue
    """Stored value, already converted to `type`."""

    type: KeywordType
    """Tag for the stored value (`KeywordType`)."""

    comment: str = ""
    """Free-text comment (`str`)."""

    @classmethod
    def make(
        cls, name: str, value: KeywordValue, comment: str = "", type: KeywordType | None = None
    ) -> Keyword:
        """Construct a keyword, normalizing its name and inferring or checking
        its type.

        Raises
        ------
        KeywordRangeError
            Raised if ``value`` does not fit in an explicit ``type``.
        """
        if type is None:
            type = KeywordType.infer(value)
        return cls(normalize_name(name), type.convert(value), type, comment)

    def read(self, as_type: KeywordType | None = None) -> KeywordValue:
        """Return the value, optionally viewed as another type."""
        if as_type is None or as_type is self.type:
            return self.value
        return as_type.convert(self.value)


class KeywordStore:
    """An ordered mapping from keyword name to `Keyword`.

    Parameters
    ----------
    entries, optional
        Initial keywords, in order.
    validator, optional
        Callback that vets writes and deletes of reserved keywords (see
        `is_reserved`).  Blocks install one so the declared shape of their
        payload cannot be desynchronized through this interface.

    Notes
    -----
    Names are looked up case-insensitively.  Overwriting an existing keyword
    keeps its position.  ``COMMENT`` and ``HISTORY`` cards are held separately
    and are only written through `comment_write` and `history_write`.
    """

    def __init__(self, entries: Iterable[Keyword] = (), *, validator: ReservedKeywordValidator | None = None):
        self._entries: dict[str, Keyword] = {}
        self._comments: list[str] = []
        self._history: list[str] = []
        self._validator = validator
        for entry in entries:
            self._entries[entry.name] = entry

    def set_validator(self, validator: ReservedKeywordValidator | None) -> None:
        """Install or remove the reserved-keyword validator."""
        self._validator = validator

    def write(
        self, name: str, value: KeywordValue, comment: str = "", type: KeywordType | None = None
    ) -> Keyword:
        """Insert or overwrite a keyword.

        Parameters
        ----------
        name
            Keyword name.
        value
            New value.
        comment, optional
            Free-text comment.
        type, optional
            Type to store the value as.  Inferred from the value if not
            provided.

        Returns
        -------
        `Keyword`
            The stored entry.

        Raises
        ------
        KeywordRangeError
            Raised if ``value`` does not fit in ``type``.
        InconsistentStateError
            Raised by the owning block if a reserved keyword would no longer
            match the payload.
        """
        entry = Keyword.make(name, value, comment, type)
        if entry.name in _COMMENTARY:
            raise InvalidArgumentError(f"Use {entry.name.lower()}_write to add {entry.name} cards.")
        if self._validator is not None and is_reserved(entry.name):
            self._validator(entry.name, entry.value)
        self._entries[entry.name] = entry
        return entry

    def read(self, name: str, as_type: KeywordType | None = None) -> KeywordValue:
        """Return a keyword's value, optionally converted.

        Raises
        ------
        NotFoundError
            Raised if the keyword does not exist.
        KeywordRangeError
            Raised if the value does not fit in ``as_type``.
        """
        return self.entry(name).read(as_type)

    def entry(self, name: str) -> Keyword:
        """Return the full `Keyword` entry for a name."""
        try:
            return self._entries[normalize_name(name)]
        except KeyError:
            raise NotFoundError(f"Keyword {name!r} not found.") from None

    def get(self, name: str, default: KeywordValue | None = None) -> KeywordValue | None:
        """Return a keyword's value, or ``default`` if it is absent."""
        entry = self._entries.get(normalize_name(name))
        return entry.value if entry is not None else default

    def exists(self, name: str) -> bool:
        """Test whether a keyword exists."""
        return normalize_name(name) in self._entries

    __contains__ = exists

    def delete(self, name: str) -> bool:
        """Delete a keyword, returning `False` if it was absent."""
        key = normalize_name(name)
        if key not in self._entries:
            return False
        if self._validator is not None and is_reserved(key):
            self._validator(key, None)
        del self._entries[key]
        return True

    def type(self, name: str) -> KeywordType:
        """Return the stored type tag of a keyword."""
        return self.entry(name).type

    def comment(self, name: str) -> str:
        """Return the comment attached to a keyword."""
        return self.entry(name).comment

    @property
    def names(self) -> list[str]:
        """Keyword names, in order."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Keyword]:
        return iter(list(self._entries.values()))

    def __repr__(self) -> str:
        return f"KeywordStore({list(self._entries.values())!r})"

    def comment_write(self, text: str) -> None:
        """Append a ``COMMENT`` card."""
        self._comments.append(text)

    def history_write(self, text: str) -> None:
        """Append a ``HISTORY`` card."""
        self._history.append(text)

    @property
    def comments(self) -> list[str]:
        """Text of all ``COMMENT`` cards, in order."""
        return list(self._comments)

    @property
    def history(self) -> list[str]:
        """Text of all ``HISTORY`` cards, in order."""
        return list(self._history)

    def copy(self) -> KeywordStore:
        """Return a copy of this store without its validator."""
        result = KeywordStore(self._entries.values())
        result._comments = list(self._comments)
        result._history = list(self._history)
        return result

    def update_from(self, other: KeywordStore, *, include_reserved: bool = False) -> None:
        """Copy all keywords (and commentary cards) from another store.

        Reserved keywords are skipped unless ``include_reserved`` is `True`,
        in which case they are still subject to validation.
        """
        for entry in other:
            if not include_reserved and is_reserved(entry.name):
                continue
            self.write(entry.name, entry.value, entry.comment, entry.type)
        self._comments.extend(other._comments)
        self._history.extend(other._history)

    def _set_reserved(self, name: str, value: KeywordValue, comment: str = "") -> None:
        # Used by the owning block to resynchronize its own shape keywords.
        entry = Keyword.make(name, value, comment)
        previous = self._entries.get(entry.name)
        if previous is None:
            # New shape keywords are grouped at the front, as in a FITS header.
            entries = list(self._entries.values())
            position = max((n + 1 for n, e in enumerate(entries) if is_reserved(e.name)), default=0)
            entries.insert(position, entry)
            self._entries = {e.name: e for e in entries}
            return
        if not comment:
            entry = dataclasses.replace(entry, comment=previous.comment)
        self._entries[entry.name] = entry

    def _delete_reserved(self, name: str) -> None:
        self._entries.pop(normalize_name(name), None)

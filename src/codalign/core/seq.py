"""
Module for representing biological sequences
"""
from typing import TYPE_CHECKING, Union

import numpy as np

from codalign.utils.resources import RESOURCES

if TYPE_CHECKING:
    from codalign.core.alphabet import Alphabet


# Classes --------------------------------------------------------------------------------------------------------------
class Seq:
    """
    Named, mutable sequence of encoded symbols.

    Holds encoded integers (uint8) indexing into its alphabet. Queries are edited in place before alignment
    (ambiguity resolution, gap stripping), everything downstream treats a Seq as read-only.

    Note:
        Seq objects are normally created via ``Alphabet.seq_from()``.

    Examples:
        >>> s = Alphabet.NT.seq_from('AC-GN', name='q1')
        >>> s.remove_gaps()
        >>> str(s)
        'ACGN'
    """
    __slots__ = ('_data', '_alphabet', 'name', 'description')

    def __init__(self, data: np.ndarray, alphabet: 'Alphabet', name: str = '', description: str = ''):
        self._data = data
        self._alphabet = alphabet
        self.name = name
        self.description = description

    @property
    def alphabet(self) -> 'Alphabet': return self._alphabet

    @property
    def encoded(self) -> np.ndarray:
        """Returns the underlying integer array (Zero Copy)."""
        return self._data

    def __array__(self, dtype=None):
        return self._data.astype(dtype, copy=False) if dtype else self._data

    def __bytes__(self) -> bytes: return self._alphabet.decode(self._data)
    def __len__(self): return self._data.shape[0]
    def __str__(self): return self.__bytes__().decode('ascii')
    def __iter__(self): return iter(self._data)

    def __repr__(self):
        if len(self) <= 14: return f"Seq({self.name!r}, {self})"
        head = self._alphabet.decode(self._data[:7]).decode('ascii')
        tail = self._alphabet.decode(self._data[-7:]).decode('ascii')
        return f"Seq({self.name!r}, {head}...{tail})"

    def __getitem__(self, item) -> Union[int, 'Seq']:
        if isinstance(item, slice): return Seq(self._data[item].copy(), self._alphabet, self.name, self.description)
        return int(self._data[item])

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Seq): return False
        return self._alphabet == other._alphabet and np.array_equal(self._data, other._data)

    __hash__ = None

    def copy(self, name: str = None) -> 'Seq':
        """Returns a deep copy, optionally renamed."""
        return Seq(self._data.copy(), self._alphabet, self.name if name is None else name, self.description)

    def is_gap_free(self) -> bool:
        """``True`` if the sequence holds neither GAP nor MISSING symbols."""
        a = self._alphabet
        return not np.any((self._data == a.gap) | (self._data == a.missing))

    def remove_gaps(self):
        """Drops GAP and MISSING symbols in place."""
        a = self._alphabet
        self._data = self._data[(self._data != a.gap) & (self._data != a.missing)]

    def resolve_ambiguities(self, rng: np.random.Generator = None) -> int:
        """
        Replaces every ambiguity code in place with a randomly sampled compatible symbol.

        Args:
            rng: Random number generator, defaults to the shared generator.

        Returns:
            The number of resolved positions.
        """
        if rng is None: rng = RESOURCES.rng
        positions = np.flatnonzero(self._alphabet.ambiguous[self._data])
        if len(positions) == 0: return 0
        data = self._data.copy()
        for p in positions:
            choices = self._alphabet.expand(data[p])
            data[p] = choices[rng.integers(len(choices))]
        self._data = data
        return len(positions)

    def reverse_complement(self) -> 'Seq':
        """Returns the reverse complement as a new sequence."""
        return self._alphabet.reverse_complement(self)

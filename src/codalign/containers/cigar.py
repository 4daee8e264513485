"""
Module for alignment edit scripts.
"""
from enum import IntEnum
from re import compile as regex
from typing import Iterable, NamedTuple, Union

import numpy as np

from codalign import CodalignError
from codalign.core.seq import Seq
from codalign.utils.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class CigarError(CodalignError):
    """Raised for malformed CIGAR strings or a CIGAR that does not span the sequences it is applied to."""


# Classes --------------------------------------------------------------------------------------------------------------
class CigarOp(IntEnum):
    """
    Alignment edit operations.

    ``REF_GAP`` places a gap in the reference track (the query is consumed), ``QUERY_GAP`` places a gap in the query
    track (the reference is consumed). The skipped operations consume one side while the other side is shown as
    MISSING data: they cover the parts of either sequence left outside of the alignment.
    """
    MATCH = 0
    REF_GAP = 1
    QUERY_GAP = 2
    REF_SKIPPED = 3
    QUERY_SKIPPED = 4

    @property
    def symbol(self) -> str: return 'MIDNS'[self]
    @property
    def consumes_ref(self) -> bool: return self in (CigarOp.MATCH, CigarOp.QUERY_GAP, CigarOp.REF_SKIPPED)
    @property
    def consumes_query(self) -> bool: return self in (CigarOp.MATCH, CigarOp.REF_GAP, CigarOp.QUERY_SKIPPED)


class CigarItem(NamedTuple):
    """One run of an edit operation."""
    op: CigarOp
    length: int

    def __str__(self): return f"{self.length}{self.op.symbol}"


class Cigar:
    """
    Immutable, run-length merged sequence of edit operations.

    Examples:
        >>> c = Cigar.parse('3M1D4M')
        >>> c.ref_length, c.query_length
        (8, 7)
        >>> str(Cigar([(CigarOp.MATCH, 2), (CigarOp.MATCH, 3)]))
        '5M'
    """
    __slots__ = ('_items',)
    _CIGAR_REGEX = regex(rb'(?:[0-9]+[MIDNS])*')
    _BYTE_TO_OP = np.full(256, 255, dtype=np.uint8)
    for _op in CigarOp: _BYTE_TO_OP[ord(_op.symbol)] = _op
    _REF_CONSUMERS = np.array([op.consumes_ref for op in CigarOp], dtype=bool)
    _QUERY_CONSUMERS = np.array([op.consumes_query for op in CigarOp], dtype=bool)

    def __init__(self, items: Iterable[Union[CigarItem, tuple[int, int]]] = ()):
        merged: list[CigarItem] = []
        for op, length in items:
            if length < 0: raise CigarError(f'Negative run length {length}')
            if length == 0: continue
            op = CigarOp(op)
            if merged and merged[-1].op == op: merged[-1] = CigarItem(op, merged[-1].length + int(length))
            else: merged.append(CigarItem(op, int(length)))
        self._items = tuple(merged)

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> 'Cigar':
        """
        Parses a CIGAR string such as ``'3M1D4M'``.

        Raises:
            CigarError: If the string contains unknown operations or operations without a length.
        """
        if isinstance(text, str): text = text.encode('ascii')
        if not cls._CIGAR_REGEX.fullmatch(text): raise CigarError(f'Malformed CIGAR string {text!r}')
        ops, counts = _parse_cigar_kernel(np.frombuffer(text, dtype=np.uint8), cls._BYTE_TO_OP)
        return cls(zip(ops.tolist(), counts.tolist()))

    def __iter__(self): return iter(self._items)
    def __len__(self): return len(self._items)
    def __getitem__(self, item): return self._items[item]
    def __str__(self): return ''.join(map(str, self._items))
    def __repr__(self): return f"Cigar({self})"
    def __hash__(self): return hash(self._items)

    def __eq__(self, other):
        if isinstance(other, Cigar): return self._items == other._items
        return NotImplemented

    @property
    def ref_length(self) -> int:
        """Number of reference symbols consumed."""
        return sum(i.length for i in self._items if i.op.consumes_ref)

    @property
    def query_length(self) -> int:
        """Number of query symbols consumed."""
        return sum(i.length for i in self._items if i.op.consumes_query)

    def columns(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Expands the edit script into alignment columns.

        Returns:
            A tuple ``(ops, ref_index, query_index)`` with one entry per column; the indices are -1 where a side is
            not consumed.
        """
        if not self._items: return np.empty(0, dtype=np.uint8), np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)
        ops = np.repeat(np.array([i.op for i in self._items], dtype=np.uint8),
                        np.array([i.length for i in self._items], dtype=np.int64))
        ref_step = self._REF_CONSUMERS[ops]
        query_step = self._QUERY_CONSUMERS[ops]
        ref_index = np.where(ref_step, np.cumsum(ref_step) - 1, -1)
        query_index = np.where(query_step, np.cumsum(query_step) - 1, -1)
        return ops, ref_index, query_index

    def align(self, ref: Seq, query: Seq) -> tuple[Seq, Seq]:
        """
        Reconstructs the alignment of two gap-free sequences.

        Args:
            ref: The reference sequence.
            query: The query sequence, in the same alphabet.

        Returns:
            Two equal-length gapped sequences. Gaps are GAP symbols, skipped regions show MISSING on the other side.

        Raises:
            CigarError: If the edit script does not span both sequences exactly.
        """
        if self.ref_length != len(ref) or self.query_length != len(query):
            raise CigarError(f'CIGAR spans {self.ref_length}/{self.query_length} symbols, sequences have '
                             f'{len(ref)}/{len(query)}')
        ops, ref_index, query_index = self.columns()
        alphabet = ref.alphabet
        r = np.where(ref_index >= 0, ref.encoded[np.maximum(ref_index, 0)] if len(ref) else 0,
                     np.where(ops == CigarOp.QUERY_SKIPPED, alphabet.missing, alphabet.gap)).astype(np.uint8)
        q = np.where(query_index >= 0, query.encoded[np.maximum(query_index, 0)] if len(query) else 0,
                     np.where(ops == CigarOp.REF_SKIPPED, alphabet.missing, alphabet.gap)).astype(np.uint8)
        return Seq(r, alphabet, ref.name, ref.description), Seq(q, query.alphabet, query.name, query.description)


class Solution(NamedTuple):
    """The score and edit script of an optimal alignment."""
    score: int
    cigar: Cigar

    @classmethod
    def unaligned(cls, ref_length: int) -> 'Solution':
        """The zero-score solution of an empty query: the whole reference is skipped."""
        return cls(0, Cigar([(CigarOp.REF_SKIPPED, ref_length)]))


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _parse_cigar_kernel(cigar, map_table):
    """Parses CIGAR bytes into op codes and counts."""
    n = len(cigar)
    ops = np.empty(n, dtype=np.uint8)
    counts = np.empty(n, dtype=np.int64)
    idx = 0
    curr_count = 0
    for i in range(n):
        b = cigar[i]
        if 48 <= b <= 57:
            curr_count = (curr_count * 10) + (b - 48)
        else:
            ops[idx] = map_table[b]
            counts[idx] = curr_count
            idx += 1
            curr_count = 0
    return ops[:idx], counts[:idx]

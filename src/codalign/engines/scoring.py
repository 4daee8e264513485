"""
Substitution matrices, the positional scoring contract and the single-alphabet scorer.

All costs are integers; more negative is worse. A scorer exposes its costs in two equivalent forms: positional
methods answering one question about one alignment step, and :class:`ScoreTables`, the same costs flattened into
arrays for the alignment kernels.

Positions passed to the positional methods are the indices of the last reference and query symbols consumed by
the step (``-1`` before the first one). A gap in the reference track is free once the whole reference is consumed
(``ref_i == len(ref) - 1``), a gap in the query track is free once the whole query is consumed.
"""
from abc import ABC, abstractmethod
from typing import Union, Iterable, NamedTuple, ClassVar

import numpy as np

from codalign import CodalignError
from codalign.core.alphabet import Alphabet
from codalign.core.seq import Seq


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ScoringError(CodalignError):
    """Raised for unknown substitution matrices or inconsistent scorer inputs."""


# Classes --------------------------------------------------------------------------------------------------------------
class ScoreMatrix:
    """
    Represents a substitution matrix for alignment.

    Matrices are indexed by the encoded symbols of an alphabet; the named amino acid matrices follow the order of
    ``Alphabet.AMINO`` (``ARNDCQEGHILKMFPSTWYVBZX*``).

    Examples:
        >>> m = ScoreMatrix.build(4, match=2, mismatch=-2)
        >>> ScoreMatrix.named('BLOSUM62')[0, 0]
        4
    """
    _DTYPE = np.int32
    __slots__ = ('_data',)
    NAMES: ClassVar[tuple[str, ...]] = ('BLOSUM30', 'BLOSUM62')

    def __init__(self, data: Union[np.ndarray, Iterable]):
        self._data = np.ascontiguousarray(data, dtype=self._DTYPE)
        self._data.flags.writeable = False

    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"ScoreMatrix{self._data.shape}"
    @property
    def shape(self): return self._data.shape

    @classmethod
    def named(cls, name: str) -> 'ScoreMatrix':
        """
        Returns a built-in matrix by name.

        Raises:
            ScoringError: If the name is unknown.
        """
        if name.upper() == 'BLOSUM62': return cls.blosum62()
        if name.upper() == 'BLOSUM30': return cls.blosum30()
        raise ScoringError(f'Unknown substitution matrix {name!r}, expected one of {", ".join(cls.NAMES)}')

    @classmethod
    def blosum62(cls):
        """Returns the BLOSUM62 matrix."""
        data = [
            4, -1, -2, -2, 0, -1, -1, 0, -2, -1, -1, -1, -1, -2, -1, 1, 0, -3, -2, 0, -2, -1, 0, -4,
            -1, 5, 0, -2, -3, 1, 0, -2, 0, -3, -2, 2, -1, -3, -2, -1, -1, -3, -2, -3, -1, 0, -1, -4,
            -2, 0, 6, 1, -3, 0, 0, 0, 1, -3, -3, 0, -2, -3, -2, 1, 0, -4, -2, -3, 3, 0, -1, -4,
            -2, -2, 1, 6, -3, 0, 2, -1, -1, -3, -4, -1, -3, -3, -1, 0, -1, -4, -3, -3, 4, 1, -1, -4,
            0, -3, -3, -3, 9, -3, -4, -3, -3, -1, -1, -3, -1, -2, -3, -1, -1, -2, -2, -1, -3, -3, -2, -4,
            -1, 1, 0, 0, -3, 5, 2, -2, 0, -3, -2, 1, 0, -3, -1, 0, -1, -2, -1, -2, 0, 3, -1, -4,
            -1, 0, 0, 2, -4, 2, 5, -2, 0, -3, -3, 1, -2, -3, -1, 0, -1, -3, -2, -2, 1, 4, -1, -4,
            0, -2, 0, -1, -3, -2, -2, 6, -2, -4, -4, -2, -3, -3, -2, 0, -2, -2, -3, -3, -1, -2, -1, -4,
            -2, 0, 1, -1, -3, 0, 0, -2, 8, -3, -3, -1, -2, -1, -2, -1, -2, -2, 2, -3, 0, 0, -1, -4,
            -1, -3, -3, -3, -1, -3, -3, -4, -3, 4, 2, -3, 1, 0, -3, -2, -1, -3, -1, 3, -3, -3, -1, -4,
            -1, -2, -3, -4, -1, -2, -3, -4, -3, 2, 4, -2, 2, 0, -3, -2, -1, -2, -1, 1, -4, -3, -1, -4,
            -1, 2, 0, -1, -3, 1, 1, -2, -1, -3, -2, 5, -1, -3, -1, 0, -1, -3, -2, -2, 0, 1, -1, -4,
            -1, -1, -2, -3, -1, 0, -2, -3, -2, 1, 2, -1, 5, 0, -2, -1, -1, -1, -1, 1, -3, -1, -1, -4,
            -2, -3, -3, -3, -2, -3, -3, -3, -1, 0, 0, -3, 0, 6, -4, -2, -2, 1, 3, -1, -3, -3, -1, -4,
            -1, -2, -2, -1, -3, -1, -1, -2, -2, -3, -3, -1, -2, -4, 7, -1, -1, -4, -3, -2, -2, -1, -2, -4,
            1, -1, 1, 0, -1, 0, 0, 0, -1, -2, -2, 0, -1, -2, -1, 4, 1, -3, -2, -2, 0, 0, 0, -4,
            0, -1, 0, -1, -1, -1, -1, -2, -2, -1, -1, -1, -1, -2, -1, 1, 5, -2, -2, 0, -1, -1, 0, -4,
            -3, -3, -4, -4, -2, -2, -3, -2, -2, -3, -2, -3, -1, 1, -4, -3, -2, 11, 2, -3, -4, -3, -2, -4,
            -2, -2, -2, -3, -2, -1, -2, -3, 2, -1, -1, -2, -1, 3, -3, -2, -2, 2, 7, -1, -3, -2, -1, -4,
            0, -3, -3, -3, -1, -2, -2, -3, -3, 3, 1, -2, 1, -1, -2, -2, 0, -3, -1, 4, -3, -2, -1, -4,
            -2, -1, 3, 4, -3, 0, 1, -1, 0, -3, -4, 0, -3, -3, -2, 0, -1, -4, -3, -3, 4, 1, -1, -4,
            -1, 0, 0, 1, -3, 3, 4, -2, 0, -3, -3, 1, -1, -3, -1, 0, -1, -3, -2, -2, 1, 4, -1, -4,
            0, -1, -1, -1, -2, -1, -1, -1, -1, -1, -1, -1, -1, -1, -2, 0, 0, -2, -1, -1, -1, -1, -1, -4,
            -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, -4, 1
        ]
        return cls(np.array(data, dtype=cls._DTYPE).reshape(24, 24))

    @classmethod
    def blosum30(cls):
        """Returns the BLOSUM30 matrix."""
        data = [
            4, -1, 0, 0, -3, 1, 0, 0, -2, 0, -1, 0, 1, -2, -1, 1, 1, -5, -4, 1, 0, 0, 0, -7,
            -1, 8, -2, -1, -2, 3, -1, -2, -1, -3, -2, 1, 0, -1, -1, -1, -3, 0, 0, -1, -2, 0, -1, -7,
            0, -2, 8, 1, -1, -1, -1, 0, -1, 0, -2, 0, 0, -1, -3, 0, 1, -7, -4, -2, 4, -1, 0, -7,
            0, -1, 1, 9, -3, -1, 1, -1, -2, -4, -1, 0, -3, -5, -1, 0, -1, -4, -1, -2, 5, 0, -1, -7,
            -3, -2, -1, -3, 17, -2, 1, -4, -5, -2, 0, -3, -2, -3, -3, -2, -2, -2, -6, -2, -2, 0, -2, -7,
            1, 3, -1, -1, -2, 8, 2, -2, 0, -2, -2, 0, -1, -3, 0, -1, 0, -1, -1, -3, -1, 4, 0, -7,
            0, -1, -1, 1, 1, 2, 6, -2, 0, -3, -1, 2, -1, -4, 1, 0, -2, -1, -2, -3, 0, 5, -1, -7,
            0, -2, 0, -1, -4, -2, -2, 8, -3, -1, -2, -1, -2, -3, -1, 0, -2, 1, -3, -3, 0, -2, -1, -7,
            -2, -1, -1, -2, -5, 0, 0, -3, 14, -2, -1, -2, 2, -3, 1, -1, -2, -5, 0, -3, -2, 0, -1, -7,
            0, -3, 0, -4, -2, -2, -3, -1, -2, 6, 2, -2, 1, 0, -3, -1, 0, -3, -1, 4, -2, -3, 0, -7,
            -1, -2, -2, -1, 0, -2, -1, -2, -1, 2, 4, -2, 2, 2, -3, -2, 0, -2, 3, 1, -1, -1, 0, -7,
            0, 1, 0, 0, -3, 0, 2, -1, -2, -2, -2, 4, 2, -1, 1, 0, -1, -2, -1, -2, 0, 1, 0, -7,
            1, 0, 0, -3, -2, -1, -1, -2, 2, 1, 2, 2, 6, -2, -4, -2, 0, -3, -1, 0, -2, -1, 0, -7,
            -2, -1, -1, -5, -3, -3, -4, -3, -3, 0, 2, -1, -2, 10, -4, -1, -2, 1, 3, 1, -3, -4, -1, -7,
            -1, -1, -3, -1, -3, 0, 1, -1, 1, -3, -3, 1, -4, -4, 11, -1, 0, -3, -2, -4, -2, 0, -1, -7,
            1, -1, 0, 0, -2, -1, 0, 0, -1, -1, -2, 0, -2, -1, -1, 4, 2, -3, -2, -1, 0, -1, 0, -7,
            1, -3, 1, -1, -2, 0, -2, -2, -2, 0, 0, -1, 0, -2, 0, 2, 5, -5, -1, 1, 0, -1, 0, -7,
            -5, 0, -7, -4, -2, -1, -1, 1, -5, -3, -2, -2, -3, 1, -3, -3, -5, 20, 5, -3, -5, -1, -2, -7,
            -4, 0, -4, -1, -6, -1, -2, -3, 0, -1, 3, -1, -1, 3, -2, -2, -1, 5, 9, 1, -3, -2, -1, -7,
            1, -1, -2, -2, -2, -3, -3, -3, -3, 4, 1, -2, 0, 1, -4, -1, 1, -3, 1, 5, -2, -3, 0, -7,
            0, -2, 4, 5, -2, -1, 0, 0, -2, -2, -1, 0, -2, -3, -2, 0, 0, -5, -3, -2, 5, 0, -1, -7,
            0, 0, -1, 0, 0, 4, 5, -2, 0, -3, -1, 1, -1, -4, 0, -1, -1, -1, -2, -3, 0, 4, 0, -7,
            0, -1, 0, -1, -2, 0, -1, -1, -1, 0, 0, 0, 0, -1, -1, 0, 0, -2, -1, 0, -1, 0, -1, -7,
            -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, -7, 1
        ]
        return cls(np.array(data, dtype=cls._DTYPE).reshape(24, 24))

    @classmethod
    def build(cls, n, match=1, mismatch=-1):
        """Builds a simple match/mismatch matrix."""
        M = np.full((n, n), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(M, match)
        return cls(M)

    def pad(self, shape, fill_value=None) -> np.ndarray:
        """Pads the matrix so every symbol of a larger alphabet can index it without bounds checks."""
        if self.shape == shape: return self._data
        if fill_value is None: fill_value = np.min(self._data)
        new_data = np.full(shape, fill_value, dtype=self._data.dtype)
        r, c = self.shape
        new_data[:r, :c] = self._data
        return new_data


class ScoreTables(NamedTuple):
    """
    Scorer costs flattened for the alignment kernels, for one reference/query pair of lengths ``n`` and ``m``.

    Reference-track gap costs (query consumed) are indexed by the number of reference symbols consumed so far
    (``0..n``), query-track gap costs by the reference position consumed (``0..n-1``). A gap run pays ``open`` for
    its first symbol, ``codon`` for the first symbol of every further codon (run length ``k`` with ``k % 3 == 1``)
    and ``extend`` otherwise. ``close[p]`` is charged when a match at reference position ``p`` closes a run whose
    length is not a multiple of three.
    """
    ref: np.ndarray  # (n,) uint8
    query: np.ndarray  # (m,) uint8
    sub: np.ndarray  # (A, A) int64
    codon_ref: np.ndarray  # (n,) int16, -1 where no codon ends
    codon_strand: np.ndarray  # (n,) int8
    codon_span: np.ndarray  # (n, 2) int32, offsets back to the first and middle codon positions
    query_fwd: np.ndarray  # (m,) int16
    query_rev: np.ndarray  # (m,) int16
    codon_table: np.ndarray  # (A, A, A) uint8, genetic code over nucleotide indices
    complement: np.ndarray  # (A,) uint8
    codon_sub: np.ndarray  # (B, B) int64
    misaligned: int
    misalign_cost: int
    del_open: np.ndarray  # (n,) int64
    del_codon: np.ndarray  # (n,) int64
    del_extend: np.ndarray  # (n,) int64
    ins_open: np.ndarray  # (n + 1,) int64
    ins_codon: np.ndarray  # (n + 1,) int64
    ins_extend: np.ndarray  # (n + 1,) int64
    close: np.ndarray  # (n + 1,) int64


class Scorer(ABC):
    """
    Substitution and affine-gap cost contract consumed by the alignment engine.

    Implementations are stateless configuration and can be shared across threads.
    """
    __slots__ = ()

    @abstractmethod
    def score_extend(self, a: int, b: int) -> int:
        """Substitution score of reference symbol ``a`` against query symbol ``b``."""

    @abstractmethod
    def score_match(self, ref, query, ref_i: int, query_j: int) -> int:
        """Score of aligning ``ref[ref_i]`` with ``query[query_j]``."""

    @abstractmethod
    def score_open_ref_gap(self, ref, query, ref_i: int, query_j: int) -> int:
        """Cost of opening a gap in the reference track by consuming ``query[query_j]``."""

    @abstractmethod
    def score_extend_ref_gap(self, ref, query, ref_i: int, query_j: int, k: int) -> int:
        """Cost of extending a reference-track gap to length ``k`` by consuming ``query[query_j]``."""

    @abstractmethod
    def score_open_query_gap(self, ref, query, ref_i: int, query_j: int) -> int:
        """Cost of opening a gap in the query track by consuming ``ref[ref_i]``."""

    @abstractmethod
    def score_extend_query_gap(self, ref, query, ref_i: int, query_j: int, k: int) -> int:
        """Cost of extending a query-track gap to length ``k`` by consuming ``ref[ref_i]``."""

    def score_frameshift(self, ref, query, ref_i: int) -> int:
        """Cost charged when a match at ``ref[ref_i]`` closes a gap run whose length is not a multiple of three."""
        return 0

    @abstractmethod
    def tables(self, ref, query) -> ScoreTables:
        """Returns all costs for the pair as kernel arrays."""


class SimpleScorer(Scorer):
    """
    Single-alphabet scorer: a substitution matrix with affine gaps.

    The frameshift and misalignment costs are not used for alignment; they are the per-event costs applied when
    computing statistics on amino acid alignments.

    Examples:
        >>> nt = SimpleScorer.nucleotide(match=2, mismatch=-2, gap_open=-10, gap_extend=-1)
        >>> nt.score_extend(0, 0), nt.score_extend(0, 1)
        (2, -2)
    """
    __slots__ = ('_matrix', 'alphabet', 'gap_open', 'gap_extend', 'frameshift', 'misalignment')

    def __init__(self, matrix: ScoreMatrix, alphabet: Alphabet, gap_open: int, gap_extend: int,
                 frameshift: int = 0, misalignment: int = 0):
        """
        Args:
            matrix: Substitution matrix, padded with its minimum to the size of the alphabet.
            alphabet: The alphabet of both sequences.
            gap_open: Cost of the first symbol of a gap.
            gap_extend: Cost of every further symbol of a gap.
            frameshift: Cost of one frameshift event.
            misalignment: Cost of one misaligned codon.
        """
        n = len(alphabet)
        if matrix.shape[0] > n or matrix.shape[1] > n:
            raise ScoringError(f'{matrix!r} is larger than the alphabet ({n} symbols)')
        self._matrix = matrix.pad((n, n)).astype(np.int64)
        self._matrix.flags.writeable = False
        self.alphabet = alphabet
        self.gap_open = int(gap_open)
        self.gap_extend = int(gap_extend)
        self.frameshift = int(frameshift)
        self.misalignment = int(misalignment)

    @classmethod
    def nucleotide(cls, match: int = 2, mismatch: int = -2, gap_open: int = -10, gap_extend: int = -1) -> 'SimpleScorer':
        """Builds a match/mismatch scorer over ``Alphabet.NT``. Ambiguity codes score as mismatches."""
        matrix = ScoreMatrix.build(4, match, mismatch)
        return cls(ScoreMatrix(matrix.pad((len(Alphabet.NT),) * 2, fill_value=mismatch)), Alphabet.NT,
                   gap_open, gap_extend)

    @classmethod
    def amino_acid(cls, matrix: str = 'BLOSUM30', gap_open: int = -6, gap_extend: int = -2, frameshift: int = -100,
                   misalignment: int = -20) -> 'SimpleScorer':
        """Builds a scorer over ``Alphabet.AMINO`` from a named substitution matrix."""
        return cls(ScoreMatrix.named(matrix), Alphabet.AMINO, gap_open, gap_extend, frameshift, misalignment)

    def __repr__(self):
        return (f"SimpleScorer({self.alphabet!r}, gap_open={self.gap_open}, gap_extend={self.gap_extend}, "
                f"frameshift={self.frameshift}, misalignment={self.misalignment})")

    @property
    def matrix(self) -> np.ndarray:
        """The padded substitution matrix (int64, read-only)."""
        return self._matrix

    def score_extend(self, a: int, b: int) -> int:
        return int(self._matrix[a, b])

    def score_match(self, ref: Seq, query: Seq, ref_i: int, query_j: int) -> int:
        return int(self._matrix[ref.encoded[ref_i], query.encoded[query_j]])

    def score_open_ref_gap(self, ref: Seq, query: Seq, ref_i: int, query_j: int) -> int:
        return 0 if ref_i == len(ref) - 1 else self.gap_open

    def score_extend_ref_gap(self, ref: Seq, query: Seq, ref_i: int, query_j: int, k: int) -> int:
        return 0 if ref_i == len(ref) - 1 else self.gap_extend

    def score_open_query_gap(self, ref: Seq, query: Seq, ref_i: int, query_j: int) -> int:
        return 0 if query_j == len(query) - 1 else self.gap_open

    def score_extend_query_gap(self, ref: Seq, query: Seq, ref_i: int, query_j: int, k: int) -> int:
        return 0 if query_j == len(query) - 1 else self.gap_extend

    def tables(self, ref: Seq, query: Seq) -> ScoreTables:
        if ref.alphabet != self.alphabet or query.alphabet != self.alphabet:
            raise ScoringError(f'Sequences must use {self.alphabet!r}')
        n, m = len(ref), len(query)
        return ScoreTables(
            ref=ref.encoded, query=query.encoded, sub=self._matrix,
            codon_ref=np.full(n, -1, dtype=np.int16), codon_strand=np.zeros(n, dtype=np.int8),
            codon_span=np.zeros((n, 2), dtype=np.int32),
            query_fwd=np.full(m, -1, dtype=np.int16), query_rev=np.full(m, -1, dtype=np.int16),
            codon_table=np.zeros((1, 1, 1), dtype=np.uint8), complement=np.zeros(1, dtype=np.uint8),
            codon_sub=np.zeros((1, 1), dtype=np.int64), misaligned=-1, misalign_cost=0,
            del_open=np.full(n, self.gap_open, dtype=np.int64),
            del_codon=np.full(n, self.gap_extend, dtype=np.int64),
            del_extend=np.full(n, self.gap_extend, dtype=np.int64),
            ins_open=np.full(n + 1, self.gap_open, dtype=np.int64),
            ins_codon=np.full(n + 1, self.gap_extend, dtype=np.int64),
            ins_extend=np.full(n + 1, self.gap_extend, dtype=np.int64),
            close=np.zeros(n + 1, dtype=np.int64)
        )

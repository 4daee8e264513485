"""
Module for annotated reference genomes and their coding features.
"""
from dataclasses import dataclass, field
from logging import getLogger
from typing import Iterable, NamedTuple, Optional

import numpy as np

from codalign import CodalignError
from codalign.core.alphabet import Alphabet, GeneticCode
from codalign.core.seq import Seq

logger = getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class GenomeError(CodalignError):
    """Raised for malformed annotations or a genome used before it is preprocessed."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class CdsFeature:
    """
    A named coding region of a reference genome.

    Attributes:
        name: Feature name, used to label its amino acid alignments.
        ranges: Ordered, half-open 0-based reference ranges. Spliced features have more than one.
        frame: Number of leading nucleotides (in transcript order) before the first codon.
        strand: 1 for the forward strand, -1 for the reverse strand.
        aa_seq: The translated amino acid sequence, if known.

    Examples:
        >>> f = CdsFeature('gag', ((0, 9),))
        >>> f.length
        9
    """
    name: str
    ranges: tuple[tuple[int, int], ...]
    frame: int = 0
    strand: int = 1
    aa_seq: Optional[Seq] = field(default=None, compare=False)

    def __post_init__(self):
        ranges = tuple((int(s), int(e)) for s, e in self.ranges)
        object.__setattr__(self, 'ranges', ranges)
        if not ranges: raise GenomeError(f'Feature {self.name} has no ranges')
        if self.frame not in (0, 1, 2): raise GenomeError(f'Feature {self.name} has invalid frame {self.frame}')
        if self.strand not in (1, -1): raise GenomeError(f'Feature {self.name} has invalid strand {self.strand}')
        last_end = 0
        for start, end in ranges:
            if start < last_end or end <= start:
                raise GenomeError(f'Feature {self.name} ranges are not ascending and non-overlapping: {ranges}')
            last_end = end

    @property
    def start(self) -> int: return self.ranges[0][0]
    @property
    def end(self) -> int: return self.ranges[-1][1]
    @property
    def length(self) -> int: return sum(e - s for s, e in self.ranges)

    def __contains__(self, position: int) -> bool:
        return any(s <= position < e for s, e in self.ranges)

    def positions(self) -> np.ndarray:
        """Reference positions covered by the feature, ascending."""
        return np.concatenate([np.arange(s, e, dtype=np.int64) for s, e in self.ranges])

    def transcript_positions(self) -> np.ndarray:
        """Reference positions in transcript (5' to 3') order."""
        pos = self.positions()
        return pos if self.strand > 0 else pos[::-1]

    def codons(self) -> np.ndarray:
        """Reference positions of every complete codon, shape ``(n, 3)`` in transcript order."""
        pos = self.transcript_positions()[self.frame:]
        n = len(pos) // 3
        return pos[:n * 3].reshape(n, 3)

    def translate(self, ref: Seq, code: GeneticCode = None) -> Seq:
        """
        Translates the feature from the reference sequence.

        Args:
            ref: The reference nucleotide sequence.
            code: Genetic code, defaults to the standard code.

        Returns:
            The amino acid sequence, named after the feature.
        """
        code = code or GeneticCode.STANDARD
        enc = ref.encoded[self.transcript_positions()]
        if self.strand < 0: enc = Alphabet.NT.complement[enc]
        return Seq(code.translate_codons(enc[self.frame:]), Alphabet.AMINO, self.name)


class GenomeTables(NamedTuple):
    """Per-position annotation tables built by :meth:`Genome.preprocess`."""
    cds_index: np.ndarray  # (n,) int32, index of the covering feature or -1
    codon_aa: np.ndarray  # (n,) int16, amino acid of the codon completed at this position or -1
    codon_strand: np.ndarray  # (n,) int8, strand of that codon, 0 where none
    codon_span: np.ndarray  # (n, 2) int32, distances from the codon end back to its first and middle positions
    aa_weight: np.ndarray  # (n,) int64, amino acid score weight at this position
    interior: np.ndarray  # (n + 1,) bool, boundary p lies between two positions of one feature


class Genome:
    """
    A reference sequence with its ordered coding features.

    The genome must be preprocessed with the score weights before alignment, which builds the per-position tables
    the genome scorer reads. Preprocessing is idempotent: repeating it with the same weights is a no-op.

    Examples:
        >>> g = Genome(Alphabet.NT.seq_from('ATGAAATAG', name='ref'), [CdsFeature('orf', ((0, 9),))])
        >>> g.preprocess(1, 1).weights
        (1, 1)
    """
    __slots__ = ('_seq', '_cds', '_tables', '_weights')

    def __init__(self, seq: Seq, cds: Iterable[CdsFeature] = ()):
        """
        Args:
            seq: The reference nucleotide sequence.
            cds: Coding features, non-overlapping in reference coordinates.

        Raises:
            GenomeError: If the sequence is not nucleotide or a feature is out of bounds or overlaps another.
        """
        if seq.alphabet != Alphabet.NT: raise GenomeError('A genome requires a nucleotide sequence')
        self._seq = seq
        self._cds = tuple(cds)
        self._tables: Optional[GenomeTables] = None
        self._weights: Optional[tuple[int, int]] = None
        spans = []
        for f in self._cds:
            if f.end > len(seq): raise GenomeError(f'Feature {f.name} ends beyond the reference ({len(seq)})')
            spans.extend((s, e, f.name) for s, e in f.ranges)
        last_end, last_name = 0, None
        for start, end, name in sorted(spans):
            if start < last_end: raise GenomeError(f'Features {last_name} and {name} overlap')
            last_end, last_name = end, name

    def __len__(self): return len(self._seq)
    def __repr__(self): return f"Genome({self.name!r}, len={len(self)}, cds={len(self._cds)})"

    @property
    def seq(self) -> Seq: return self._seq
    @property
    def name(self) -> str: return self._seq.name
    @property
    def cds_features(self) -> tuple[CdsFeature, ...]: return self._cds
    @property
    def weights(self) -> Optional[tuple[int, int]]:
        """The ``(nt_weight, aa_weight)`` the genome was preprocessed with, ``None`` before preprocessing."""
        return self._weights

    @property
    def tables(self) -> GenomeTables:
        """
        The per-position annotation tables.

        Raises:
            GenomeError: If the genome has not been preprocessed.
        """
        if self._tables is None: raise GenomeError(f'Genome {self.name} has not been preprocessed')
        return self._tables

    def preprocess(self, nt_weight: int, aa_weight: int, code: GeneticCode = None) -> 'Genome':
        """
        Builds the per-position tables used for scoring.

        Args:
            nt_weight: Weight of the nucleotide score fraction.
            aa_weight: Weight of the amino acid score fraction.
            code: Genetic code, defaults to the standard code.

        Returns:
            The genome itself.
        """
        weights = (int(nt_weight), int(aa_weight))
        if self._weights == weights: return self
        code = code or GeneticCode.STANDARD
        n = len(self._seq)
        enc = self._seq.encoded
        cds_index = np.full(n, -1, dtype=np.int32)
        codon_aa = np.full(n, -1, dtype=np.int16)
        codon_strand = np.zeros(n, dtype=np.int8)
        codon_span = np.zeros((n, 2), dtype=np.int32)
        for k, f in enumerate(self._cds):
            cds_index[f.positions()] = k
            codons = f.codons()
            if len(codons) == 0: continue
            nts = enc[codons]
            if f.strand < 0: nts = Alphabet.NT.complement[nts]
            spans = np.sort(codons, axis=1)
            ends = spans[:, 2]
            codon_aa[ends] = code.table[nts[:, 0], nts[:, 1], nts[:, 2]]
            codon_strand[ends] = f.strand
            # Codons split by an intron are not contiguous in the reference
            codon_span[ends] = ends[:, None] - spans[:, :2]
        interior = np.zeros(n + 1, dtype=bool)
        interior[1:n] = (cds_index[:-1] == cds_index[1:]) & (cds_index[1:] >= 0)
        aa_weights = np.where(cds_index >= 0, weights[1], 0).astype(np.int64)
        for a in (cds_index, codon_aa, codon_strand, codon_span, interior, aa_weights): a.flags.writeable = False
        self._tables = GenomeTables(cds_index, codon_aa, codon_strand, codon_span, aa_weights, interior)
        self._weights = weights
        logger.debug('Preprocessed %s with weights nt=%d aa=%d', self.name, *weights)
        return self

    def require(self, nt_weight: int, aa_weight: int):
        """
        Checks the genome was preprocessed with the given weights.

        Raises:
            GenomeError: If it was not preprocessed, or with other weights.
        """
        if self._weights != (nt_weight, aa_weight):
            raise GenomeError(f'Genome {self.name} is preprocessed with weights {self._weights}, '
                              f'expected {(nt_weight, aa_weight)}')

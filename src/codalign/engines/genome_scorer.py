"""
Composite scorer aligning a nucleotide query to an annotated reference genome.

The nucleotide score is weighted by ``nt_weight``. Inside coding features every codon additionally contributes its
amino acid score weighted by ``aa_weight``: the reference codon is the codon of the feature ending at the matched
reference position, the query codon is read from the query nucleotides at the same offsets from the matched query
position, on the strand of the feature. A codon split by an intron therefore skips as many query nucleotides as
reference nucleotides. Gaps inside a feature pay the amino acid gap costs once per codon, and a gap run whose length
is not a multiple of three pays the amino acid frameshift cost when it closes.
"""
import numpy as np

from codalign.containers.genome import Genome
from codalign.core.alphabet import Alphabet
from codalign.core.frames import SixFrameView
from codalign.engines.scoring import Scorer, SimpleScorer, ScoreTables, ScoringError


# Classes --------------------------------------------------------------------------------------------------------------
class GenomeScorer(Scorer):
    """
    Scores nucleotide queries against a preprocessed :class:`~codalign.containers.genome.Genome`.

    Examples:
        >>> scorer = GenomeScorer(SimpleScorer.nucleotide(), SimpleScorer.amino_acid(), nt_weight=1, aa_weight=1)
        >>> genome.preprocess(*scorer.weights)
        >>> t = scorer.tables(genome, query)
    """
    __slots__ = ('nt', 'aa', 'nt_weight', 'aa_weight')

    def __init__(self, nt_scorer: SimpleScorer, aa_scorer: SimpleScorer, nt_weight: int = 1, aa_weight: int = 1):
        """
        Args:
            nt_scorer: Nucleotide scorer over ``Alphabet.NT``.
            aa_scorer: Amino acid scorer over ``Alphabet.AMINO``, including frameshift and misalignment costs.
            nt_weight: Weight of the nucleotide score fraction.
            aa_weight: Weight of the amino acid score fraction.

        Raises:
            ScoringError: If the scorers use the wrong alphabets or a weight is negative.
        """
        if nt_scorer.alphabet != Alphabet.NT: raise ScoringError('The nucleotide scorer must use Alphabet.NT')
        if aa_scorer.alphabet != Alphabet.AMINO: raise ScoringError('The amino acid scorer must use Alphabet.AMINO')
        if nt_weight < 0 or aa_weight < 0: raise ScoringError('Score weights must not be negative')
        self.nt = nt_scorer
        self.aa = aa_scorer
        self.nt_weight = int(nt_weight)
        self.aa_weight = int(aa_weight)

    def __repr__(self): return f"GenomeScorer(nt_weight={self.nt_weight}, aa_weight={self.aa_weight})"

    @property
    def weights(self) -> tuple[int, int]: return self.nt_weight, self.aa_weight

    @staticmethod
    def _view(query) -> SixFrameView:
        return query if isinstance(query, SixFrameView) else SixFrameView(query)

    def score_extend(self, a: int, b: int) -> int:
        return self.nt_weight * self.nt.score_extend(a, b)

    def score_match(self, ref: Genome, query, ref_i: int, query_j: int) -> int:
        view = self._view(query)
        t = ref.tables
        score = self.nt_weight * self.nt.score_extend(ref.seq.encoded[ref_i], view.seq.encoded[query_j])
        ref_aa = int(t.codon_aa[ref_i])
        if ref_aa < 0: return score
        d0, d1 = (int(d) for d in t.codon_span[ref_i])
        query_aa = view.aa_of(query_j - d0, query_j - d1, query_j, t.codon_strand[ref_i])
        if query_aa < 0: return score
        if Alphabet.AMINO.misaligned in (ref_aa, query_aa): return score + self.aa_weight * self.aa.misalignment
        return score + self.aa_weight * self.aa.score_extend(ref_aa, query_aa)

    def score_open_ref_gap(self, ref: Genome, query, ref_i: int, query_j: int) -> int:
        if ref_i == len(ref) - 1: return 0
        aa = self.aa_weight * self.aa.gap_open if ref.tables.interior[ref_i + 1] else 0
        return self.nt_weight * self.nt.gap_open + aa

    def score_extend_ref_gap(self, ref: Genome, query, ref_i: int, query_j: int, k: int) -> int:
        if ref_i == len(ref) - 1: return 0
        aa = self.aa_weight * self.aa.gap_extend if ref.tables.interior[ref_i + 1] and k % 3 == 1 else 0
        return self.nt_weight * self.nt.gap_extend + aa

    def score_open_query_gap(self, ref: Genome, query, ref_i: int, query_j: int) -> int:
        if query_j == len(query) - 1: return 0
        return self.nt_weight * self.nt.gap_open + int(ref.tables.aa_weight[ref_i]) * self.aa.gap_open

    def score_extend_query_gap(self, ref: Genome, query, ref_i: int, query_j: int, k: int) -> int:
        if query_j == len(query) - 1: return 0
        aa = int(ref.tables.aa_weight[ref_i]) * self.aa.gap_extend if k % 3 == 1 else 0
        return self.nt_weight * self.nt.gap_extend + aa

    def score_frameshift(self, ref: Genome, query, ref_i: int) -> int:
        return self.aa_weight * self.aa.frameshift if ref.tables.interior[ref_i] else 0

    def tables(self, ref: Genome, query) -> ScoreTables:
        """
        Flattens the costs for one genome/query pair.

        Args:
            ref: A genome preprocessed with this scorer's weights.
            query: A gap-free nucleotide sequence, or its six-frame view.

        Raises:
            GenomeError: If the genome was not preprocessed with this scorer's weights.
        """
        ref.require(self.nt_weight, self.aa_weight)
        view = self._view(query)
        t = ref.tables
        n = len(ref)
        w = self.nt_weight
        nt_open, nt_ext = w * self.nt.gap_open, w * self.nt.gap_extend
        aw = t.aa_weight
        aw_ins = np.where(t.interior, self.aa_weight, 0).astype(np.int64)
        return ScoreTables(
            ref=ref.seq.encoded, query=view.seq.encoded, sub=w * self.nt.matrix,
            codon_ref=t.codon_aa, codon_strand=t.codon_strand, codon_span=t.codon_span,
            query_fwd=view.forward, query_rev=view.reverse, codon_table=view.code.table,
            complement=Alphabet.NT.complement,
            codon_sub=self.aa_weight * self.aa.matrix, misaligned=Alphabet.AMINO.misaligned,
            misalign_cost=self.aa_weight * self.aa.misalignment,
            del_open=nt_open + aw * self.aa.gap_open,
            del_codon=nt_ext + aw * self.aa.gap_extend,
            del_extend=np.full(n, nt_ext, dtype=np.int64),
            ins_open=nt_open + aw_ins * self.aa.gap_open,
            ins_codon=nt_ext + aw_ins * self.aa.gap_extend,
            ins_extend=np.full(n + 1, nt_ext, dtype=np.int64),
            close=np.where(t.interior, self.aa_weight * self.aa.frameshift, 0).astype(np.int64)
        )

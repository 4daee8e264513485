"""
Statistics of gapped alignments.
"""
from dataclasses import dataclass, asdict
from typing import NamedTuple, Union

import numpy as np

from codalign.core.seq import Seq
from codalign.engines.scoring import SimpleScorer


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AlignmentStats:
    """
    Counters and score of an aligned pair.

    ``begin`` and ``end`` delimit the reference positions spanned by matched columns (``-1`` when nothing matches).
    ``coverage`` counts the reference positions the query accounts for, matched or deleted.
    """
    score: int = 0
    ref_length: int = 0
    begin: int = -1
    end: int = -1
    coverage: int = 0
    match_count: int = 0
    identity_count: int = 0
    insert_events: int = 0
    insert_count: int = 0
    delete_events: int = 0
    delete_count: int = 0
    frameshifts: int = 0
    misaligned: int = 0
    ambiguities: int = 0
    stop_codons: int = 0

    @property
    def identity(self) -> float:
        """Fraction of matched columns with identical symbols."""
        return self.identity_count / self.match_count if self.match_count else 0.0

    def to_dict(self) -> dict: return asdict(self)

    def __str__(self):
        return (f"score={self.score} identity={self.identity_count}/{self.match_count} "
                f"coverage={self.coverage}/{self.ref_length} span={self.begin}-{self.end} "
                f"insertions={self.insert_events}({self.insert_count}) "
                f"deletions={self.delete_events}({self.delete_count}) frameshifts={self.frameshifts} "
                f"misaligned={self.misaligned} ambiguities={self.ambiguities} stop_codons={self.stop_codons}")


class ScoreVector(NamedTuple):
    """Per-column score contributions from the first matched column to the trimmed end of the alignment."""
    begin: int
    end: int
    scores: np.ndarray

    def windowed(self, size: int) -> np.ndarray:
        """Sum of the scores in a window of ``size`` columns centred on every column."""
        if size < 1: raise ValueError(f'Window size must be positive, got {size}')
        return np.convolve(self.scores, np.ones(size, dtype=np.int64), mode='same')


# Functions ------------------------------------------------------------------------------------------------------------
def calc_stats(ref: Seq, query: Seq, scorer: SimpleScorer, frameshifts: int = 0,
               score_vector: bool = False) -> Union[AlignmentStats, tuple[AlignmentStats, ScoreVector]]:
    """
    Computes the statistics of a gapped alignment.

    Trailing columns where either side is MISSING are trimmed; the reference positions they cover still count
    towards ``ref_length``. Gap runs open and extend independently per side. An ``X`` adjacent to MISSING data is
    not counted as misaligned. Ambiguity codes in the query are counted and never score as substitutions.

    Args:
        ref: The gapped reference.
        query: The gapped query, in the same alphabet and at most as long as ``ref``.
        scorer: The scorer of the alphabet, also providing the frameshift and misalignment costs.
        frameshifts: Number of frameshift events to charge.
        score_vector: Also return the per-column scores.

    Returns:
        The statistics, and the score vector if requested.

    Raises:
        ValueError: If the query is longer than the reference.

    Examples:
        >>> stats = calc_stats(ref_aligned, query_aligned, SimpleScorer.nucleotide())
        >>> stats.match_count, stats.score
        (8, 16)
    """
    if len(query) > len(ref): raise ValueError(f'Query ({len(query)}) is longer than the reference ({len(ref)})')
    a = ref.alphabet
    r, q = ref.encoded, query.encoded
    gap, missing = a.gap, a.missing
    mis = -1 if a.misaligned is None else a.misaligned
    stop = -1 if a.stop is None else a.stop
    ambiguous = a.ambiguous

    query_end = 0
    for i in range(len(q) - 1, -1, -1):
        if r[i] != missing and q[i] != missing:
            query_end = i + 1
            break
    if query_end == 0:
        stats = AlignmentStats()
        return (stats, ScoreVector(-1, -1, np.empty(0, dtype=np.int64))) if score_vector else stats

    c = dict.fromkeys(('score', 'match_count', 'identity_count', 'insert_events', 'insert_count',
                       'delete_events', 'delete_count', 'misaligned', 'ambiguities', 'stop_codons'), 0)
    begin = end = sv_begin = -1
    ref_pos = 0
    ref_gap = query_gap = False
    ref_missing = query_missing = True
    deltas = np.zeros(query_end, dtype=np.int64)

    for i in range(query_end):
        before = c['score']
        rs, qs = r[i], q[i]
        if rs == gap:
            c['insert_count'] += 1
            if ref_gap: c['score'] += scorer.gap_extend
            else:
                c['score'] += scorer.gap_open
                c['insert_events'] += 1
            ref_gap, ref_missing = True, False
        elif rs == missing: ref_gap, ref_missing = False, True
        elif rs == mis:
            if not (ref_missing or i == len(r) - 1 or r[i + 1] == missing):
                c['score'] += scorer.misalignment
                c['misaligned'] += 1
        else: ref_gap = ref_missing = False

        if qs == gap:
            c['delete_count'] += 1
            if query_gap: c['score'] += scorer.gap_extend
            else:
                c['score'] += scorer.gap_open
                c['delete_events'] += 1
            query_gap, query_missing = True, False
        elif qs == missing: query_gap, query_missing = False, True
        elif qs == mis:
            if not (query_missing or i == len(q) - 1 or q[i + 1] == missing):
                c['score'] += scorer.misalignment
                c['misaligned'] += 1
        else: query_gap = query_missing = False

        if not query_gap and not query_missing:
            if ambiguous[qs]: c['ambiguities'] += 1
            if qs == stop: c['stop_codons'] += 1

        if not (ref_gap or ref_missing or query_gap or query_missing):
            c['match_count'] += 1
            if not ambiguous[qs]: c['score'] += scorer.score_extend(rs, qs)
            if begin == -1:
                begin = ref_pos
                sv_begin = i
            end = ref_pos + 1
            if rs == qs: c['identity_count'] += 1

        deltas[i] = c['score'] - before
        if not ref_gap and not ref_missing: ref_pos += 1

    c['score'] += frameshifts * scorer.frameshift
    stats = AlignmentStats(
        ref_length=ref_pos + (len(r) - query_end), begin=begin, end=end,
        coverage=c['match_count'] + c['delete_count'], frameshifts=frameshifts, **c
    )
    if not score_vector: return stats
    if sv_begin == -1: return stats, ScoreVector(-1, -1, np.empty(0, dtype=np.int64))
    return stats, ScoreVector(sv_begin, query_end, deltas[sv_begin:])

"""Affine-gap dynamic programming engine with codon-phase gap states."""
from enum import IntEnum
from logging import getLogger
from typing import Union, Iterable

import numpy as np

from codalign import CodalignError
from codalign.containers.cigar import Cigar, CigarOp, Solution
from codalign.core.frames import SixFrameView
from codalign.core.seq import Seq
from codalign.engines.scoring import Scorer
from codalign.utils.resources import RESOURCES, jit

logger = getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlignmentError(CodalignError):
    """Raised for inputs the engine cannot align."""


# Constants ------------------------------------------------------------------------------------------------------------
class AlignmentMode(IntEnum):
    """Alignment strategy controlling how the boundaries and the end point are chosen."""
    GLOBAL = 0
    LOCAL = 1


class State(IntEnum):
    """
    DP states. Gap states are split by the run length modulo three: ``Q1`` holds runs of length 1, 4, 7...,
    ``Q2`` of length 2, 5, 8... and ``Q0`` of length 3, 6, 9...
    """
    M = 0
    Q0 = 1
    Q1 = 2
    Q2 = 3
    R0 = 4
    R1 = 5
    R2 = 6
    STOP = 7


NEG_INF = -(1 << 50)
_M, _Q0, _Q1, _Q2, _R0, _R1, _R2, _STOP = range(8)
_PREV_MASK = 7  # Bits 0-2: predecessor of the match state
_Q1_EXTENDED = 8  # Q1 extends Q0 rather than opening from M
_R1_EXTENDED = 16  # R1 extends R0 rather than opening from M


# Classes --------------------------------------------------------------------------------------------------------------
class Aligner:
    """
    Pairwise aligner over any :class:`~codalign.engines.scoring.Scorer`.

    The engine only reads the scorer's :class:`~codalign.engines.scoring.ScoreTables`, so the same kernels serve
    plain sequence pairs and annotated genomes.

    Examples:
        >>> aligner = Aligner(SimpleScorer.nucleotide(), 'global')
        >>> aligner.align(ref, query)
        Solution(score=16, cigar=Cigar(8M))
    """
    _REGISTRY = {}

    @classmethod
    def register(cls, mode: int):
        def decorator(func):
            cls._REGISTRY[mode] = func
            return func
        return decorator

    __slots__ = ('scorer', '_mode', '_solve')

    def __init__(self, scorer: Scorer, mode: Union[str, AlignmentMode] = AlignmentMode.GLOBAL):
        self.scorer = scorer
        self._mode = AlignmentMode[mode.upper()] if isinstance(mode, str) else AlignmentMode(mode)
        self._solve = self._REGISTRY[self._mode]

    def __repr__(self): return f"{type(self).__name__}({self.scorer!r}, {self._mode.name})"

    @property
    def mode(self) -> AlignmentMode: return self._mode

    def align(self, ref, query: Seq) -> Solution:
        """
        Computes one optimal alignment.

        Args:
            ref: The reference, of whatever type the scorer accepts (a ``Seq`` or a preprocessed ``Genome``).
            query: A gap-free query sequence.

        Returns:
            The score and an edit script spanning both sequences.

        Raises:
            AlignmentError: If either sequence is empty or the query holds GAP or MISSING symbols.
        """
        seq = query.seq if isinstance(query, SixFrameView) else query
        if len(seq) == 0: raise AlignmentError(f'Query {seq.name} is empty')
        if len(ref) == 0: raise AlignmentError('Reference is empty')
        if not seq.is_gap_free(): raise AlignmentError(f'Query {seq.name} must be gap-free')
        tables = self.scorer.tables(ref, query)
        score, i, j, state, trace = _fill_kernel(*tables, self._mode == AlignmentMode.LOCAL)
        solution = self._solve(score, (i, j, state), trace)
        logger.debug('Aligned %s: score=%d cigar=%s', seq.name, solution.score, solution.cigar)
        return solution

    def align_many(self, ref, queries: Iterable[Seq]) -> list[Solution]:
        """Aligns independent queries to the same reference on the shared thread pool, preserving order."""
        return list(RESOURCES.pool.map(lambda q: self.align(ref, q), queries))

    @staticmethod
    def path_score(scorer: Scorer, ref, query, cigar: Cigar) -> int:
        """
        Rescores an edit script step by step through the positional scorer methods.

        Skipped regions score zero. A match following a gap run whose length is not a multiple of three pays the
        frameshift cost.

        Raises:
            AlignmentError: If the edit script does not span both sequences.
        """
        if cigar.ref_length != len(ref) or cigar.query_length != len(query):
            raise AlignmentError(f'{cigar!r} does not span the sequences ({len(ref)}/{len(query)})')
        score, i, j, run = 0, 0, 0, 0
        for op, length in cigar:
            if op == CigarOp.MATCH:
                for _ in range(length):
                    if run % 3: score += scorer.score_frameshift(ref, query, i)
                    run = 0
                    score += scorer.score_match(ref, query, i, j)
                    i += 1
                    j += 1
            elif op == CigarOp.QUERY_GAP:
                score += scorer.score_open_query_gap(ref, query, i, j - 1)
                for k in range(2, length + 1):
                    score += scorer.score_extend_query_gap(ref, query, i + k - 1, j - 1, k)
                i += length
                run = length
            elif op == CigarOp.REF_GAP:
                score += scorer.score_open_ref_gap(ref, query, i - 1, j)
                for k in range(2, length + 1):
                    score += scorer.score_extend_ref_gap(ref, query, i - 1, j + k - 1, k)
                j += length
                run = length
            else:
                if op.consumes_ref: i += length
                else: j += length
                run = 0
        return score


class GlobalAligner(Aligner):
    """Aligner spanning both sequences end to end, with free trailing gaps."""
    __slots__ = ()
    def __init__(self, scorer: Scorer): super().__init__(scorer, AlignmentMode.GLOBAL)


class LocalAligner(Aligner):
    """Aligner reporting the best scoring local region, flanked by skipped regions."""
    __slots__ = ()
    def __init__(self, scorer: Scorer): super().__init__(scorer, AlignmentMode.LOCAL)


# Functions ------------------------------------------------------------------------------------------------------------
@Aligner.register(AlignmentMode.GLOBAL)
def _global_solution(score, end, trace) -> Solution:
    ops, counts, _, _ = _traceback_kernel(trace, *end)
    items = list(zip(ops.tolist(), counts.tolist()))
    # The trailing gap run is free, it is the unaligned tail of one of the sequences
    if items and items[-1][0] == CigarOp.QUERY_GAP: items[-1] = (CigarOp.REF_SKIPPED, items[-1][1])
    elif items and items[-1][0] == CigarOp.REF_GAP: items[-1] = (CigarOp.QUERY_SKIPPED, items[-1][1])
    return Solution(int(score), Cigar(items))


@Aligner.register(AlignmentMode.LOCAL)
def _local_solution(score, end, trace) -> Solution:
    n, m = trace.shape[0] - 1, trace.shape[1] - 1
    i1, j1, _ = end
    ops, counts, i0, j0 = _traceback_kernel(trace, *end)
    items = [(CigarOp.REF_SKIPPED, i0), (CigarOp.QUERY_SKIPPED, j0)]
    items.extend(zip(ops.tolist(), counts.tolist()))
    items.extend([(CigarOp.QUERY_SKIPPED, m - j1), (CigarOp.REF_SKIPPED, n - i1)])
    return Solution(int(score), Cigar(items))


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _fill_kernel(ref, query, sub, codon_ref, codon_strand, codon_span, query_fwd, query_rev, codon_table, complement,
                 codon_sub, misaligned, misalign_cost, del_open, del_codon, del_extend, ins_open, ins_codon, ins_extend,
                 close, local):
    """
    Fills the DP matrices row by row, keeping two rows of scores and the full trace.

    Query-track gap states consume the reference (move down), reference-track gap states consume the query (move
    right). Gap costs are zero on the trailing edge: query-track gaps once the query is consumed, reference-track
    gaps once the reference is consumed.

    Returns:
        ``(score, i, j, state, trace)`` where ``(i, j, state)`` is the end point of the traceback.
    """
    n = len(ref)
    m = len(query)
    trace = np.zeros((n + 1, m + 1), dtype=np.uint8)
    prev = np.full((7, m + 1), NEG_INF, dtype=np.int64)
    curr = np.full((7, m + 1), NEG_INF, dtype=np.int64)

    # --- Row 0: only reference-track gaps ---
    prev[_M, 0] = 0
    trace[0, 0] = _STOP
    for j in range(1, m + 1):
        if local: prev[_M, j] = 0
        bits = _STOP
        r_open = prev[_M, j - 1] + ins_open[0]
        r_ext = prev[_R0, j - 1] + ins_codon[0]
        if r_ext > r_open:
            prev[_R1, j] = r_ext
            bits |= _R1_EXTENDED
        else:
            prev[_R1, j] = r_open
        prev[_R2, j] = prev[_R1, j - 1] + ins_extend[0]
        prev[_R0, j] = prev[_R2, j - 1] + ins_extend[0]
        trace[0, j] = bits

    best_score = 0
    best_i = 0
    best_j = 0

    for i in range(1, n + 1):
        p = i - 1
        if i == n:
            io = 0
            ic = 0
            ie = 0
        else:
            io = ins_open[i]
            ic = ins_codon[i]
            ie = ins_extend[i]
        cl = close[p]
        ra = codon_ref[p]
        strand = codon_strand[p]
        d0 = codon_span[p, 0]
        d1 = codon_span[p, 1]
        contiguous = d0 == 2 and d1 == 1
        r = ref[p]

        for j in range(m + 1):
            if j == m:
                do = 0
                dc = 0
                de = 0
            else:
                do = del_open[p]
                dc = del_codon[p]
                de = del_extend[p]
            bits = 0
            q_open = prev[_M, j] + do
            q_ext = prev[_Q0, j] + dc
            if q_ext > q_open:
                curr[_Q1, j] = q_ext
                bits |= _Q1_EXTENDED
            else:
                curr[_Q1, j] = q_open
            curr[_Q2, j] = prev[_Q1, j] + de
            curr[_Q0, j] = prev[_Q2, j] + de

            if j == 0:
                curr[_M, 0] = 0 if local else NEG_INF
                curr[_R0, 0] = NEG_INF
                curr[_R1, 0] = NEG_INF
                curr[_R2, 0] = NEG_INF
                trace[i, 0] = bits | _STOP
                continue

            r_open = curr[_M, j - 1] + io
            r_ext = curr[_R0, j - 1] + ic
            if r_ext > r_open:
                curr[_R1, j] = r_ext
                bits |= _R1_EXTENDED
            else:
                curr[_R1, j] = r_open
            curr[_R2, j] = curr[_R1, j - 1] + ie
            curr[_R0, j] = curr[_R2, j - 1] + ie

            # Match: nucleotide substitution plus the codon completed at this reference position
            s = sub[r, query[j - 1]]
            if ra >= 0:
                if contiguous:
                    qa = np.int64(query_fwd[j - 1] if strand > 0 else query_rev[j - 1])
                elif j - 1 < d0:
                    qa = np.int64(-1)
                else:
                    # Codon split by an intron: read the query at the same offsets as the reference
                    a = query[j - 1 - d0]
                    b = query[j - 1 - d1]
                    c = query[j - 1]
                    if strand > 0: qa = np.int64(codon_table[a, b, c])
                    else: qa = np.int64(codon_table[complement[c], complement[b], complement[a]])
                if qa >= 0:
                    if ra == misaligned or qa == misaligned: s += misalign_cost
                    else: s += codon_sub[ra, qa]

            best = prev[_M, j - 1]
            src = _M
            v = prev[_R0, j - 1]
            if v > best:
                best = v
                src = _R0
            v = prev[_R1, j - 1] + cl
            if v > best:
                best = v
                src = _R1
            v = prev[_R2, j - 1] + cl
            if v > best:
                best = v
                src = _R2
            v = prev[_Q0, j - 1]
            if v > best:
                best = v
                src = _Q0
            v = prev[_Q1, j - 1] + cl
            if v > best:
                best = v
                src = _Q1
            v = prev[_Q2, j - 1] + cl
            if v > best:
                best = v
                src = _Q2
            h = best + s
            if local and h <= 0:
                h = 0
                src = _STOP
            curr[_M, j] = h
            trace[i, j] = bits | src
            if local and h > best_score:
                best_score = h
                best_i = i
                best_j = j

        tmp = prev
        prev = curr
        curr = tmp

    if local: return best_score, best_i, best_j, _M, trace

    # Global end point: best state at (n, m), same preference order as the match predecessors
    best = prev[_M, m]
    state = _M
    for s_idx in (_R0, _R1, _R2, _Q0, _Q1, _Q2):
        if prev[s_idx, m] > best:
            best = prev[s_idx, m]
            state = s_idx
    return best, n, m, state, trace


@jit(nopython=True, cache=True, nogil=True)
def _traceback_kernel(trace, i, j, state):
    """
    Walks the trace back from ``(i, j, state)`` to the first match state marked STOP.

    Returns:
        Run-length encoded ``(ops, counts)`` in alignment order and the start ``(i, j)``.
    """
    max_ops = i + j
    ops = np.empty(max_ops, dtype=np.uint8)
    counts = np.empty(max_ops, dtype=np.int64)
    k = 0
    curr_op = 255  # Invalid
    curr_count = 0

    while True:
        t = trace[i, j]
        if state == _M:
            prv = t & _PREV_MASK
            if prv == _STOP: break
            op = 0
            i -= 1
            j -= 1
            state = prv
        elif state == _Q1:
            op = 2
            state = _Q0 if t & _Q1_EXTENDED else _M
            i -= 1
        elif state == _Q2:
            op = 2
            state = _Q1
            i -= 1
        elif state == _Q0:
            op = 2
            state = _Q2
            i -= 1
        elif state == _R1:
            op = 1
            state = _R0 if t & _R1_EXTENDED else _M
            j -= 1
        elif state == _R2:
            op = 1
            state = _R1
            j -= 1
        else:
            op = 1
            state = _R2
            j -= 1

        if op == curr_op:
            curr_count += 1
        else:
            if curr_op != 255:
                ops[k] = curr_op
                counts[k] = curr_count
                k += 1
            curr_op = op
            curr_count = 1

    if curr_op != 255:
        ops[k] = curr_op
        counts[k] = curr_count
        k += 1

    return ops[:k][::-1].copy(), counts[:k][::-1].copy(), i, j

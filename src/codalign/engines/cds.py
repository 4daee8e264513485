"""
Projection of a nucleotide alignment onto the coding features of the reference.
"""
from typing import Iterable, NamedTuple

import numpy as np

from codalign.containers.cigar import Cigar, CigarOp
from codalign.containers.genome import Genome, CdsFeature
from codalign.core.alphabet import Alphabet, GeneticCode
from codalign.core.seq import Seq


# Classes --------------------------------------------------------------------------------------------------------------
class CdsAlignment(NamedTuple):
    """
    Codon-synchronised alignment of one feature.

    Attributes:
        ref: Reference amino acids, named after the feature.
        query: Query amino acids, same length as ``ref``.
        ref_nt: Gapped reference nucleotides of the feature span, in transcript order.
        query_nt: Gapped query nucleotides, same length as ``ref_nt``.
        ref_frameshifts: Amino acid indices of reference-track gap runs not divisible by three.
        query_frameshifts: Amino acid indices of query-track gap runs not divisible by three.
    """
    ref: Seq
    query: Seq
    ref_nt: Seq
    query_nt: Seq
    ref_frameshifts: tuple[int, ...]
    query_frameshifts: tuple[int, ...]

    @property
    def frameshifts(self) -> int:
        """Total number of frameshift events on both sides."""
        return len(self.ref_frameshifts) + len(self.query_frameshifts)


# Functions ------------------------------------------------------------------------------------------------------------
def get_cds_alignments(genome: Genome, features: Iterable[CdsFeature], query: Seq, cigar: Cigar,
                       code: GeneticCode = None) -> list[CdsAlignment]:
    """
    Projects an alignment onto coding features.

    Columns are selected where the reference position belongs to the feature, together with insertions flanked on
    both sides by feature positions. Every three reference nucleotides complete one codon; the query nucleotides
    gathered meanwhile are translated in chunks of three (a partial chunk is ``X``). Insertions following a codon
    start the next one, so the reading frame resynchronises after every indel.

    Args:
        genome: The reference genome.
        features: Coding or protein-product features of the genome.
        query: The gap-free query the alignment was computed for.
        cigar: The alignment.
        code: Genetic code, defaults to the standard code.

    Returns:
        One alignment per feature, in order.

    Examples:
        >>> [aln] = get_cds_alignments(genome, genome.cds_features, query, solution.cigar)
        >>> str(aln.ref), str(aln.query)
        ('MK*', 'MK*')
    """
    code = code or GeneticCode.STANDARD
    ops, ref_index, query_index = cigar.columns()
    nt = Alphabet.NT
    # Reference positions consumed before each column; insertions lie between positions p - 1 and p
    ref_step = ref_index >= 0
    ref_before = np.cumsum(ref_step) - ref_step
    ref_cols = np.where(ref_step, genome.seq.encoded[np.maximum(ref_index, 0)], nt.gap).astype(np.uint8)
    query_cols = np.where(
        query_index >= 0, query.encoded[np.maximum(query_index, 0)] if len(query) else nt.gap,
        np.where(ops == CigarOp.REF_SKIPPED, nt.missing, nt.gap)
    ).astype(np.uint8)

    alignments = []
    for feature in features:
        mask = np.zeros(len(genome) + 1, dtype=bool)
        mask[feature.positions()] = True
        inserted = (ops == CigarOp.REF_GAP) & mask[np.maximum(ref_before - 1, 0)] & mask[ref_before] & (ref_before > 0)
        selected = np.flatnonzero((ref_step & mask[np.maximum(ref_index, 0)]) | inserted)
        r, q = ref_cols[selected], query_cols[selected]
        if feature.strand < 0: r, q = nt.complement[r[::-1]], nt.complement[q[::-1]]
        alignments.append(_project(feature, r, q, query, code))
    return alignments


def _project(feature: CdsFeature, r: np.ndarray, q: np.ndarray, query: Seq, code: GeneticCode) -> CdsAlignment:
    nt, aa = Alphabet.NT, Alphabet.AMINO
    table = code.table
    ref_aa, query_aa = [], []
    ref_shifts, query_shifts = [], []
    pending_ref, pending_query = 0, 0  # Frameshift events waiting for their codon to close
    ref_nts, query_nts = [], []
    missing = False
    ref_run = query_run = 0
    skip = feature.frame

    for k in range(len(r)):
        rs, qs = r[k], q[k]
        if skip:
            if rs != nt.gap: skip -= 1
            continue
        # Gap runs, per track
        ref_run = ref_run + 1 if rs == nt.gap else 0
        query_run = query_run + 1 if qs == nt.gap else 0
        if ref_run and (k + 1 == len(r) or r[k + 1] != nt.gap) and ref_run % 3: pending_ref += 1
        if query_run and (k + 1 == len(q) or q[k + 1] != nt.gap) and query_run % 3: pending_query += 1
        # Codon accumulation
        if qs == nt.missing: missing = True
        elif qs != nt.gap: query_nts.append(qs)
        if rs == nt.gap: continue
        ref_nts.append(rs)
        if len(ref_nts) < 3: continue

        chunks = [query_nts[i:i + 3] for i in range(0, len(query_nts), 3)]
        translated = [table[c[0], c[1], c[2]] if len(c) == 3 else aa.misaligned for c in chunks]
        if not translated: translated = [aa.missing if missing else aa.gap]
        for a in translated[:-1]:
            ref_aa.append(aa.gap)
            query_aa.append(a)
        index = len(ref_aa)
        ref_aa.append(table[ref_nts[0], ref_nts[1], ref_nts[2]])
        query_aa.append(translated[-1])
        ref_shifts.extend([index] * pending_ref)
        query_shifts.extend([index] * pending_query)
        pending_ref = pending_query = 0
        ref_nts, query_nts = [], []
        missing = False

    return CdsAlignment(
        ref=Seq(np.array(ref_aa, dtype=np.uint8), aa, feature.name),
        query=Seq(np.array(query_aa, dtype=np.uint8), aa, query.name, feature.name),
        ref_nt=Seq(r.copy(), nt, feature.name),
        query_nt=Seq(q.copy(), nt, query.name, feature.name),
        ref_frameshifts=tuple(ref_shifts),
        query_frameshifts=tuple(query_shifts)
    )

"""
Six-frame translated view of a nucleotide sequence.
"""
from typing import Literal

import numpy as np

from codalign.core.alphabet import Alphabet, GeneticCode, AlphabetError
from codalign.core.seq import Seq


# Constants ------------------------------------------------------------------------------------------------------------
NO_CODON = -1
"""Marker for positions that do not end a complete codon."""


# Classes --------------------------------------------------------------------------------------------------------------
class SixFrameView:
    """
    Read-only projection of a gap-free nucleotide sequence onto its six reading frames.

    For every position ``q`` the view holds the amino acid of the forward codon ``seq[q-2:q+1]`` and of its
    reverse complement, so a codon can be looked up by the position of its last nucleotide without
    re-translating. Positions ``q < 2`` hold ``NO_CODON``.

    Examples:
        >>> view = SixFrameView(Alphabet.NT.seq_from('ATGAAA'))
        >>> Alphabet.AMINO.decode(view.forward[[2, 5]].astype('uint8'))
        b'MK'
    """
    __slots__ = ('_seq', '_forward', '_reverse', '_code')

    def __init__(self, seq: Seq, code: GeneticCode = None):
        """
        Args:
            seq: A gap-free sequence in the ``NT`` alphabet.
            code: Genetic code, defaults to the standard code.

        Raises:
            AlphabetError: If the sequence is not nucleotide or contains GAP or MISSING symbols.
        """
        if seq.alphabet != Alphabet.NT: raise AlphabetError('A six-frame view requires a nucleotide sequence')
        if not seq.is_gap_free(): raise AlphabetError('A six-frame view requires a gap-free sequence')
        self._seq = seq
        self._code = code or GeneticCode.STANDARD
        enc = seq.encoded
        n = len(enc)
        self._forward = np.full(n, NO_CODON, dtype=np.int16)
        self._reverse = np.full(n, NO_CODON, dtype=np.int16)
        if n >= 3:
            table, comp = self._code.table, Alphabet.NT.complement
            self._forward[2:] = table[enc[:-2], enc[1:-1], enc[2:]]
            self._reverse[2:] = table[comp[enc[2:]], comp[enc[1:-1]], comp[enc[:-2]]]
        self._forward.flags.writeable = False
        self._reverse.flags.writeable = False

    def __len__(self): return len(self._seq)
    def __repr__(self): return f"SixFrameView({self._seq!r})"

    @property
    def seq(self) -> Seq: return self._seq
    @property
    def code(self) -> GeneticCode: return self._code

    @property
    def forward(self) -> np.ndarray:
        """Amino acid of the forward codon ending at each position (int16, ``NO_CODON`` if none)."""
        return self._forward

    @property
    def reverse(self) -> np.ndarray:
        """Amino acid of the reverse-strand codon whose forward span ends at each position."""
        return self._reverse

    def aa_at(self, position: int, strand: Literal[1, -1] = 1) -> int:
        """Returns the amino acid of the codon ending at ``position`` on the given strand."""
        return int(self._forward[position] if strand > 0 else self._reverse[position])

    def aa_of(self, first: int, middle: int, last: int, strand: Literal[1, -1] = 1) -> int:
        """
        Returns the amino acid of the codon read from three ascending, not necessarily adjacent, positions.

        On the reverse strand the positions are read from ``last`` to ``first`` and complemented. A codon starting
        before the sequence gives ``NO_CODON``.
        """
        if first < 0: return NO_CODON
        if middle == first + 1 and last == middle + 1: return self.aa_at(last, strand)
        enc = self._seq.encoded
        a, b, c = enc[first], enc[middle], enc[last]
        if strand < 0:
            comp = Alphabet.NT.complement
            a, b, c = comp[c], comp[b], comp[a]
        return int(self._code.table[a, b, c])

    def translation(self, frame: Literal[0, 1, 2] = 0, strand: Literal[1, -1] = 1) -> Seq:
        """
        Translates one of the six reading frames.

        Args:
            frame: Offset of the first codon, counted from the 5' end of the chosen strand.
            strand: 1 for the sequence as given, -1 for its reverse complement.

        Returns:
            The amino acid sequence.
        """
        seq = self._seq if strand > 0 else self._seq.reverse_complement()
        return self._code.translate(seq, frame)

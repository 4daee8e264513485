"""
Module for representing ASCII biological alphabets and the genetic code
"""
from itertools import product
from typing import Union, Final, ClassVar, Optional

import numpy as np

from codalign import CodalignError
from codalign.core.seq import Seq


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlphabetError(CodalignError):
    """Raised when an alphabet is invalid or an operation is incompatible with the alphabet."""


class TranslationError(AlphabetError):
    """Raised when nucleotide-to-amino-acid translation fails (e.g. invalid frame)."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alphabet:
    """
    A class to represent an alphabet of ASCII symbols.

    Every alphabet reserves a GAP symbol (alignment-induced absence) and a MISSING symbol (absence of data), and may
    declare ambiguity codes together with the canonical symbols each one stands for.

    Examples:
        >>> Alphabet.NT.encode(b'ACGT')
        array([0, 1, 2, 3], dtype=uint8)
        >>> Alphabet.NT.is_ambiguity(Alphabet.NT.encode(b'N')[0])
        True
    """
    __slots__ = ('_data', '_lookup_table', '_complement', '_trans_table', '_delete_bytes', '_decode_table',
                 '_gap', '_missing', '_ambiguous', '_expansions', '_misaligned', '_stop')
    DTYPE: Final = np.uint8
    INVALID: Final = np.iinfo(DTYPE).max
    MAX_LEN: Final = INVALID + 1
    ENCODING: Final = 'ascii'

    NT: ClassVar['Alphabet']
    AMINO: ClassVar['Alphabet']

    def __init__(self, symbols: bytes, complement: bytes = None, aliases: dict[bytes, bytes] = None,
                 gap: bytes = b'-', missing: bytes = b'?', ambiguities: dict[bytes, bytes] = None,
                 misaligned: bytes = None, stop: bytes = None):
        """
        Initializes an Alphabet.

        Args:
            symbols: The symbols in the alphabet as bytes.
            complement: Optional complement symbols as bytes. Must be same length as symbols.
            aliases: Optional mapping of invalid characters to valid ones (e.g. {b'U': b'T'}).
            gap: The gap symbol, must be part of ``symbols``.
            missing: The missing-data symbol, must be part of ``symbols``.
            ambiguities: Optional mapping of ambiguity codes to the canonical symbols they stand for.
            misaligned: Optional symbol that marks a misaligned position (e.g. ``X`` for amino acids).
            stop: Optional stop symbol.

        Raises:
            AlphabetError: If symbols are not ASCII, too long, contain duplicates, or if complement is invalid.
        """
        if not symbols.isascii(): raise AlphabetError('Alphabet symbols must be a valid ASCII string')
        if len(symbols) > self.MAX_LEN:
            raise AlphabetError(f'Alphabet size cannot exceed {self.MAX_LEN} symbols ({self.DTYPE})')
        if len(set(symbols.upper())) != len(symbols): raise AlphabetError('Alphabet contains duplicate symbols')

        self._data: np.ndarray = np.frombuffer(symbols, dtype=self.DTYPE)

        # Build Lookup Table
        self._lookup_table = np.full(self.MAX_LEN, self.INVALID, dtype=self.DTYPE)
        indices = np.arange(len(symbols), dtype=self.DTYPE)
        self._lookup_table[np.frombuffer(symbols, dtype=self.DTYPE)] = indices
        self._lookup_table[np.frombuffer(symbols.lower(), dtype=self.DTYPE)] = indices

        if aliases:
            for src, dst in aliases.items():
                if len(src) != 1 or len(dst) != 1: raise AlphabetError("Aliases must be single bytes")
                dst_idx = self._lookup_table[ord(dst)]
                if dst_idx == self.INVALID: raise AlphabetError(f"Alias target {dst} not in alphabet")
                self._lookup_table[ord(src)] = dst_idx
                self._lookup_table[ord(src.lower())] = dst_idx

        # Translation tables for bytes.translate
        self._trans_table = self._lookup_table.tobytes()
        self._delete_bytes = np.where(self._lookup_table == self.INVALID)[0].astype(self.DTYPE).tobytes()
        decode_map = np.zeros(256, dtype=self.DTYPE)
        decode_map[:len(self._data)] = self._data
        self._decode_table = decode_map.tobytes()

        self._complement = None
        if complement is not None:
            if len(complement) != len(symbols):
                raise AlphabetError("Complement must be the same length as symbols")
            comp_indices = self._lookup_table[np.frombuffer(complement, dtype=self.DTYPE)]
            if np.any(comp_indices == self.INVALID):
                raise AlphabetError("Complement contains symbols not in alphabet")
            self._complement = comp_indices
            self._complement.flags.writeable = False

        self._gap = self._index_of(gap)
        self._missing = self._index_of(missing)
        self._misaligned = None if misaligned is None else self._index_of(misaligned)
        self._stop = None if stop is None else self._index_of(stop)

        # Ambiguity codes and the canonical symbols they expand to
        self._ambiguous = np.zeros(len(symbols), dtype=bool)
        self._expansions: dict[int, np.ndarray] = {}
        for code, targets in (ambiguities or {}).items():
            idx = self._index_of(code)
            self._ambiguous[idx] = True
            self._expansions[idx] = np.array([self._index_of(bytes([t])) for t in targets], dtype=self.DTYPE)
        self._ambiguous.flags.writeable = False

    def _index_of(self, symbol: bytes) -> int:
        if len(symbol) != 1 or self._lookup_table[symbol[0]] == self.INVALID:
            raise AlphabetError(f'Symbol {symbol!r} is not in the alphabet')
        return int(self._lookup_table[symbol[0]])

    def __len__(self):
        return len(self._data)

    def __contains__(self, item):
        try:
            if isinstance(item, (int, np.integer)):
                return self._lookup_table[item] != self.INVALID
            if isinstance(item, (str, bytes)):
                if len(item) != 1: return False
                val = ord(item) if isinstance(item, str) else item[0]
                return self._lookup_table[val] != self.INVALID
        except (IndexError, ValueError, TypeError):
            pass
        return False

    def __iter__(self):
        return iter(self._data)

    def __getitem__(self, item):
        return self._data[item]

    def __array__(self, dtype=None):
        return self._data.astype(dtype, copy=False) if dtype else self._data

    def __repr__(self):
        return f"Alphabet({self._data.tobytes().decode(self.ENCODING)})"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Alphabet): return False
        return np.array_equal(self._data, other._data)

    def __hash__(self):
        return hash(self._data.tobytes())

    @property
    def complement(self) -> Optional[np.ndarray]:
        """Returns the complement lookup table if available."""
        return self._complement

    @property
    def gap(self) -> int:
        """Index of the GAP symbol."""
        return self._gap

    @property
    def missing(self) -> int:
        """Index of the MISSING symbol."""
        return self._missing

    @property
    def misaligned(self) -> Optional[int]:
        """Index of the symbol marking a misaligned position, or ``None`` if the alphabet has none."""
        return self._misaligned

    @property
    def stop(self) -> Optional[int]:
        """Index of the stop symbol, or ``None`` if the alphabet has none."""
        return self._stop

    @property
    def ambiguous(self) -> np.ndarray:
        """Boolean mask over symbol indices, ``True`` for ambiguity codes."""
        return self._ambiguous

    def is_ambiguity(self, index: int) -> bool:
        return bool(self._ambiguous[index])

    def expand(self, index: int) -> np.ndarray:
        """
        Returns the canonical symbol indices compatible with a symbol.

        Args:
            index: Encoded symbol.

        Returns:
            The expansion of an ambiguity code, or the symbol itself for canonical symbols.
        """
        return self._expansions.get(int(index), np.array([index], dtype=self.DTYPE))

    def encode(self, text: Union[bytes, str], strict: bool = False) -> np.ndarray:
        """
        Encodes text to symbol indices. Bytes outside the alphabet (e.g. whitespace) are dropped.

        Args:
            text: The text to encode.
            strict: Raise instead of dropping bytes that are not in the alphabet.

        Returns:
            A numpy array of encoded indices.

        Raises:
            AlphabetError: If ``strict`` and the text contains invalid symbols.
        """
        if isinstance(text, str): text = text.encode(self.ENCODING)
        encoded = text.translate(self._trans_table, delete=self._delete_bytes)
        if strict and len(encoded) != len(text):
            raise AlphabetError(f'Text contains symbols not in {self!r}')
        return np.frombuffer(encoded, dtype=self.DTYPE).copy()

    def decode(self, encoded: np.ndarray) -> bytes:
        """Decodes an array of indices back to bytes.

        Args:
            encoded: The numpy array of indices (uint8).

        Returns:
            The decoded bytes string.
        """
        if encoded.dtype != self.DTYPE:
            encoded = encoded.astype(self.DTYPE, copy=False)
        return encoded.tobytes().translate(self._decode_table)

    def seq_from(self, data, name: str = '', description: str = '', strict: bool = False) -> 'Seq':
        """Creates a Seq object from various input types, ensuring correct encoding.

        Args:
            data: The input data. Can be a ``Seq``, string, bytes, or numpy array of encoded indices.
            name: Sequence name.
            description: Optional free text description.
            strict: Raise on symbols not in the alphabet instead of dropping them.

        Returns:
            A new ``Seq`` object with this alphabet.

        Raises:
            AlphabetError: If the input has a different alphabet or contains invalid encoded indices.
        """
        if isinstance(data, Seq):
            if data.alphabet != self: raise AlphabetError(f'Sequence has a different alphabet "{data.alphabet}"')
            return Seq(data.encoded.copy(), self, name or data.name, description or data.description)
        if isinstance(data, np.ndarray):
            data = np.ascontiguousarray(data, dtype=self.DTYPE)
            if len(data) and data.max() >= len(self): raise AlphabetError('Encoded data is out of alphabet range')
            return Seq(data.copy(), self, name, description)
        return Seq(self.encode(data, strict=strict), self, name, description)

    def empty_seq(self, name: str = '') -> 'Seq':
        """Returns an empty sequence with this alphabet."""
        return Seq(np.empty(0, dtype=self.DTYPE), self, name)

    def reverse_complement(self, seq: 'Seq') -> 'Seq':
        """Returns the reverse complement of the sequence.

        Args:
            seq: The input sequence.

        Returns:
            A new ``Seq`` object (reverse complemented).

        Raises:
            AlphabetError: If the alphabet has no complement.
        """
        if self._complement is None: raise AlphabetError(f'{self!r} has no complement')
        return Seq(self._complement[seq.encoded[::-1]], self, seq.name, seq.description)


class GeneticCode:
    """
    Represents a genetic code table for translation between the ``NT`` and ``AMINO`` alphabets.

    The table is precomputed over every triple of nucleotide symbols, so ambiguity codes, GAP and MISSING
    translate without branching:

    * three canonical bases translate through the 64-codon table;
    * ambiguity codes translate to the amino acid shared by all of their expansions, ``X`` otherwise;
    * an all-GAP codon is a GAP, an all-MISSING codon is MISSING;
    * any other mixture containing GAP or MISSING is ``X``.
    """
    __slots__ = ('_data', '_table')
    STANDARD: ClassVar['GeneticCode']

    def __init__(self, table: bytes):
        """Initializes a genetic code.

        Args:
            table: 64-byte ASCII string representing the translation table in TCAG order.
        """
        if len(table) != 64: raise AlphabetError('A genetic code table must have 64 entries')
        nt, amino = Alphabet.NT, Alphabet.AMINO
        self._data = amino.encode(table, strict=True)
        self._table = self._build(nt, amino, self._data)
        self._table.flags.writeable = False

    @staticmethod
    def _build(nt: Alphabet, amino: Alphabet, codons: np.ndarray) -> np.ndarray:
        # Ranks of A, C, G, T in TCAG order
        rank = {int(i): r for i, r in zip(nt.encode(b'ACGT'), (2, 1, 3, 0))}
        n = len(nt)
        table = np.full((n, n, n), amino.misaligned, dtype=Alphabet.DTYPE)
        special = (nt.gap, nt.missing)
        for a, b, c in product(range(n), repeat=3):
            triple = (a, b, c)
            if all(s == nt.gap for s in triple): table[triple] = amino.gap
            elif all(s == nt.missing for s in triple): table[triple] = amino.missing
            elif any(s in special for s in triple): continue
            else:
                aas = {int(codons[rank[int(x)] * 16 + rank[int(y)] * 4 + rank[int(z)]])
                       for x, y, z in product(*(nt.expand(s) for s in triple))}
                if len(aas) == 1: table[triple] = aas.pop()
        return table

    @property
    def table(self) -> np.ndarray:
        """Read-only lookup of shape ``(len(NT), len(NT), len(NT))`` to amino acid indices."""
        return self._table

    def __getitem__(self, item):
        return self._table[item]

    def __repr__(self):
        return f"GeneticCode({Alphabet.AMINO.decode(self._data).decode(Alphabet.ENCODING)})"

    def translate_codons(self, encoded: np.ndarray) -> np.ndarray:
        """
        Translates encoded nucleotides, read as consecutive codons, to encoded amino acids.

        Args:
            encoded: Encoded nucleotides, a trailing partial codon is ignored.

        Returns:
            Encoded amino acids.
        """
        n = len(encoded) // 3
        codons = encoded[:n * 3].reshape(n, 3)
        return self._table[codons[:, 0], codons[:, 1], codons[:, 2]]

    def translate(self, seq: 'Seq', frame: int = 0) -> 'Seq':
        """
        Translates a nucleotide sequence to amino acids.

        Args:
            seq: The nucleotide sequence.
            frame: The reading frame (0, 1, or 2).

        Returns:
            The translated protein sequence, named after the input.

        Raises:
            TranslationError: If the frame is invalid or the sequence is not nucleotide.
        """
        if frame not in (0, 1, 2): raise TranslationError(f'Invalid reading frame {frame}')
        if seq.alphabet != Alphabet.NT: raise TranslationError('Sequence must use the NT alphabet')
        return Seq(self.translate_codons(seq.encoded[frame:]), Alphabet.AMINO, seq.name, seq.description)


# Initialize Standard Alphabets
Alphabet.NT = Alphabet(
    b'ACGTMRWSYKVHDBN-?', b'TGCAKYWSRMBDHVN-?', aliases={b'U': b'T', b'X': b'N', b'.': b'-'},
    ambiguities={b'M': b'AC', b'R': b'AG', b'W': b'AT', b'S': b'CG', b'Y': b'CT', b'K': b'GT',
                 b'V': b'ACG', b'H': b'ACT', b'D': b'AGT', b'B': b'CGT', b'N': b'ACGT'}
)
Alphabet.AMINO = Alphabet(
    b'ARNDCQEGHILKMFPSTWYVBZX*-?', aliases={b'J': b'X', b'U': b'C', b'O': b'K', b'.': b'-'},
    ambiguities={b'B': b'DN', b'Z': b'EQ', b'X': b'ARNDCQEGHILKMFPSTWYV'}, misaligned=b'X', stop=b'*'
)

GeneticCode.STANDARD = GeneticCode(b'FFLLSSSSYY**CC*WLLLLPPPPHHQQRRRRIIIMTTTTNNKKSSRRVVVVAAAADDEEGGGG')

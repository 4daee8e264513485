from dataclasses import dataclass, field
from logging import getLogger
from typing import List, BinaryIO, Generator
from re import compile as regex
from warnings import warn

from codalign.core.alphabet import Alphabet, GeneticCode
from codalign.core.seq import Seq
from codalign.containers.genome import Genome, CdsFeature
from codalign.io import BaseReader, ParserError, FeatureWarning, select_features, make_feature, with_translations

logger = getLogger(__name__)

# Constants ------------------------------------------------------------------------------------------------------------
_INTERVAL_REGEX = regex(rb'<?(?P<start>[0-9]+)(?:\.\.>?(?P<end>[0-9]+))?')
_LOCATION_REGEX = regex(rb'^[0-9<>.,()\s]*$')
_NAME_QUALIFIERS = (b'gene', b'locus_tag', b'product', b'protein_id')


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass
class GenbankFeature:
    """A raw feature table entry: key, 0-based half-open ranges, strand and qualifiers."""
    kind: bytes
    ranges: list[tuple[int, int]]
    strand: int = 1
    qualifiers: dict[bytes, bytes] = field(default_factory=dict)

    def name(self, fallback: str) -> str:
        """The first naming qualifier present, else ``fallback``."""
        for key in _NAME_QUALIFIERS:
            if (value := self.qualifiers.get(key)) and value is not True: return value.decode('ascii', 'replace')
        return fallback


@dataclass
class GenbankRecord:
    """One GenBank entry."""
    name: str
    description: str
    seq: Seq
    features: list[GenbankFeature] = field(default_factory=list)


class GenbankReader(BaseReader):
    """
    Genbank Reader (Binary Mode).
    Robust to fuzzy coordinates (<1..>100) and loose indentation; only the feature keys needed for alignment are kept.

    Examples:
        >>> with open("genome.gbk", "rb") as f:
        ...     for record in GenbankReader(f):
        ...         print(record.name)
    """
    _SUPPORTED_KINDS = frozenset({b'CDS', b'mat_peptide'})
    __slots__ = ('alphabet',)

    def __init__(self, handle: BinaryIO, alphabet: Alphabet = None):
        super().__init__(handle)
        self.alphabet = alphabet or Alphabet.NT

    def __iter__(self) -> Generator[GenbankRecord, None, None]:
        read = self._handle.read

        buf = b""
        while True:
            chunk = read(self._CHUNK_SIZE)
            if not chunk:
                if buf.strip():
                    if b'LOCUS' not in buf[:100]: raise ParserError('Trailing data is not a GenBank record')
                    yield self._parse_record_chunk(buf)  # Last record without '//'
                break

            buf += chunk
            pos = 0

            while True:
                # Find end of record marker //
                if pos == 0 and buf.startswith(b'//'): end_pos = 0
                else:
                    found = buf.find(b'\n//', pos)
                    end_pos = found + 1 if found != -1 else -1

                if end_pos == -1:
                    if pos > 0: buf = buf[pos:]
                    break

                next_line = buf.find(b'\n', end_pos)
                if next_line == -1:
                    # Incomplete delimiter line
                    if pos > 0: buf = buf[pos:]
                    break

                record_bytes = buf[pos:end_pos]
                if record_bytes.strip():
                    yield self._parse_record_chunk(record_bytes)

                pos = next_line + 1

    def _parse_record_chunk(self, data: bytes) -> GenbankRecord:
        if not data.lstrip().startswith(b'LOCUS'): raise ParserError('GenBank record does not start with LOCUS')
        # 1. Split Sequence vs Metadata
        origin_idx = data.find(b'\nORIGIN')
        seq_data, meta_data = b'', data
        if origin_idx != -1:
            line_end = data.find(b'\n', origin_idx + 1)
            meta_data = data[:origin_idx]
            if line_end != -1: seq_data = data[line_end + 1:]

        # 2. Split Header vs Features
        features_idx = meta_data.find(b'\nFEATURES')
        if features_idx != -1:
            header_lines = meta_data[:features_idx].splitlines()
            feature_lines = meta_data[features_idx + 1:].splitlines()[1:]
        else:
            header_lines, feature_lines = meta_data.splitlines(), []

        name, description = 'unknown', ''
        for line in header_lines:
            if line.startswith(b'LOCUS'):
                parts = line.split()
                if len(parts) > 1: name = parts[1].decode('ascii', 'replace')
            elif line.startswith(b'DEFINITION'):
                description = line[12:].strip().decode('ascii', 'replace')

        record = GenbankRecord(name, description, self.alphabet.seq_from(seq_data, name, description))

        # 3. Parse Features, keys start at column 5 and are not qualifiers
        current_lines = []
        for line in feature_lines:
            if not line.strip(): continue
            if len(line) > 5 and line[5] != 32 and not line.strip().startswith(b'/'):
                if current_lines: self._parse_feature_block(record, current_lines)
                current_lines = [line]
            else:
                current_lines.append(line)
        if current_lines: self._parse_feature_block(record, current_lines)
        return record

    def _parse_feature_block(self, record: GenbankRecord, lines: List[bytes]):
        parts = lines[0].strip().split(maxsplit=1)
        kind = parts[0]
        if kind not in self._SUPPORTED_KINDS: return

        loc_str = parts[1] if len(parts) > 1 else b""
        qual_start_index = 1
        for line in lines[1:]:
            stripped = line.strip()
            if stripped.startswith(b'/'): break
            loc_str += stripped
            qual_start_index += 1

        try: ranges, strand = parse_location(loc_str)
        except ParserError as e:
            warn(f'Skipping {kind.decode()} feature of {record.name}: {e}', FeatureWarning)
            return
        feat = GenbankFeature(kind, ranges, strand)

        current_qual = []
        for line in lines[qual_start_index:]:
            stripped = line.strip()
            if stripped.startswith(b'/'):
                if current_qual: self._add_qualifier(feat, current_qual)
                current_qual = [stripped]
            else:
                current_qual.append(stripped)
        if current_qual: self._add_qualifier(feat, current_qual)
        record.features.append(feat)

    @staticmethod
    def _add_qualifier(feat: GenbankFeature, lines: List[bytes]):
        # Translations wrap without spaces, free text wraps with one
        joiner = b'' if lines[0].startswith(b'/translation') else b' '
        key, sep, val = joiner.join(lines)[1:].partition(b'=')
        if not sep:
            feat.qualifiers.setdefault(key, True)
            return
        val = val.strip()
        if val.startswith(b'"') and val.endswith(b'"'): val = val[1:-1]
        feat.qualifiers.setdefault(key, val)


# Functions ------------------------------------------------------------------------------------------------------------
def parse_location(text: bytes) -> tuple[list[tuple[int, int]], int]:
    """
    Parses a GenBank location such as ``complement(join(1..10,20..>30))``.

    Args:
        text: The location, 1-based and inclusive.

    Returns:
        Ascending 0-based half-open ranges and the strand.

    Raises:
        ParserError: If the location is empty or uses unsupported operators.

    Examples:
        >>> parse_location(b'complement(join(1..3,7..9))')
        ([(0, 3), (6, 9)], -1)
    """
    if isinstance(text, str): text = text.encode('ascii')
    strand = -1 if b'complement' in text else 1
    stripped = text.replace(b'complement', b'').replace(b'join', b'').replace(b'order', b'')
    if not _LOCATION_REGEX.match(stripped): raise ParserError(f'Unsupported location {text!r}')
    ranges = []
    for m in _INTERVAL_REGEX.finditer(stripped):
        start = int(m.group('start'))
        end = int(m.group('end')) if m.group('end') else start
        if end < start or start < 1: raise ParserError(f'Invalid interval in location {text!r}')
        ranges.append((start - 1, end))
    if not ranges: raise ParserError(f'Empty location {text!r}')
    return sorted(ranges), strand


def genome_from_genbank(record: GenbankRecord, code: GeneticCode = None) -> Genome:
    """
    Builds a genome from the CDS features of a record.

    Features are named after their ``/gene``, ``/locus_tag`` or ``/product``; the frame comes from
    ``/codon_start`` and the amino acid sequence from ``/translation`` when present. Features that overlap an earlier
    feature, or do not fit in the sequence, are skipped with a ``FeatureWarning``.
    """
    candidates = []
    for k, f in enumerate(x for x in record.features if x.kind == b'CDS'):
        try: frame = int(f.qualifiers.get(b'codon_start', b'1')) - 1
        except ValueError as e: raise ParserError(f'Invalid /codon_start in {record.name}') from e
        aa_seq = None
        if translation := f.qualifiers.get(b'translation'):
            aa_seq = Alphabet.AMINO.seq_from(translation)
        if feature := make_feature(f.name(f'CDS_{k + 1}'), f.ranges, frame, f.strand, aa_seq):
            candidates.append(feature)
    features = with_translations(select_features(candidates, len(record.seq)), record.seq, code)
    logger.debug('Loaded %d CDS features from %s', len(features), record.name)
    return Genome(record.seq, features)


def proteins_from_genbank(record: GenbankRecord, code: GeneticCode = None) -> list[CdsFeature]:
    """Builds protein-product features from the ``mat_peptide`` entries of a record. They may overlap each other."""
    candidates = []
    for k, f in enumerate(x for x in record.features if x.kind == b'mat_peptide'):
        if feature := make_feature(f.name(f'peptide_{k + 1}'), f.ranges, 0, f.strand):
            candidates.append(feature)
    return with_translations(select_features(candidates, len(record.seq), exclusive=False), record.seq, code)

"""
Reader for ``.cds`` coordinate files, the annotation companion of a FASTA reference.

One feature per line, tab separated: ``name``, a GenBank-style location (1-based, inclusive, ``join`` and
``complement`` allowed) and an optional kind, ``CDS`` (default) or ``protein``. Blank lines and lines starting with
``#`` are ignored::

    # name    location                  kind
    gag       790..2292
    pol       2085..5096                CDS
    p17       790..1185                 protein
"""
from pathlib import Path
from typing import Union

from codalign.core.alphabet import GeneticCode
from codalign.core.seq import Seq
from codalign.containers.genome import CdsFeature
from codalign.io import ParserError, SeqIOError, select_features, make_feature, with_translations
from codalign.io.genbank import parse_location


# Constants ------------------------------------------------------------------------------------------------------------
_KINDS = {'cds': 'CDS', 'protein': 'protein', 'mat_peptide': 'protein'}


# Functions ------------------------------------------------------------------------------------------------------------
def read_cds_file(path: Union[str, Path], genome_seq: Seq,
                  code: GeneticCode = None) -> tuple[list[CdsFeature], list[CdsFeature]]:
    """
    Reads coding and protein features for a reference sequence.

    Args:
        path: The ``.cds`` file.
        genome_seq: The reference the coordinates refer to, used for translation and bounds checks.
        code: Genetic code, defaults to the standard code.

    Returns:
        The CDS features (non-overlapping) and the protein features, in file order.

    Raises:
        SeqIOError: If the file cannot be read.
        ParserError: If a line is malformed.
    """
    try: lines = Path(path).read_text().splitlines()
    except OSError as e: raise SeqIOError(f'Cannot read {path}: {e.strerror}') from e
    cds, proteins = [], []
    for n, line in enumerate(lines, 1):
        if not line.strip() or line.lstrip().startswith('#'): continue
        fields = line.rstrip('\n').split('\t')
        if len(fields) < 2: raise ParserError(f'{path}:{n}: expected "name<TAB>location[<TAB>kind]"')
        name, location = fields[0].strip(), fields[1].strip()
        kind = _KINDS.get(fields[2].strip().lower() if len(fields) > 2 and fields[2].strip() else 'cds')
        if kind is None: raise ParserError(f'{path}:{n}: unknown feature kind {fields[2]!r}')
        try: ranges, strand = parse_location(location)
        except ParserError as e: raise ParserError(f'{path}:{n}: {e}') from e
        if feature := make_feature(name, ranges, 0, strand):
            (cds if kind == 'CDS' else proteins).append(feature)
    cds = with_translations(select_features(cds, len(genome_seq)), genome_seq, code)
    proteins = with_translations(select_features(proteins, len(genome_seq), exclusive=False), genome_seq, code)
    return cds, proteins

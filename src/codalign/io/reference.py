from logging import getLogger
from pathlib import Path
from typing import Union

from codalign.core.alphabet import GeneticCode
from codalign.containers.genome import Genome, CdsFeature
from codalign.io import ParserError
from codalign.io.cds import read_cds_file
from codalign.io.genbank import GenbankReader, genome_from_genbank, proteins_from_genbank
from codalign.io.seq import FastaReader

logger = getLogger(__name__)


# Functions ------------------------------------------------------------------------------------------------------------
def read_reference(path: Union[str, Path], code: GeneticCode = None) -> tuple[Genome, list[CdsFeature]]:
    """
    Loads an annotated reference.

    A ``.fasta`` file with a sibling ``.cds`` coordinate file is read as the pair, anything else as GenBank. Only the
    first record is used.

    Args:
        path: The reference file.
        code: Genetic code, defaults to the standard code.

    Returns:
        The genome with its CDS features, and the protein-product features.

    Raises:
        SeqIOError: If a file cannot be opened.
        ParserError: If the file holds no record or a record is malformed.
    """
    path = Path(path)
    cds_path = path.with_suffix('.cds')
    if path.suffix == '.fasta' and cds_path.exists():
        with FastaReader.from_path(path) as reader:
            if (seq := next(iter(reader), None)) is None: raise ParserError(f'{path} holds no sequence')
        cds, proteins = read_cds_file(cds_path, seq, code)
        genome = Genome(seq, cds)
    else:
        with GenbankReader.from_path(path) as reader:
            if (record := next(iter(reader), None)) is None: raise ParserError(f'{path} holds no GenBank record')
        genome, proteins = genome_from_genbank(record, code), proteins_from_genbank(record, code)
    logger.info('Reference %s: %d nt, %d CDS, %d proteins', genome.name, len(genome), len(genome.cds_features),
                len(proteins))
    return genome, proteins

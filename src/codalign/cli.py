"""
Command line interface: align nucleotide queries to an annotated reference.

Examples:
    $ codalign ref.gb queries.fasta aligned.fasta --global --cds-aa-alignments cds.faa
"""
from argparse import ArgumentParser, Namespace
from contextlib import ExitStack
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import Iterable, Optional
import sys

from codalign import __version__, CodalignError
from codalign.containers.cigar import Solution
from codalign.containers.genome import Genome, CdsFeature
from codalign.core.seq import Seq
from codalign.engines.cds import get_cds_alignments
from codalign.engines.genome_scorer import GenomeScorer
from codalign.engines.pairwise import Aligner
from codalign.engines.scoring import ScoreMatrix, SimpleScorer
from codalign.engines.stats import AlignmentStats, calc_stats
from codalign.io.reference import read_reference
from codalign.io.seq import FastaReader, FastaWriter
from codalign.utils import Config, ConfigError, configure_logging
from codalign.utils.resources import RESOURCES

logger = getLogger(__name__)


# Classes --------------------------------------------------------------------------------------------------------------
class _ArgumentParser(ArgumentParser):
    """Argument parser exiting with status 1 on usage errors."""
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f'{self.prog}: error: {message}\n')


@dataclass
class AlignConfig(Config):
    """
    Validated run configuration, built once from the command line.

    Raises:
        ConfigError: If an input is missing, a weight is negative or the matrix is unknown.
    """
    reference: Path
    query: Path
    alignment_output: Path
    mode: str = 'global'
    nt_weight: int = 1
    nt_gap_open: int = -10
    nt_gap_extend: int = -1
    nt_match: int = 2
    nt_mismatch: int = -2
    aa_weight: int = 1
    aa_gap_open: int = -6
    aa_gap_extend: int = -2
    aa_matrix: str = 'BLOSUM30'
    aa_frameshift: int = -100
    aa_misalign: int = -20
    cds_aa_alignments: Optional[Path] = None
    cds_nt_alignments: Optional[Path] = None
    protein_aa_alignments: Optional[Path] = None
    protein_nt_alignments: Optional[Path] = None
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ('reference', 'query'):
            if not Path(path := getattr(self, name)).is_file(): raise ConfigError(f'{name} file {path} does not exist')
        if self.mode not in ('global', 'local'): raise ConfigError(f'Unknown alignment mode {self.mode!r}')
        if self.aa_matrix.upper() not in ScoreMatrix.NAMES:
            raise ConfigError(f'Unknown matrix {self.aa_matrix!r}, expected one of {", ".join(ScoreMatrix.NAMES)}')
        if self.nt_weight < 0 or self.aa_weight < 0: raise ConfigError('Score weights must not be negative')

    def nt_scorer(self) -> SimpleScorer:
        return SimpleScorer.nucleotide(self.nt_match, self.nt_mismatch, self.nt_gap_open, self.nt_gap_extend)

    def aa_scorer(self) -> SimpleScorer:
        return SimpleScorer.amino_acid(self.aa_matrix, self.aa_gap_open, self.aa_gap_extend, self.aa_frameshift,
                                       self.aa_misalign)

    def scorer(self) -> GenomeScorer:
        return GenomeScorer(self.nt_scorer(), self.aa_scorer(), self.nt_weight, self.aa_weight)


# Functions ------------------------------------------------------------------------------------------------------------
def build_parser() -> ArgumentParser:
    parser = _ArgumentParser(
        prog='codalign', description='Align nucleotide queries to a reference genome, scoring codons in coding regions'
    )
    parser.add_argument('reference', type=Path, help='GenBank file, or FASTA file with a sibling .cds file')
    parser.add_argument('query', type=Path, help='FASTA file of nucleotide queries')
    parser.add_argument('alignment_output', type=Path, metavar='alignment-output',
                        help='FASTA output of the gapped reference/query pairs')
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--global', dest='mode', action='store_const', const='global', help='global alignment')
    mode.add_argument('--local', dest='mode', action='store_const', const='local', help='local alignment')

    nt = parser.add_argument_group('nucleotide scoring')
    nt.add_argument('--nt-weight', type=int, default=1, help='weight of the nucleotide score (default: %(default)s)')
    nt.add_argument('--nt-gap-open', type=int, default=-10, help='gap open cost (default: %(default)s)')
    nt.add_argument('--nt-gap-extend', type=int, default=-1, help='gap extend cost (default: %(default)s)')
    nt.add_argument('--nt-match', type=int, default=2, help='match score (default: %(default)s)')
    nt.add_argument('--nt-mismatch', type=int, default=-2, help='mismatch score (default: %(default)s)')

    aa = parser.add_argument_group('amino acid scoring')
    aa.add_argument('--aa-weight', type=int, default=1, help='weight of the amino acid score (default: %(default)s)')
    aa.add_argument('--aa-gap-open', type=int, default=-6, help='gap open cost (default: %(default)s)')
    aa.add_argument('--aa-gap-extend', type=int, default=-2, help='gap extend cost (default: %(default)s)')
    aa.add_argument('--aa-matrix', default='BLOSUM30', type=str.upper, choices=ScoreMatrix.NAMES,
                    help='substitution matrix (default: %(default)s)')
    aa.add_argument('--aa-frameshift', type=int, default=-100, help='frameshift cost (default: %(default)s)')
    aa.add_argument('--aa-misalign', type=int, default=-20, help='misaligned codon cost (default: %(default)s)')

    out = parser.add_argument_group('outputs')
    out.add_argument('--cds-aa-alignments', type=Path, help='FASTA output of the CDS amino acid alignments')
    out.add_argument('--cds-nt-alignments', type=Path, help='FASTA output of the CDS nucleotide alignments')
    out.add_argument('--protein-aa-alignments', type=Path, help='FASTA output of the protein amino acid alignments')
    out.add_argument('--protein-nt-alignments', type=Path, help='FASTA output of the protein nucleotide alignments')

    other = parser.add_argument_group('other options')
    other.add_argument('--seed', type=int, help='seed for resolving ambiguity codes in the queries')
    other.add_argument('-v', '--verbose', action='count', default=0, help='more logging')
    other.add_argument('-q', '--quiet', action='count', default=0, help='less logging')
    other.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def read_queries(path: Path) -> list[Seq]:
    """Reads all queries, resolving ambiguity codes and removing gaps."""
    queries = []
    with FastaReader.from_path(path) as reader:
        for query in reader:
            if resolved := query.resolve_ambiguities(): logger.debug('%s: resolved %d ambiguity codes', query.name, resolved)
            query.remove_gaps()
            queries.append(query)
    return queries


def combined_score(nt_stats: AlignmentStats, cds_stats: Iterable[AlignmentStats]) -> tuple[int, int, int]:
    """
    Sums the unweighted statistics scores of one query: the nucleotide alignment and every CDS alignment.

    Protein products are left out, they lie inside the CDS and would be counted twice.

    Returns:
        ``(nt_score, aa_score, nt_score + aa_score)``
    """
    aa_score = sum(s.score for s in cds_stats)
    return nt_stats.score, aa_score, nt_stats.score + aa_score


def report(config: AlignConfig, genome: Genome, proteins: list[CdsFeature], query: Seq, solution: Solution,
           writers: dict) -> None:
    """Writes the alignment of one query and logs its statistics."""
    ref_aln, query_aln = solution.cigar.align(genome.seq, query)
    writers['alignment_output'].write(ref_aln, query_aln)
    nt_stats = calc_stats(ref_aln, query_aln, config.nt_scorer())
    logger.info('%s: score %d, NT %s', query.name, solution.score, nt_stats)
    aa_scorer = config.aa_scorer()
    cds_stats = []
    for kind, features in (('cds', genome.cds_features), ('protein', proteins)):
        for aln in get_cds_alignments(genome, features, query, solution.cigar):
            stats = calc_stats(aln.ref, aln.query, aa_scorer, aln.frameshifts)
            logger.info('%s %s: %s', query.name, aln.ref.name, stats)
            if kind == 'cds': cds_stats.append(stats)
            if w := writers.get(f'{kind}_aa_alignments'): w.write(aln.ref, aln.query)
            if w := writers.get(f'{kind}_nt_alignments'): w.write(aln.ref_nt, aln.query_nt)
    nt_score, aa_score, total = combined_score(nt_stats, cds_stats)
    logger.info('Alignment score: NT (%d) + AA (%d) = %d', nt_score, aa_score, total)


def run(config: AlignConfig) -> int:
    """Aligns every query of the configuration and writes the outputs."""
    if config.seed is not None: RESOURCES.seed(config.seed)
    genome, proteins = read_reference(config.reference)
    for f in genome.cds_features:
        logger.info('CDS %s: %s (%s)', f.name, ','.join(f'{s + 1}..{e}' for s, e in f.ranges), '+-'[f.strand < 0])
    scorer = config.scorer()
    genome.preprocess(*scorer.weights)
    queries = read_queries(config.query)
    if not queries: logger.warning('No queries in %s', config.query)
    aligner = Aligner(scorer, config.mode)
    solutions = iter(aligner.align_many(genome, [q for q in queries if len(q)]))
    outputs = ('alignment_output', 'cds_aa_alignments', 'cds_nt_alignments', 'protein_aa_alignments',
               'protein_nt_alignments')
    with ExitStack() as stack:
        writers = {k: stack.enter_context(FastaWriter(p)) for k in outputs if (p := getattr(config, k)) is not None}
        for query in queries:
            solution = next(solutions) if len(query) else Solution.unaligned(len(genome))
            report(config, genome, proteins, query, solution, writers)
    return 0


def main(argv: list[str] = None) -> int:
    """
    Entry point.

    Returns:
        0 on success, 1 on invalid arguments, configuration or input errors.
    """
    args: Namespace = build_parser().parse_args(argv)
    configure_logging(args.verbose - args.quiet)
    try: return run(AlignConfig.from_args(args))
    except ConfigError as e:
        logger.error('Invalid configuration: %s', e)
        return 1
    except CodalignError as e:
        logger.error('%s', e)
        return 1


if __name__ == '__main__':
    sys.exit(main())

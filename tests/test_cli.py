import pytest
from codalign.cli import AlignConfig, build_parser, combined_score, main
from codalign.engines.genome_scorer import GenomeScorer
from codalign.engines.stats import AlignmentStats
from codalign.utils import ConfigError

GENBANK = b"""LOCUS       TEST                      24 bp    DNA     linear   UNK 01-JAN-2000
DEFINITION  Test record.
FEATURES             Location/Qualifiers
     CDS             3..11
                     /gene="fwd"
     CDS             complement(14..22)
                     /gene="rev"
     mat_peptide     3..8
                     /product="pep"
ORIGIN
        1 ggatgaaata aggctagggc atcc
//
"""


@pytest.fixture
def inputs(tmp_path):
    ref = tmp_path / 'ref.gb'
    ref.write_bytes(GENBANK)
    query = tmp_path / 'queries.fasta'
    query.write_bytes(b'>q1\nGGATGAAATAAGGCTAGGGCATCC\n>q2 ambiguous\nGGATGNAATAAGG\n>empty\n\n')
    return ref, query, tmp_path / 'aligned.fasta'


def read_records(path):
    lines = path.read_text().splitlines()
    return list(zip(lines[::2], lines[1::2]))


class TestParser:
    def test_defaults(self, inputs):
        ref, query, out = inputs
        args = build_parser().parse_args([str(ref), str(query), str(out), '--global'])
        config = AlignConfig.from_args(args)
        assert config.mode == 'global'
        assert (config.nt_match, config.nt_mismatch, config.nt_gap_open, config.nt_gap_extend) == (2, -2, -10, -1)
        assert (config.aa_matrix, config.aa_gap_open, config.aa_gap_extend) == ('BLOSUM30', -6, -2)
        assert (config.aa_frameshift, config.aa_misalign) == (-100, -20)
        assert config.cds_aa_alignments is None
        assert isinstance(config.scorer(), GenomeScorer)

    def test_matrix_is_case_insensitive(self, inputs):
        ref, query, out = inputs
        args = build_parser().parse_args([str(ref), str(query), str(out), '--local', '--aa-matrix', 'blosum62'])
        assert AlignConfig.from_args(args).aa_matrix == 'BLOSUM62'

    def test_mode_is_required(self, inputs):
        ref, query, out = inputs
        with pytest.raises(SystemExit) as e:
            build_parser().parse_args([str(ref), str(query), str(out)])
        assert e.value.code == 1

    def test_modes_are_exclusive(self, inputs):
        ref, query, out = inputs
        with pytest.raises(SystemExit) as e:
            build_parser().parse_args([str(ref), str(query), str(out), '--global', '--local'])
        assert e.value.code == 1

    def test_unknown_matrix(self, inputs):
        ref, query, out = inputs
        with pytest.raises(SystemExit) as e:
            main([str(ref), str(query), str(out), '--global', '--aa-matrix', 'PAM250'])
        assert e.value.code == 1


class TestConfig:
    def test_missing_files(self, tmp_path):
        with pytest.raises(ConfigError, match="reference file"):
            AlignConfig(tmp_path / 'ref.gb', tmp_path / 'q.fasta', tmp_path / 'out.fasta')

    def test_negative_weight(self, inputs):
        ref, query, out = inputs
        with pytest.raises(ConfigError, match="weights"):
            AlignConfig(ref, query, out, nt_weight=-1)

    def test_unknown_mode(self, inputs):
        ref, query, out = inputs
        with pytest.raises(ConfigError, match="mode"):
            AlignConfig(ref, query, out, mode='semiglobal')


class TestMain:
    def test_missing_reference(self, tmp_path, inputs):
        _, query, out = inputs
        assert main([str(tmp_path / 'missing.gb'), str(query), str(out), '--global']) == 1

    def test_invalid_reference(self, tmp_path, inputs):
        _, query, out = inputs
        ref = tmp_path / 'bad.gb'
        ref.write_bytes(b'not a genbank file\n')
        assert main([str(ref), str(query), str(out), '--global', '-q']) == 1

    def test_global_run(self, inputs):
        ref, query, out = inputs
        cds_aa, protein_nt = out.with_name('cds.faa'), out.with_name('protein.fna')
        assert main([str(ref), str(query), str(out), '--global', '--seed', '1',
                     '--cds-aa-alignments', str(cds_aa), '--protein-nt-alignments', str(protein_nt)]) == 0
        records = read_records(out)
        # Reference then query, for every query including the empty one
        assert [r[0] for r in records] == ['>TEST Test record.', '>q1', '>TEST Test record.', '>q2 ambiguous',
                                           '>TEST Test record.', '>empty']
        assert records[1][1] == 'GGATGAAATAAGGCTAGGGCATCC'
        assert len(records[3][1]) == len(records[2][1]) == 24
        assert records[5][1] == '?' * 24
        cds = read_records(cds_aa)
        assert cds[:4] == [('>fwd', 'MK*'), ('>q1 fwd', 'MK*'), ('>rev', 'MP*'), ('>q1 rev', 'MP*')]
        assert read_records(protein_nt)[:2] == [('>pep', 'ATGAAA'), ('>q1 pep', 'ATGAAA')]

    def test_local_run(self, inputs):
        ref, query, out = inputs
        assert main([str(ref), str(query), str(out), '--local', '--nt-weight', '2', '--aa-matrix', 'BLOSUM62']) == 0
        records = read_records(out)
        assert records[1] == ('>q1', 'GGATGAAATAAGGCTAGGGCATCC')

    def test_seed_is_reproducible(self, inputs):
        ref, query, out = inputs
        first = out.with_name('first.fasta')
        assert main([str(ref), str(query), str(first), '--global', '--seed', '7']) == 0
        assert main([str(ref), str(query), str(out), '--global', '--seed', '7']) == 0
        assert first.read_text() == out.read_text()


class TestCombinedScore:
    def test_sums_unweighted_scores(self):
        nt_stats = AlignmentStats(score=48)
        cds_stats = [AlignmentStats(score=11), AlignmentStats(score=-3)]
        assert combined_score(nt_stats, cds_stats) == (48, 8, 56)

    def test_without_cds(self):
        assert combined_score(AlignmentStats(score=5), []) == (5, 0, 5)

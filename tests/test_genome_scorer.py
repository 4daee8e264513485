import pytest
from codalign.core.alphabet import Alphabet, GeneticCode
from codalign.containers.genome import Genome, CdsFeature, GenomeError
from codalign.engines.genome_scorer import GenomeScorer
from codalign.engines.scoring import SimpleScorer, ScoringError


@pytest.fixture
def scorer():
    return GenomeScorer(SimpleScorer.nucleotide(), SimpleScorer.amino_acid(), nt_weight=1, aa_weight=1)


@pytest.fixture
def genome(scorer):
    # ATG AAA TAA flanked by two intergenic nucleotides on each side
    g = Genome(Alphabet.NT.seq_from('GGATGAAATAAGG', name='ref'), [CdsFeature('orf', ((2, 11),))])
    return g.preprocess(*scorer.weights)


@pytest.fixture
def query():
    return Alphabet.NT.seq_from('GGATGAAATAAGG', name='q')


class TestGenomeScorerInit:
    def test_weights(self, scorer):
        assert scorer.weights == (1, 1)

    def test_wrong_alphabets(self):
        aa = SimpleScorer.amino_acid()
        with pytest.raises(ScoringError, match="nucleotide scorer"):
            GenomeScorer(aa, aa)
        nt = SimpleScorer.nucleotide()
        with pytest.raises(ScoringError, match="amino acid scorer"):
            GenomeScorer(nt, nt)

    def test_negative_weight(self):
        with pytest.raises(ScoringError, match="negative"):
            GenomeScorer(SimpleScorer.nucleotide(), SimpleScorer.amino_acid(), nt_weight=-1)


class TestGenomeScorerPositional:
    def test_match_outside_codon_end(self, scorer, genome, query):
        assert scorer.score_match(genome, query, 0, 0) == 2
        assert scorer.score_match(genome, query, 3, 3) == 2

    def test_match_at_codon_end(self, scorer, genome, query):
        m = Alphabet.AMINO.encode(b'M')[0]
        # Nucleotide match plus the amino acid score of ATG against ATG
        assert scorer.score_match(genome, query, 4, 4) == 2 + scorer.aa.score_extend(m, m)

    def test_aa_weight(self, genome, query):
        scorer = GenomeScorer(SimpleScorer.nucleotide(), SimpleScorer.amino_acid(), nt_weight=3, aa_weight=2)
        genome.preprocess(*scorer.weights)
        k = Alphabet.AMINO.encode(b'K')[0]
        assert scorer.score_match(genome, query, 7, 7) == 3 * 2 + 2 * scorer.aa.score_extend(k, k)

    def test_misaligned_codon(self, scorer, genome):
        # ATN is ambiguous between isoleucine and methionine
        query = Alphabet.NT.seq_from('GGATNAAATAAGG')
        assert scorer.score_match(genome, query, 4, 4) == -2 + scorer.aa.misalignment

    def test_ref_gap_costs(self, scorer, genome, query):
        assert scorer.score_open_ref_gap(genome, query, 0, 1) == -10
        assert scorer.score_open_ref_gap(genome, query, 4, 5) == -10 - 6
        assert scorer.score_extend_ref_gap(genome, query, 4, 6, 2) == -1
        assert scorer.score_extend_ref_gap(genome, query, 4, 8, 4) == -1 - 2
        # Past the end of the reference, insertions are free
        assert scorer.score_open_ref_gap(genome, query, 12, 5) == 0

    def test_query_gap_costs(self, scorer, genome, query):
        assert scorer.score_open_query_gap(genome, query, 0, 0) == -10
        assert scorer.score_open_query_gap(genome, query, 5, 4) == -10 - 6
        assert scorer.score_extend_query_gap(genome, query, 6, 4, 3) == -1
        assert scorer.score_extend_query_gap(genome, query, 8, 4, 4) == -1 - 2
        assert scorer.score_open_query_gap(genome, query, 5, len(query) - 1) == 0

    def test_frameshift(self, scorer, genome, query):
        assert scorer.score_frameshift(genome, query, 5) == -100
        assert scorer.score_frameshift(genome, query, 2) == 0
        assert scorer.score_frameshift(genome, query, 11) == 0


class TestGenomeScorerTables:
    def test_tables_match_positional_costs(self, scorer, genome, query):
        t = scorer.tables(genome, query)
        n = len(genome)
        for p in range(n):
            assert t.del_open[p] == scorer.score_open_query_gap(genome, query, p, 0)
            assert t.del_codon[p] == scorer.score_extend_query_gap(genome, query, p, 0, 4)
            assert t.del_extend[p] == scorer.score_extend_query_gap(genome, query, p, 0, 2)
            assert t.close[p] == scorer.score_frameshift(genome, query, p)
        for i in range(n):
            assert t.ins_open[i] == scorer.score_open_ref_gap(genome, query, i - 1, 0)
            assert t.ins_codon[i] == scorer.score_extend_ref_gap(genome, query, i - 1, 0, 4)
            assert t.ins_extend[i] == scorer.score_extend_ref_gap(genome, query, i - 1, 0, 2)

    def test_codon_tables(self, scorer, genome, query):
        t = scorer.tables(genome, query)
        assert t.codon_ref[4] == Alphabet.AMINO.encode(b'M')[0]
        assert t.query_fwd[4] == Alphabet.AMINO.encode(b'M')[0]
        assert t.misaligned == Alphabet.AMINO.misaligned
        assert t.misalign_cost == scorer.aa.misalignment

    def test_requires_preprocessing(self, scorer, query):
        genome = Genome(Alphabet.NT.seq_from('GGATGAAATAAGG'), [CdsFeature('orf', ((2, 11),))])
        with pytest.raises(GenomeError, match="preprocessed"):
            scorer.tables(genome, query)
        genome.preprocess(2, 1)
        with pytest.raises(GenomeError, match="expected"):
            scorer.tables(genome, query)


class TestSplicedCodons:
    @pytest.fixture
    def spliced(self, scorer):
        # ATG A|CCCCCC|AA TAA: the second codon is split by the intron
        g = Genome(Alphabet.NT.seq_from('ATGACCCCCCAATAA', name='ref'), [CdsFeature('orf', ((0, 4), (10, 15)))])
        return g.preprocess(*scorer.weights)

    def test_split_codon_reads_exon_bases(self, scorer, spliced):
        k = Alphabet.AMINO.encode(b'K')[0]
        # The intron differs in the query and does not take part in the codon
        query = Alphabet.NT.seq_from('ATGAGGGGGGAATAA')
        assert scorer.score_match(spliced, query, 11, 11) == 2 + scorer.aa.score_extend(k, k)

    def test_split_codon_before_query_start(self, scorer, spliced):
        query = Alphabet.NT.seq_from('AATAA')
        assert scorer.score_match(spliced, query, 11, 1) == 2

    def test_reverse_strand_split_codon(self, scorer):
        # Reverse complement of the spliced forward gene, the middle codon spans positions 11, 4 and 3
        ref = Alphabet.NT.seq_from('TTATTGGGGGGTCAT', name='ref')
        genome = Genome(ref, [CdsFeature('orf', ((0, 5), (11, 15)), strand=-1)]).preprocess(*scorer.weights)
        k = Alphabet.AMINO.encode(b'K')[0]
        assert scorer.score_match(genome, ref, 11, 11) == 2 + scorer.aa.score_extend(k, k)

    def test_tables_carry_codon_offsets(self, scorer, spliced):
        t = scorer.tables(spliced, Alphabet.NT.seq_from('ATGACCCCCCAATAA'))
        assert tuple(t.codon_span[11]) == (8, 1)
        assert tuple(t.codon_span[2]) == (2, 1)
        assert t.codon_table is GeneticCode.STANDARD.table

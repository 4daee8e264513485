import numpy as np
import pytest
from codalign.core.alphabet import Alphabet
from codalign.containers.genome import Genome, CdsFeature, GenomeError


@pytest.fixture
def genome():
    # CDS on both strands: ATG AAA TAA forward, then the reverse complement of ATG CCC TAG
    seq = Alphabet.NT.seq_from('GGATGAAATAAGGCTAGGGCATCC', name='ref')
    return Genome(seq, [CdsFeature('fwd', ((2, 11),)), CdsFeature('rev', ((13, 22),), strand=-1)])


class TestCdsFeature:
    def test_properties(self):
        f = CdsFeature('spliced', ((0, 4), (10, 15)))
        assert (f.start, f.end, f.length) == (0, 15, 9)
        assert 3 in f and 5 not in f and 12 in f
        np.testing.assert_array_equal(f.positions(), [0, 1, 2, 3, 10, 11, 12, 13, 14])

    def test_reverse_transcript_order(self):
        f = CdsFeature('r', ((0, 3), (5, 8)), strand=-1)
        np.testing.assert_array_equal(f.transcript_positions(), [7, 6, 5, 2, 1, 0])
        np.testing.assert_array_equal(f.codons(), [[7, 6, 5], [2, 1, 0]])

    def test_codons_with_frame(self):
        f = CdsFeature('f', ((0, 8),), frame=1)
        np.testing.assert_array_equal(f.codons(), [[1, 2, 3], [4, 5, 6]])

    @pytest.mark.parametrize("kwargs, message", [
        (dict(ranges=()), "no ranges"),
        (dict(ranges=((0, 3),), frame=3), "invalid frame"),
        (dict(ranges=((0, 3),), strand=0), "invalid strand"),
        (dict(ranges=((5, 9), (0, 3))), "ascending"),
        (dict(ranges=((0, 5), (3, 9))), "ascending"),
        (dict(ranges=((3, 3),)), "ascending"),
    ])
    def test_invalid(self, kwargs, message):
        with pytest.raises(GenomeError, match=message):
            CdsFeature('bad', **kwargs)

    def test_translate(self, genome):
        fwd, rev = genome.cds_features
        assert str(fwd.translate(genome.seq)) == 'MK*'
        assert str(rev.translate(genome.seq)) == 'MP*'
        assert fwd.translate(genome.seq).name == 'fwd'

    def test_translate_spliced(self):
        ref = Alphabet.NT.seq_from('ATGCCCCAAATAA')
        # The intron CCCC is spliced out
        f = CdsFeature('spliced', ((0, 3), (7, 13)))
        assert str(f.translate(ref)) == 'MK*'


class TestGenome:
    def test_properties(self, genome):
        assert len(genome) == 24
        assert genome.name == 'ref'
        assert len(genome.cds_features) == 2
        assert genome.weights is None

    def test_requires_nucleotides(self):
        with pytest.raises(GenomeError, match="nucleotide"):
            Genome(Alphabet.AMINO.seq_from('MKV'))

    def test_feature_out_of_bounds(self):
        with pytest.raises(GenomeError, match="beyond"):
            Genome(Alphabet.NT.seq_from('ATGAAA'), [CdsFeature('long', ((0, 9),))])

    def test_overlapping_features(self):
        seq = Alphabet.NT.seq_from('A' * 30)
        with pytest.raises(GenomeError, match="overlap"):
            Genome(seq, [CdsFeature('a', ((0, 12),)), CdsFeature('b', ((9, 21),))])

    def test_tables_before_preprocess(self, genome):
        with pytest.raises(GenomeError, match="not been preprocessed"):
            genome.tables


class TestGenomePreprocess:
    def test_tables(self, genome):
        t = genome.preprocess(1, 2).tables
        assert genome.weights == (1, 2)
        assert (t.cds_index[2:11] == 0).all() and (t.cds_index[13:22] == 1).all()
        assert t.cds_index[0] == -1 and t.cds_index[12] == -1
        np.testing.assert_array_equal(t.aa_weight[:3], [0, 0, 2])
        # Forward codons complete at their last reference position
        assert Alphabet.AMINO.decode(t.codon_aa[[4, 7, 10]].astype(np.uint8)) == b'MK*'
        assert (t.codon_strand[[4, 7, 10]] == 1).all()
        # Reverse codons complete at their highest reference position
        assert Alphabet.AMINO.decode(t.codon_aa[[21, 18, 15]].astype(np.uint8)) == b'MP*'
        assert (t.codon_strand[[21, 18, 15]] == -1).all()
        assert t.codon_aa[3] == -1
        assert tuple(t.codon_span[4]) == (2, 1) and tuple(t.codon_span[21]) == (2, 1)

    def test_interior_boundaries(self, genome):
        interior = genome.preprocess(1, 1).tables.interior
        assert len(interior) == len(genome) + 1
        assert not interior[2] and interior[3] and interior[10] and not interior[11]
        assert not interior[0] and not interior[len(genome)]

    def test_idempotent(self, genome):
        t = genome.preprocess(1, 1).tables
        assert genome.preprocess(1, 1).tables is t
        assert genome.preprocess(1, 3).tables is not t

    def test_require(self, genome):
        with pytest.raises(GenomeError, match="preprocessed"):
            genome.require(1, 1)
        genome.preprocess(1, 1)
        genome.require(1, 1)
        with pytest.raises(GenomeError, match="expected"):
            genome.require(2, 1)

    def test_tables_read_only(self, genome):
        t = genome.preprocess(1, 1).tables
        with pytest.raises(ValueError):
            t.codon_aa[0] = 1

    def test_spliced_codon_offsets(self):
        seq = Alphabet.NT.seq_from('ATGACCCCCCAATAA')
        t = Genome(seq, [CdsFeature('orf', ((0, 4), (10, 15)))]).preprocess(1, 1).tables
        assert Alphabet.AMINO.decode(t.codon_aa[[2, 11, 14]].astype(np.uint8)) == b'MK*'
        # The K codon spans positions 3, 10 and 11
        assert tuple(t.codon_span[11]) == (8, 1)
        assert t.codon_aa[10] == -1

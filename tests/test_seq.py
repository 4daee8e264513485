import numpy as np
import pytest
from codalign.core.alphabet import Alphabet, AlphabetError
from codalign.core.frames import SixFrameView, NO_CODON


class TestSeq:
    def test_basic_properties(self):
        s = Alphabet.NT.seq_from('ACGT', name='s1', description='test sequence')
        assert len(s) == 4
        assert str(s) == 'ACGT'
        assert bytes(s) == b'ACGT'
        assert s.name == 's1'
        assert s.description == 'test sequence'
        assert s[2] == 2

    def test_slice_keeps_metadata(self):
        s = Alphabet.NT.seq_from('ACGTACGT', name='s1')
        sub = s[2:5]
        assert str(sub) == 'GTA'
        assert sub.name == 's1'
        sub.encoded[0] = 0
        assert str(s) == 'ACGTACGT'

    def test_equality(self):
        a = Alphabet.NT.seq_from('ACGT', name='a')
        assert a == Alphabet.NT.seq_from('ACGT', name='b')
        assert a != Alphabet.NT.seq_from('ACGA')
        assert a != 'ACGT'
        with pytest.raises(TypeError):
            hash(a)

    def test_repr_truncates(self):
        s = Alphabet.NT.seq_from('A' * 10 + 'C' * 10, name='long')
        assert repr(s) == "Seq('long', AAAAAAA...CCCCCCC)"

    def test_copy(self):
        s = Alphabet.NT.seq_from('ACGT', name='s1')
        c = s.copy('s2')
        assert c == s
        assert c.name == 's2'
        c.encoded[0] = 3
        assert str(s) == 'ACGT'


class TestSeqEditing:
    def test_remove_gaps(self):
        s = Alphabet.NT.seq_from('AC-G?N-')
        assert not s.is_gap_free()
        s.remove_gaps()
        assert str(s) == 'ACGN'
        assert s.is_gap_free()

    def test_resolve_ambiguities(self):
        s = Alphabet.NT.seq_from('ANRAY')
        resolved = s.resolve_ambiguities(np.random.default_rng(42))
        assert resolved == 3
        text = str(s)
        assert text[0] == 'A' and text[3] == 'A'
        assert text[1] in 'ACGT'
        assert text[2] in 'AG'
        assert text[4] in 'CT'
        assert not Alphabet.NT.ambiguous[s.encoded].any()

    def test_resolve_ambiguities_is_seeded(self):
        a, b = Alphabet.NT.seq_from('N' * 50), Alphabet.NT.seq_from('N' * 50)
        a.resolve_ambiguities(np.random.default_rng(7))
        b.resolve_ambiguities(np.random.default_rng(7))
        assert a == b

    def test_resolve_nothing(self):
        s = Alphabet.NT.seq_from('ACGT')
        assert s.resolve_ambiguities() == 0
        assert str(s) == 'ACGT'

    def test_reverse_complement(self):
        s = Alphabet.NT.seq_from('AACGN-', name='s1')
        rc = s.reverse_complement()
        assert str(rc) == '-NCGTT'
        assert rc.name == 's1'


class TestSixFrameView:
    def test_forward_codons(self):
        view = SixFrameView(Alphabet.NT.seq_from('ATGAAA'))
        assert len(view) == 6
        assert view.forward[0] == NO_CODON and view.forward[1] == NO_CODON
        assert Alphabet.AMINO.decode(view.forward[[2, 5]].astype(np.uint8)) == b'MK'
        # Every position from the third on ends a codon in some frame
        assert Alphabet.AMINO.decode(view.forward[2:].astype(np.uint8)) == b'M*EK'

    def test_reverse_codons(self):
        view = SixFrameView(Alphabet.NT.seq_from('ATGAAA'))
        # ATG read on the reverse strand is CAT
        assert view.aa_at(2, -1) == Alphabet.AMINO.encode(b'H')[0]
        assert view.aa_at(5, -1) == Alphabet.AMINO.encode(b'F')[0]
        assert view.aa_at(2) == Alphabet.AMINO.encode(b'M')[0]

    def test_codon_from_separate_positions(self):
        view = SixFrameView(Alphabet.NT.seq_from('ATCCCGAAA'))
        # A T | CCC | G at positions 0, 1 and 5 read as ATG, and as CAT on the reverse strand
        assert view.aa_of(0, 1, 5) == Alphabet.AMINO.encode(b'M')[0]
        assert view.aa_of(0, 1, 5, -1) == Alphabet.AMINO.encode(b'H')[0]
        assert view.aa_of(6, 7, 8) == view.aa_at(8)
        assert view.aa_of(-1, 0, 1) == NO_CODON

    def test_translation(self):
        view = SixFrameView(Alphabet.NT.seq_from('ATGAAA'))
        assert str(view.translation()) == 'MK'
        assert str(view.translation(0, -1)) == 'FH'
        assert str(view.translation(1)) == '*'

    def test_short_sequence(self):
        view = SixFrameView(Alphabet.NT.seq_from('AT'))
        assert (view.forward == NO_CODON).all()
        assert (view.reverse == NO_CODON).all()

    def test_read_only(self):
        view = SixFrameView(Alphabet.NT.seq_from('ATGAAA'))
        with pytest.raises(ValueError):
            view.forward[2] = 0

    def test_requires_gap_free_nucleotides(self):
        with pytest.raises(AlphabetError, match="gap-free"):
            SixFrameView(Alphabet.NT.seq_from('ATG-AA'))
        with pytest.raises(AlphabetError, match="nucleotide"):
            SixFrameView(Alphabet.AMINO.seq_from('MKV'))

import gzip
from io import BytesIO

import pytest
from codalign.core.alphabet import Alphabet
from codalign.containers.genome import CdsFeature
from codalign.io import SeqIOError, ParserError, FeatureWarning, select_features, make_feature
from codalign.io.cds import read_cds_file
from codalign.io.genbank import GenbankReader, parse_location, genome_from_genbank, proteins_from_genbank
from codalign.io.reference import read_reference
from codalign.io.seq import FastaReader, FastaWriter

GENBANK = b"""LOCUS       TEST                      24 bp    DNA     linear   UNK 01-JAN-2000
DEFINITION  Test record.
FEATURES             Location/Qualifiers
     source          1..24
                     /organism="test"
     CDS             3..11
                     /gene="fwd"
                     /codon_start=1
                     /translation="MK"
     CDS             complement(14..22)
                     /locus_tag="rev"
     CDS             J00194.1:100..202
                     /gene="remote"
     mat_peptide     3..8
                     /product="peptide
                     one"
ORIGIN
        1 ggatgaaata aggctagggc atcc
//
"""

CDS_FILE = """# name\tlocation\tkind
fwd\t3..11
rev\tcomplement(14..22)\tCDS

pep\t3..8\tprotein
"""


class TestFastaReader:
    def test_records(self):
        handle = BytesIO(b'>q1 first query\nACGT\nac\n>q2\nGGNN\n')
        seqs = list(FastaReader(handle))
        assert [s.name for s in seqs] == ['q1', 'q2']
        assert str(seqs[0]) == 'ACGTAC'
        assert seqs[0].description == 'first query'
        assert str(seqs[1]) == 'GGNN'

    def test_min_length(self):
        handle = BytesIO(b'>short\nAC\n>long\nACGTACGT\n')
        assert [s.name for s in FastaReader(handle, min_seq_length=4)] == ['long']

    def test_header_at_end_of_file(self):
        seqs = list(FastaReader(BytesIO(b'>q1\nACGT\n>empty')))
        assert [s.name for s in seqs] == ['q1', 'empty']
        assert len(seqs[1]) == 0

    def test_amino_acids(self):
        [s] = FastaReader(BytesIO(b'>p\nMKV*\n'), alphabet=Alphabet.AMINO)
        assert s.alphabet == Alphabet.AMINO
        assert str(s) == 'MKV*'

    def test_from_path_gzip(self, tmp_path):
        path = tmp_path / 'q.fasta.gz'
        with gzip.open(path, 'wb') as f: f.write(b'>q1\nACGT\n')
        with FastaReader.from_path(path) as reader:
            assert [str(s) for s in reader] == ['ACGT']

    def test_missing_file(self, tmp_path):
        with pytest.raises(SeqIOError, match="Cannot open"):
            FastaReader.from_path(tmp_path / 'missing.fasta')


class TestFastaWriter:
    def test_write(self):
        handle = BytesIO()
        with FastaWriter(handle) as w:
            w.write(Alphabet.NT.seq_from('ACGT', 'a', 'desc'), [Alphabet.NT.seq_from('AC-?', 'b')])
        assert handle.getvalue() == b'>a desc\nACGT\n>b\nAC-?\n'

    def test_wrap(self):
        handle = BytesIO()
        with FastaWriter(handle, width=3) as w:
            w.write(Alphabet.NT.seq_from('ACGTACGT', 'a'))
        assert handle.getvalue() == b'>a\nACG\nTAC\nGT\n'

    def test_write_path(self, tmp_path):
        path = tmp_path / 'out.fasta'
        with FastaWriter(path) as w:
            w.write(Alphabet.AMINO.seq_from('MK*', 'p'))
        assert path.read_bytes() == b'>p\nMK*\n'

    def test_rejects_other_objects(self):
        with FastaWriter(BytesIO()) as w:
            with pytest.raises(TypeError):
                w.write('ACGT')


class TestParseLocation:
    @pytest.mark.parametrize("text, ranges, strand", [
        (b'3..11', [(2, 11)], 1),
        (b'complement(14..22)', [(13, 22)], -1),
        (b'join(1..3,7..9)', [(0, 3), (6, 9)], 1),
        (b'complement(join(7..9,1..3))', [(0, 3), (6, 9)], -1),
        (b'<1..>10', [(0, 10)], 1),
        (b'5', [(4, 5)], 1),
        ('order(1..3, 5..6)', [(0, 3), (4, 6)], 1),
    ])
    def test_valid(self, text, ranges, strand):
        assert parse_location(text) == (ranges, strand)

    @pytest.mark.parametrize("text, message", [
        (b'J00194.1:100..202', "Unsupported"),
        (b'10..5', "Invalid interval"),
        (b'0..5', "Invalid interval"),
        (b'', "Empty"),
    ])
    def test_invalid(self, text, message):
        with pytest.raises(ParserError, match=message):
            parse_location(text)


class TestGenbankReader:
    def test_record(self):
        with pytest.warns(FeatureWarning, match="J00194"):
            [record] = GenbankReader(BytesIO(GENBANK))
        assert record.name == 'TEST'
        assert record.description == 'Test record.'
        assert str(record.seq) == 'GGATGAAATAAGGCTAGGGCATCC'
        assert [f.kind for f in record.features] == [b'CDS', b'CDS', b'mat_peptide']
        assert record.features[1].strand == -1
        assert record.features[2].qualifiers[b'product'] == b'peptide one'

    def test_multiple_records(self):
        data = GENBANK.replace(b'J00194.1:100..202', b'1..3') * 2
        assert len(list(GenbankReader(BytesIO(data)))) == 2

    def test_not_genbank(self):
        with pytest.raises(ParserError, match="LOCUS"):
            list(GenbankReader(BytesIO(b'>q1\nACGT\n//\n')))

    def test_genome(self):
        with pytest.warns(FeatureWarning):
            [record] = GenbankReader(BytesIO(GENBANK))
        genome = genome_from_genbank(record)
        assert genome.name == 'TEST'
        fwd, rev = genome.cds_features
        assert (fwd.name, fwd.ranges, fwd.strand) == ('fwd', ((2, 11),), 1)
        assert str(fwd.aa_seq) == 'MK'  # From /translation
        assert (rev.name, rev.strand) == ('rev', -1)
        assert str(rev.aa_seq) == 'MP*'  # Translated from the reference

    def test_codon_start(self):
        data = GENBANK.replace(b'/codon_start=1', b'/codon_start=2')
        with pytest.warns(FeatureWarning):
            [record] = GenbankReader(BytesIO(data))
        assert genome_from_genbank(record).cds_features[0].frame == 1

    def test_invalid_codon_start(self):
        data = GENBANK.replace(b'/codon_start=1', b'/codon_start=one')
        with pytest.warns(FeatureWarning):
            [record] = GenbankReader(BytesIO(data))
        with pytest.raises(ParserError, match="codon_start"):
            genome_from_genbank(record)

    def test_proteins(self):
        with pytest.warns(FeatureWarning):
            [record] = GenbankReader(BytesIO(GENBANK))
        [pep] = proteins_from_genbank(record)
        assert pep.name == 'peptide one'
        assert pep.ranges == ((2, 8),)
        assert str(pep.aa_seq) == 'MK'


class TestFeatureSelection:
    def test_out_of_bounds(self):
        features = [CdsFeature('a', ((0, 9),)), CdsFeature('b', ((6, 30),))]
        with pytest.warns(FeatureWarning, match="beyond"):
            assert [f.name for f in select_features(features, 20)] == ['a']

    def test_overlap(self):
        features = [CdsFeature('a', ((0, 9),)), CdsFeature('b', ((6, 15),)), CdsFeature('c', ((9, 12),))]
        with pytest.warns(FeatureWarning, match="overlaps a"):
            assert [f.name for f in select_features(features, 20)] == ['a', 'c']
        assert len(select_features(features, 20, exclusive=False)) == 3

    def test_make_feature(self):
        with pytest.warns(FeatureWarning, match="invalid frame"):
            assert make_feature('bad', [(0, 9)], frame=5) is None
        assert make_feature('good', [(0, 9)]).name == 'good'


class TestCdsFile:
    def test_read(self, tmp_path):
        path = tmp_path / 'ref.cds'
        path.write_text(CDS_FILE)
        seq = Alphabet.NT.seq_from('GGATGAAATAAGGCTAGGGCATCC')
        cds, proteins = read_cds_file(path, seq)
        assert [(f.name, f.strand) for f in cds] == [('fwd', 1), ('rev', -1)]
        assert [str(f.aa_seq) for f in cds] == ['MK*', 'MP*']
        assert [f.name for f in proteins] == ['pep']

    @pytest.mark.parametrize("content, message", [
        ('fwd\n', r'ref\.cds:1: expected'),
        ('fwd\t3..11\tgene\n', r'ref\.cds:1: unknown feature kind'),
        ('# header\nfwd\tjoin(a..b)\n', r'ref\.cds:2: Unsupported'),
    ])
    def test_malformed(self, tmp_path, content, message):
        path = tmp_path / 'ref.cds'
        path.write_text(content)
        with pytest.raises(ParserError, match=message):
            read_cds_file(path, Alphabet.NT.seq_from('ACGT' * 10))

    def test_missing(self, tmp_path):
        with pytest.raises(SeqIOError, match="Cannot read"):
            read_cds_file(tmp_path / 'missing.cds', Alphabet.NT.seq_from('ACGT'))


class TestReadReference:
    def test_genbank(self, tmp_path):
        path = tmp_path / 'ref.gb'
        path.write_bytes(GENBANK)
        with pytest.warns(FeatureWarning):
            genome, proteins = read_reference(path)
        assert len(genome) == 24
        assert [f.name for f in genome.cds_features] == ['fwd', 'rev']
        assert [f.name for f in proteins] == ['peptide one']

    def test_fasta_with_cds(self, tmp_path):
        (tmp_path / 'ref.fasta').write_bytes(b'>ref reference genome\nGGATGAAATAAGGCTAGGGCATCC\n')
        (tmp_path / 'ref.cds').write_text(CDS_FILE)
        genome, proteins = read_reference(tmp_path / 'ref.fasta')
        assert genome.name == 'ref'
        assert [f.name for f in genome.cds_features] == ['fwd', 'rev']
        assert [f.name for f in proteins] == ['pep']

    def test_fasta_without_cds_is_not_genbank(self, tmp_path):
        path = tmp_path / 'ref.fasta'
        path.write_bytes(b'>ref\nACGT\n')
        with pytest.raises(ParserError):
            read_reference(path)

    def test_empty(self, tmp_path):
        path = tmp_path / 'ref.gb'
        path.write_bytes(b'')
        with pytest.raises(ParserError, match="no GenBank record"):
            read_reference(path)

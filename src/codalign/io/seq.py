from pathlib import Path
from typing import Union, Generator, BinaryIO, Iterable

from codalign.core.alphabet import Alphabet
from codalign.core.seq import Seq
from codalign.io import BaseReader, BaseWriter


# Classes --------------------------------------------------------------------------------------------------------------
class FastaReader(BaseReader):
    """
    Reader for FASTA format files.

    Symbols outside of the alphabet (including whitespace) are dropped, lowercase is accepted.

    Examples:
        >>> with open("genome.fasta", "rb") as f:
        ...     for seq in FastaReader(f):
        ...         print(seq.name)
    """
    __slots__ = ('_alphabet', '_min_seq_length')
    def __init__(self, handle: BinaryIO, alphabet: Alphabet = None, min_seq_length: int = 0, **kwargs):
        super().__init__(handle, **kwargs)
        self._alphabet = alphabet or Alphabet.NT
        self._min_seq_length = min_seq_length

    def __iter__(self) -> Generator[Seq, None, None]:
        """
        Iterates over FASTA records.

        Yields:
            Named Seq objects.
        """
        for header, seq_parts in self._read_entries():
            yield self._make_seq(header, seq_parts)

    def _read_entries(self):
        """Internal generator that yields (header, seq_parts_list)."""
        read = self._handle.read
        min_len = self._min_seq_length

        buf = b""
        header = None
        seq_parts = []

        while True:
            chunk = read(self._CHUNK_SIZE)
            if not chunk:
                if header is not None:
                    if buf: seq_parts.append(buf)
                    if sum(len(p) for p in seq_parts) >= min_len:
                        yield header, seq_parts
                elif buf.startswith(b'>'):  # Header line without newline at EOF
                    yield buf[1:].rstrip(), []
                break

            buf += chunk
            pos = 0

            while True:
                gt_pos = buf.find(b'>', pos)

                if gt_pos == -1:
                    if header is not None:
                        seq_parts.append(buf[pos:])
                    buf = b""
                    break

                if header is not None:
                    seq_parts.append(buf[pos:gt_pos])
                    if sum(len(p) for p in seq_parts) >= min_len:
                        yield header, seq_parts
                    seq_parts = []
                    header = None

                nl_pos = buf.find(b'\n', gt_pos)
                if nl_pos == -1:
                    buf = buf[gt_pos:]
                    break

                header = buf[gt_pos + 1:nl_pos].rstrip()
                pos = nl_pos + 1

    def _make_seq(self, header: bytes, seq_parts: Iterable[bytes]) -> Seq:
        name, _, desc = header.decode('ascii', errors='replace').partition(' ')
        return self._alphabet.seq_from(b"".join(seq_parts), name, desc.strip())


class FastaWriter(BaseWriter):
    """
    Writer for FASTA format files.

    Examples:
        >>> with FastaWriter("output.fasta") as w:
        ...     w.write(ref_aligned, query_aligned)
    """
    __slots__ = ('width',)
    def __init__(self, file: Union[str, Path, BinaryIO], width: int = 0, **kwargs):
        """
        Initializes the FastaWriter.

        Args:
            file: File path or binary handle.
            width: Line width for sequence wrapping (0 for no wrapping).
            **kwargs: Additional arguments.
        """
        super().__init__(file, **kwargs)
        self.width = width

    def write_one(self, seq: Seq):
        """
        Writes a single FASTA record.

        Args:
            seq: The sequence to write.
        """
        if not isinstance(seq, Seq): raise TypeError("FastaWriter expects Seq objects")
        header = f">{seq.name} {seq.description}" if seq.description else f">{seq.name}"
        self._handle.write(header.encode('ascii', errors='replace') + b"\n")

        width = self.width
        if width > 0:
            encoded, alphabet = seq.encoded, seq.alphabet
            for i in range(0, len(encoded), width):
                self._handle.write(alphabet.decode(encoded[i:i + width]))
                self._handle.write(b"\n")
        else:
            self._handle.write(bytes(seq) + b"\n")

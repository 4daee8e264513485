"""
Module for reading and writing sequence and annotation files.
"""
from abc import ABC, abstractmethod
from gzip import open as gzip_open
from pathlib import Path
from typing import Union, Generator, BinaryIO, Iterable
from warnings import warn

from codalign import CodalignError, CodalignWarning
from codalign.containers.genome import CdsFeature, GenomeError


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SeqIOError(CodalignError, IOError):
    """Base class for sequence I/O errors."""

class ParserError(SeqIOError):
    """Raised for malformed records."""

class FeatureWarning(CodalignWarning):
    """Emitted when an annotated feature cannot be used and is skipped."""


# Classes --------------------------------------------------------------------------------------------------------------
class BaseReader(ABC):
    """Abstract base class for file readers."""
    _CHUNK_SIZE = 65536
    __slots__ = ('_handle', '_iterator', '_owned')
    def __init__(self, handle: BinaryIO, **kwargs):
        """
        Initializes the reader.

        Args:
            handle: The open binary file handle to read from.
            **kwargs: Additional arguments.
        """
        self._handle = handle
        self._iterator = None
        self._owned = False

    @classmethod
    def from_path(cls, path: Union[str, Path], **kwargs) -> 'BaseReader':
        """
        Opens a file for reading; gzip compression is inferred from the ``.gz`` extension.

        Raises:
            SeqIOError: If the file cannot be opened.
        """
        path = Path(path)
        try: handle = gzip_open(path, 'rb') if path.suffix == '.gz' else open(path, 'rb')
        except OSError as e: raise SeqIOError(f'Cannot open {path}: {e.strerror}') from e
        reader = cls(handle, **kwargs)
        reader._owned = True
        return reader

    @abstractmethod
    def __iter__(self) -> Generator: ...
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()
    def __next__(self):
        if self._iterator is None:
            self._iterator = self.__iter__()
        return next(self._iterator)

    def close(self):
        """Closes the handle if the reader opened it."""
        if self._owned: self._handle.close()


class BaseWriter(ABC):
    """
    Abstract base class for file writers.

    Examples:
        >>> with FastaWriter("output.fasta") as w:
        ...     w.write(seq1, seq2)
    """
    __slots__ = ('_file', '_handle')
    def __init__(self, file: Union[str, Path, BinaryIO], **kwargs):
        self._file = file
        self._handle = None

    def __enter__(self):
        """Opens the file."""
        if isinstance(self._file, (str, Path)):
            try: self._handle = open(self._file, 'wb')
            except OSError as e: raise SeqIOError(f'Cannot write {self._file}: {e.strerror}') from e
        else:
            self._handle = self._file
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Closes the file if the writer opened it."""
        if isinstance(self._file, (str, Path)) and self._handle is not None: self._handle.close()
        self._handle = None

    def write(self, *items):
        """
        Writes multiple items. Lists and tuples are unpacked.

        Args:
            *items: Items or lists of items.
        """
        for item in items:
            if isinstance(item, (list, tuple)):
                for sub_item in item: self.write_one(sub_item)
            else:
                self.write_one(item)

    @abstractmethod
    def write_one(self, item):
        """Writes a single item."""
        pass


# Functions ------------------------------------------------------------------------------------------------------------
def select_features(features: Iterable[CdsFeature], length: int, exclusive: bool = True) -> list[CdsFeature]:
    """
    Keeps the features that fit in a reference of the given length.

    Args:
        features: Candidate features, in file order.
        length: Reference length.
        exclusive: Also skip features overlapping an already accepted feature.

    Returns:
        The accepted features in file order; a ``FeatureWarning`` is emitted for every skipped one.
    """
    accepted, spans = [], []
    for f in features:
        if f.end > length:
            warn(f'Skipping {f.name}: it ends beyond the reference ({f.end} > {length})', FeatureWarning)
            continue
        if exclusive:
            clash = next((name for s, e, name in spans if any(s < fe and fs < e for fs, fe in f.ranges)), None)
            if clash is not None:
                warn(f'Skipping {f.name}: it overlaps {clash}', FeatureWarning)
                continue
            spans.extend((s, e, f.name) for s, e in f.ranges)
        accepted.append(f)
    return accepted


def make_feature(name: str, ranges, frame: int = 0, strand: int = 1, aa_seq=None) -> Union[CdsFeature, None]:
    """Builds a feature, warning and returning ``None`` if its annotation is malformed."""
    try: return CdsFeature(name, tuple(ranges), frame, strand, aa_seq)
    except GenomeError as e:
        warn(f'Skipping {name}: {e}', FeatureWarning)
        return None


def with_translations(features: Iterable[CdsFeature], ref, code=None) -> list[CdsFeature]:
    """Fills in the amino acid sequence of features loaded without one by translating the reference."""
    return [f if f.aa_seq is not None else CdsFeature(f.name, f.ranges, f.frame, f.strand, f.translate(ref, code))
            for f in features]

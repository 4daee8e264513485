"""
Annotation-aware pairwise alignment of nucleotide queries against reference genomes.
"""
__version__ = '0.9.0'


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class CodalignError(Exception):
    """Base class for all errors raised by this package."""


class CodalignWarning(Warning):
    """Base class for all warnings issued by this package."""

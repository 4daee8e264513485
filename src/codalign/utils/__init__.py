"""
Module containing configuration and logging helpers shared by the command line and the library.
"""
from argparse import Namespace
from dataclasses import dataclass, fields
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from codalign import CodalignError


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ConfigError(CodalignError):
    """Raised for invalid or inconsistent configuration, before any work starts."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass
class Config:
    """
    Config parent class that can conveniently set attributes from CLI args
    """

    @classmethod
    def from_args(cls, args: Namespace):
        """
        Sets attributes of the class from a Namespace object (e.g. from argparse)

        Args:
            args: :class:`argparse.Namespace` object containing attributes to set

        Returns:
            Class instance with attributes set from args
        """
        return cls(**{f.name: getattr(args, f.name) for f in fields(cls) if hasattr(args, f.name)})


# Functions ------------------------------------------------------------------------------------------------------------
def configure_logging(verbosity: int = 0) -> None:
    """
    Installs a Rich handler on the package logger, writing to stderr.

    Levels: WARNING (``verbosity < 0``), INFO (``0``), DEBUG (``> 0``).
    """
    logger = logging.getLogger(__package__.partition('.')[0])
    for h in list(logger.handlers): logger.removeHandler(h)
    level = logging.WARNING if verbosity < 0 else (logging.INFO if verbosity == 0 else logging.DEBUG)
    handler = RichHandler(
        console=Console(file=sys.stderr),
        show_time=False,
        show_path=verbosity > 0,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

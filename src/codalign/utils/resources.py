"""
Process-wide runtime state: the random number generator behind ambiguity resolution, the worker pool that aligns
independent queries, and the optional numba compilation of the alignment kernels.
"""
from functools import cached_property, lru_cache
from importlib import import_module
from concurrent.futures import ThreadPoolExecutor
from numpy.random import default_rng, Generator
import atexit
import os
from typing import Callable, Optional


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Lazily created shared state. The pool is only started by the first batch alignment and is shut down at exit.

    Examples:
        >>> int(RESOURCES.seed(7).integers(4)) == int(RESOURCES.seed(7).integers(4))
        True
    """
    def __init__(self, max_workers: int = 32) -> None:
        self.max_workers = max_workers
        atexit.register(self.shutdown)

    @cached_property
    def rng(self) -> Generator:
        """The generator used to resolve ambiguous query nucleotides."""
        return default_rng()

    def seed(self, seed: Optional[int]) -> Generator:
        """
        Replaces the shared generator so ambiguity resolution is reproducible.

        Args:
            seed: Seed for :func:`numpy.random.default_rng`, or ``None`` for fresh OS entropy.

        Returns:
            The new generator.
        """
        self.__dict__['rng'] = default_rng(seed)
        return self.rng

    @cached_property
    def pool(self) -> ThreadPoolExecutor:
        """Thread pool for :meth:`~codalign.engines.pairwise.Aligner.align_many`, the kernels release the GIL."""
        return ThreadPoolExecutor(min(self.max_workers, (os.cpu_count() or 1) + 4), thread_name_prefix='codalign')

    def shutdown(self):
        """Stops the pool if it was started; the next batch alignment starts a fresh one."""
        pool = self.__dict__.pop('pool', None)
        if pool is not None: pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Whether an optional dependency can be imported."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Compiles a kernel with ``numba.jit`` when numba is importable, otherwise leaves it as plain Python.

    Works bare (``@jit``) and with options (``@jit(nopython=True, nogil=True, cache=True)``).
    """
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function
        return lambda func: func
    from numba import jit as numba_jit
    if callable(signature_or_function): return numba_jit(signature_or_function)
    return numba_jit(signature_or_function, **options)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()

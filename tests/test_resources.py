from concurrent.futures import ThreadPoolExecutor

from codalign.utils.resources import Resources, RESOURCES, jit


class TestResources:
    def test_seed_is_reproducible(self):
        resources = Resources()
        first = resources.seed(11).integers(0, 1000, 10)
        second = resources.seed(11).integers(0, 1000, 10)
        assert (first == second).all()

    def test_seed_replaces_shared_generator(self):
        resources = Resources()
        generator = resources.seed(3)
        assert resources.rng is generator

    def test_pool_is_shared_and_restartable(self):
        resources = Resources(max_workers=2)
        pool = resources.pool
        assert isinstance(pool, ThreadPoolExecutor)
        assert resources.pool is pool
        resources.shutdown()
        assert resources.pool is not pool
        resources.shutdown()

    def test_shutdown_without_pool(self):
        Resources().shutdown()

    def test_has_module(self):
        assert RESOURCES.has_module('numpy')
        assert not RESOURCES.has_module('codalign_no_such_module')


class TestJit:
    def test_bare_and_configured(self):
        @jit
        def add(a, b): return a + b

        @jit(nopython=True, cache=False)
        def mul(a, b): return a * b

        assert add(2, 3) == 5
        assert mul(2, 3) == 6

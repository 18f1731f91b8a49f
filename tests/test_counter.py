import itertools
import random
import sys
import threading
import unittest

from bdd import BDD, FALSE, TRUE
from counter import count
from errors import ModelError, ResourceExhausted
from graphs import Graph, cycle_graph, empty_graph, path_graph
from model import Model, build_independent_set_model, build_kernel_model
from search import ensure_recursion_headroom

# Independent sets of C_n are counted by Lucas numbers, kernels by Perrin numbers.
LUCAS = {3: 4, 4: 7, 5: 11, 6: 18, 7: 29, 8: 47, 9: 76, 10: 123}
PERRIN = {3: 3, 4: 2, 5: 5, 6: 5, 7: 7, 8: 10, 9: 12, 10: 17}

C100_INDEPENDENT_SETS = 792070839848372253127
C100_KERNELS = 1630580875002


def perrin(n):
    a, b, c = 3, 0, 2
    for _ in range(n):
        a, b, c = b, c, a + b
    return a


def brute_force_count(model):
    return sum(
        1
        for bits in itertools.product((False, True), repeat=model.num_variables)
        if model.is_satisfied_by(bits)
    )


def random_graph(rng, n, p):
    edges = [(u, v) for u in range(1, n + 1) for v in range(u + 1, n + 1) if rng.random() < p]
    return Graph(vertices=tuple(range(1, n + 1)), edges=tuple(edges), name="random")


class BDDTests(unittest.TestCase):
    def test_clause_and_terminals(self):
        mgr = BDD(3)
        self.assertEqual(mgr.clause([1, -1]), TRUE)
        self.assertEqual(mgr.clause([]), FALSE)
        node = mgr.clause([-1, 3])
        self.assertEqual(mgr.sat_count(node), 6)

    def test_nodes_are_shared(self):
        mgr = BDD(2)
        a = mgr.clause([1, 2])
        b = mgr.clause([2, 1])
        self.assertEqual(a, b)

    def test_conjoin_counts(self):
        mgr = BDD(2)
        root = mgr.cnf([[1], [-2]])
        self.assertEqual(mgr.sat_count(root), 1)
        self.assertEqual(mgr.sat_count(mgr.cnf([[1], [-1]])), 0)
        self.assertEqual(mgr.sat_count(TRUE), 4)

    def test_node_limit(self):
        mgr = BDD(4, node_limit=3)
        with self.assertRaises(ResourceExhausted):
            mgr.cnf([[1, 2], [3, 4]])

    def test_cnf_keeps_only_live_nodes(self):
        model = build_kernel_model(cycle_graph(30))
        mgr = BDD(model.num_variables)
        root = mgr.cnf(model.clauses)
        self.assertEqual(len(mgr), mgr.reachable(root) + 2)
        self.assertEqual(mgr.sat_count(root), perrin(30))

    def test_compact_drops_unreachable_nodes(self):
        mgr = BDD(3)
        mgr.clause([1, 2])
        keep = mgr.clause([-2, 3])
        keep = mgr.compact(keep)
        self.assertEqual(len(mgr), 4)
        self.assertEqual(mgr.sat_count(keep), 6)
        self.assertEqual(mgr.clause([3, -2]), keep)


class CounterTests(unittest.TestCase):
    def test_cycle_counts_follow_lucas_and_perrin(self):
        for method in ("bdd", "search"):
            for n in LUCAS:
                g = cycle_graph(n)
                self.assertEqual(count(build_independent_set_model(g), method=method), LUCAS[n])
                self.assertEqual(count(build_kernel_model(g), method=method), PERRIN[n])

    def test_cycle_100_with_bdd(self):
        g = cycle_graph(100)
        self.assertEqual(count(build_independent_set_model(g)), C100_INDEPENDENT_SETS)
        self.assertEqual(count(build_kernel_model(g)), C100_KERNELS)

    def test_cycle_100_with_search(self):
        g = cycle_graph(100)
        self.assertEqual(
            count(build_independent_set_model(g), method="search"), C100_INDEPENDENT_SETS
        )
        self.assertEqual(count(build_kernel_model(g), method="search"), C100_KERNELS)

    def test_empty_graph(self):
        g = empty_graph(10)
        for method in ("bdd", "search"):
            self.assertEqual(count(build_independent_set_model(g), method=method), 2 ** 10)
            self.assertEqual(count(build_kernel_model(g), method=method), 1)

    def test_path_fibonacci(self):
        # Independent sets of P_n: F(n+2).
        self.assertEqual(count(build_independent_set_model(path_graph(10))), 144)

    def test_methods_agree_with_brute_force_on_random_graphs(self):
        rng = random.Random(321)
        for _ in range(15):
            g = random_graph(rng, rng.randint(1, 9), rng.choice([0.2, 0.4, 0.7]))
            for build in (build_independent_set_model, build_kernel_model):
                model = build(g)
                expected = brute_force_count(model)
                self.assertEqual(count(model, method="bdd"), expected)
                self.assertEqual(count(model, method="search"), expected)

    def test_independent_sets_bound_kernels(self):
        rng = random.Random(7)
        for _ in range(10):
            g = random_graph(rng, 8, 0.3)
            self.assertGreaterEqual(
                count(build_independent_set_model(g)), count(build_kernel_model(g))
            )

    def test_model_without_variables(self):
        self.assertEqual(count(Model(variables=(), clauses=())), 1)
        self.assertEqual(count(Model(variables=(), clauses=((),)), method="search"), 0)
        self.assertEqual(count(Model(variables=(), clauses=((),))), 0)

    def test_conflicting_units_count_zero(self):
        model = Model(variables=(1, 2), clauses=((1,), (-1,)))
        self.assertEqual(count(model), 0)
        self.assertEqual(count(model, method="search"), 0)

    def test_undeclared_variable_raises(self):
        with self.assertRaises(ModelError):
            count(Model(variables=(1,), clauses=((1, 2),)))

    def test_unknown_method(self):
        with self.assertRaises(ValueError):
            count(build_kernel_model(cycle_graph(3)), method="guess")

    def test_resource_limits(self):
        model = build_kernel_model(cycle_graph(30))
        with self.assertRaises(ResourceExhausted):
            count(model, node_limit=10)
        with self.assertRaises(ResourceExhausted):
            count(model, method="search", cache_limit=5)

    def test_node_limit_bounds_live_nodes(self):
        model = build_kernel_model(cycle_graph(300))
        self.assertEqual(count(model, node_limit=50_000), perrin(300))

    def test_long_cycle_fits_default_node_limit(self):
        self.assertEqual(count(build_kernel_model(cycle_graph(700))), perrin(700))

    def test_recursion_limit_is_never_lowered(self):
        self.addCleanup(sys.setrecursionlimit, sys.getrecursionlimit())
        ensure_recursion_headroom(5000)
        raised = sys.getrecursionlimit()
        self.assertGreaterEqual(raised, 4 * 5000 + 1000)
        ensure_recursion_headroom(10)
        self.assertEqual(sys.getrecursionlimit(), raised)

    def test_counts_from_concurrent_threads(self):
        results = {}

        def work(n):
            results[n] = count(build_kernel_model(cycle_graph(n)), method="search")

        workers = [threading.Thread(target=work, args=(n,)) for n in (150, 300, 450)]
        for t in workers:
            t.start()
        for t in workers:
            t.join()
        self.assertEqual(results, {n: perrin(n) for n in (150, 300, 450)})


if __name__ == "__main__":
    unittest.main()

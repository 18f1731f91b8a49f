import unittest

from errors import InvalidGraph, ModelError
from graphs import Graph, cycle_graph, empty_graph
from model import (
    INDEPENDENT_SET,
    KERNEL,
    Model,
    build_independent_set_model,
    build_kernel_model,
    selected_vertices,
)


class ModelBuilderTests(unittest.TestCase):
    def test_independent_set_model_has_one_clause_per_edge(self):
        model = build_independent_set_model(cycle_graph(4))
        self.assertEqual(model.kind, INDEPENDENT_SET)
        self.assertEqual(model.variables, (1, 2, 3, 4))
        self.assertEqual(model.clauses, ((-1, -2), (-2, -3), (-3, -4), (-1, -4)))

    def test_kernel_model_extends_independent_set_model(self):
        g = cycle_graph(4)
        ind = build_independent_set_model(g)
        ker = build_kernel_model(g)
        self.assertEqual(ker.kind, KERNEL)
        self.assertEqual(ker.clauses[: len(ind.clauses)], ind.clauses)
        self.assertEqual(
            ker.clauses[len(ind.clauses):],
            ((1, 2, 4), (2, 1, 3), (3, 2, 4), (4, 1, 3)),
        )

    def test_isolated_vertex_gets_unit_clause(self):
        g = Graph(vertices=("a", "b", "c"), edges=(("a", "b"),))
        ker = build_kernel_model(g)
        self.assertIn((3,), ker.clauses)
        self.assertEqual(ker.variable_of("c"), 3)
        self.assertEqual(ker.vertex_of(3), "c")

    def test_empty_graph_kernel_is_all_units(self):
        ker = build_kernel_model(empty_graph(3))
        self.assertEqual(ker.clauses, ((1,), (2,), (3,)))

    def test_builder_is_deterministic(self):
        self.assertEqual(
            build_kernel_model(cycle_graph(7)), build_kernel_model(cycle_graph(7))
        )

    def test_variables_follow_vertex_order(self):
        g = Graph(vertices=(30, 10, 20), edges=((10, 30),))
        model = build_independent_set_model(g)
        self.assertEqual(model.clauses, ((-2, -1),))

    def test_builders_reject_self_loop(self):
        g = Graph(vertices=(1, 2), edges=((1, 2),))
        # frozen dataclass: slip the loop past the constructor check
        object.__setattr__(g, "edges", ((1, 1),))
        for build in (build_independent_set_model, build_kernel_model):
            with self.assertRaisesRegex(InvalidGraph, "self-loop"):
                build(g)


class ModelTests(unittest.TestCase):
    def test_validate_rejects_undeclared_variable(self):
        model = Model(variables=(1, 2), clauses=((1, -3),))
        with self.assertRaisesRegex(ModelError, "outside 1..2"):
            model.validate()

    def test_validate_rejects_zero_literal(self):
        with self.assertRaises(ModelError):
            Model(variables=(1,), clauses=((0,),)).validate()

    def test_duplicate_variable_rejected(self):
        with self.assertRaises(ModelError):
            Model(variables=(1, 1), clauses=())

    def test_violated_clause_reports_first_failure(self):
        model = build_kernel_model(cycle_graph(4))
        self.assertIsNone(model.violated_clause((True, False, True, False)))
        self.assertEqual(model.violated_clause((True, True, False, False)), (-1, -2))
        self.assertEqual(model.violated_clause((True, False, False, False)), (3, 2, 4))
        self.assertFalse(model.is_satisfied_by((False,) * 4))

    def test_violated_clause_checks_length(self):
        with self.assertRaises(ModelError):
            build_kernel_model(cycle_graph(4)).violated_clause((True,))

    def test_weight_vector_from_mapping_and_sequence(self):
        model = build_kernel_model(cycle_graph(3))
        self.assertEqual(model.weight_vector({3: 5, 1: -1, 2: 0}), [-1, 0, 5])
        self.assertEqual(model.weight_vector([1, 2, 3]), [1, 2, 3])

    def test_weight_vector_must_cover_every_variable(self):
        model = build_kernel_model(cycle_graph(3))
        with self.assertRaisesRegex(ModelError, "no weight"):
            model.weight_vector({1: 1, 2: 1})
        with self.assertRaises(ModelError):
            model.weight_vector([1, 2])
        with self.assertRaises(ModelError):
            model.weight_vector([1, 2.5, 3])

    def test_selected_vertices(self):
        model = build_kernel_model(Graph(vertices=("x", "y"), edges=(("x", "y"),)))
        self.assertEqual(selected_vertices(model, (False, True)), ["y"])


if __name__ == "__main__":
    unittest.main()

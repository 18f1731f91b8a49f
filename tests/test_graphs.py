import unittest

from errors import InvalidGraph
from graphs import Graph, cycle_graph, empty_graph, path_graph, thue_morse_weight, thue_morse_weights


class GraphTests(unittest.TestCase):
    def test_cycle_edges_close_the_ring(self):
        g = cycle_graph(5)
        self.assertEqual(g.vertices, (1, 2, 3, 4, 5))
        self.assertEqual(g.edges, ((1, 2), (2, 3), (3, 4), (4, 5), (1, 5)))
        self.assertEqual(g.name, "C_5")

    def test_neighbours_sorted_by_vertex_order(self):
        adj = cycle_graph(5).neighbours()
        self.assertEqual(adj[1], [2, 5])
        self.assertEqual(adj[5], [1, 4])

    def test_path_and_empty_graphs(self):
        self.assertEqual(path_graph(3).edges, ((1, 2), (2, 3)))
        self.assertEqual(empty_graph(4).edges, ())
        self.assertEqual(empty_graph(4).neighbours()[2], [])

    def test_cycle_needs_three_vertices(self):
        with self.assertRaises(InvalidGraph):
            cycle_graph(2)

    def test_self_loop_rejected(self):
        with self.assertRaisesRegex(InvalidGraph, "self-loop"):
            Graph(vertices=(1, 2), edges=((1, 1),))

    def test_duplicate_edge_rejected_in_either_orientation(self):
        with self.assertRaisesRegex(InvalidGraph, "duplicate edge"):
            Graph(vertices=(1, 2), edges=((1, 2), (2, 1)))

    def test_dangling_endpoint_rejected(self):
        with self.assertRaisesRegex(InvalidGraph, "outside the vertex list"):
            Graph(vertices=(1, 2), edges=((1, 3),))

    def test_duplicate_vertex_rejected(self):
        with self.assertRaisesRegex(InvalidGraph, "duplicate vertex"):
            Graph(vertices=(1, 1), edges=())

    def test_invalid_graph_is_a_value_error(self):
        with self.assertRaises(ValueError):
            Graph(vertices=(1,), edges=((1, 1),))

    def test_thue_morse_weights_of_first_ten(self):
        self.assertEqual(
            [thue_morse_weight(i) for i in range(1, 11)],
            [-1, -1, 1, -1, 1, 1, -1, -1, 1, 1],
        )

    def test_thue_morse_weights_use_position(self):
        weights = thue_morse_weights(["a", "b", "c"])
        self.assertEqual(weights, {"a": -1, "b": -1, "c": 1})


if __name__ == "__main__":
    unittest.main()

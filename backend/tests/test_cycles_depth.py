"""
Tests for reachability-based cycle detection and longest-chain search.
"""

from app.services.cycles import find_cycles, find_dependency_path, would_create_cycle
from app.services.depth import longest_chain, longest_chain_from, longest_dependent_chain
from app.services.graph import DependencyEdge


class TestWouldCreateCycle:
    def test_closing_edge(self, chain_graph):
        assert would_create_cycle(chain_graph, "D", "A")
        assert would_create_cycle(chain_graph, "C", "A")

    def test_shortcut_is_not_a_cycle(self, chain_graph):
        """A depending directly on D only repeats what the chain implies."""
        assert not would_create_cycle(chain_graph, "A", "D")

    def test_self_reference(self, chain_graph):
        assert would_create_cycle(chain_graph, "B", "B")

    def test_unknown_ids(self, chain_graph):
        assert not would_create_cycle(chain_graph, "A", "Z")

    def test_graph_is_not_modified(self, chain_graph):
        edges_before = chain_graph.edges

        would_create_cycle(chain_graph, "D", "A")

        assert chain_graph.edges == edges_before


class TestFindDependencyPath:
    def test_path_follows_prerequisites(self, chain_graph):
        assert find_dependency_path(chain_graph, "A", "D") == ["A", "B", "C", "D"]

    def test_no_path_against_direction(self, chain_graph):
        assert find_dependency_path(chain_graph, "D", "A") == []

    def test_smallest_branch_first(self, diamond_graph):
        assert find_dependency_path(diamond_graph, "A", "D") == ["A", "B", "D"]

    def test_unknown_ids(self, chain_graph):
        assert find_dependency_path(chain_graph, "A", "Z") == []

    def test_long_chain_does_not_recurse(self, graph_factory):
        """5000 tasks in one chain: the search is iterative."""
        graph = graph_factory([(i, i + 1) for i in range(4999)])

        path = find_dependency_path(graph, 0, 4999)

        assert len(path) == 5000
        assert would_create_cycle(graph, 4999, 0)


class TestFindCycles:
    def test_cycles_rotated_and_sorted(self):
        edges = [
            DependencyEdge("D", "E"),
            DependencyEdge("E", "C"),
            DependencyEdge("C", "D"),
            DependencyEdge("B", "A"),
            DependencyEdge("A", "B"),
        ]

        assert find_cycles(edges) == [["A", "B"], ["C", "D", "E"]]

    def test_acyclic(self, diamond_graph):
        assert find_cycles(diamond_graph.edges) == []


class TestLongestChain:
    def test_chain_from_top(self, chain_graph):
        """Scenario A: the chain from A covers all four tasks."""
        result = longest_chain_from(chain_graph, "A")

        assert result.length == 3
        assert result.path == ["A", "B", "C", "D"]

    def test_chain_from_bottom(self, chain_graph):
        result = longest_chain_from(chain_graph, "D")

        assert result.length == 0
        assert result.path == ["D"]

    def test_unknown_task(self, chain_graph):
        result = longest_chain_from(chain_graph, "Z")

        assert result.length == 0
        assert result.path == []

    def test_dependent_chain(self, chain_graph):
        result = longest_dependent_chain(chain_graph, "D")

        assert result.length == 3
        assert result.path == ["D", "C", "B", "A"]

    def test_tie_goes_to_smallest_id(self, diamond_graph):
        result = longest_chain_from(diamond_graph, "A")

        assert result.length == 2
        assert result.path == ["A", "B", "D"]

    def test_longer_branch_wins(self, graph_factory):
        """A -> B -> E and A -> C -> D -> E: the branch through C is longer."""
        graph = graph_factory([("A", "B"), ("B", "E"), ("A", "C"), ("C", "D"), ("D", "E")])

        assert longest_chain_from(graph, "A").path == ["A", "C", "D", "E"]

    def test_cyclic_adjacency_terminates(self):
        result = longest_chain({"A": {"B"}, "B": {"A"}}, "A")

        assert result.length == 1
        assert result.path == ["A", "B"]

    def test_shared_memo(self, chain_graph):
        prerequisites = chain_graph.prerequisite_map()
        memo = {}

        longest_chain(prerequisites, "B", memo)
        result = longest_chain(prerequisites, "A", memo)

        assert result.path == ["A", "B", "C", "D"]
        assert memo["D"] == (0, None)

    def test_deep_chain(self, graph_factory):
        graph = graph_factory([(i, i + 1) for i in range(4999)])

        assert longest_chain_from(graph, 0).length == 4999

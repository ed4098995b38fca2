"""
Tests for level assignment and flow chart positions.
"""

import random

import pytest

from app.services.depth import longest_chain_from
from app.services.graph import DependencyEdge, TaskNode
from app.services.layout import LayoutConfig, Position, compute_positions, initial_positions, relax_positions
from app.services.levels import assign_levels, group_by_level


def random_dag(graph_factory, size, density, seed):
    rng = random.Random(seed)
    edges = [
        (dependent, prerequisite)
        for dependent in range(size)
        for prerequisite in range(dependent + 1, size)
        if rng.random() < density
    ]
    return graph_factory(edges, nodes=range(size))


class TestAssignLevels:
    def test_chain(self, chain_graph):
        """Scenario A: D has no prerequisites and sits on top."""
        levels = assign_levels(chain_graph.nodes, chain_graph.edges)

        assert levels == {"D": 0, "C": 1, "B": 2, "A": 3}

    def test_diamond(self, diamond_graph):
        """Scenario C: B and C share a level."""
        levels = assign_levels(diamond_graph.nodes, diamond_graph.edges)

        assert levels == {"D": 0, "B": 1, "C": 1, "A": 2}

    def test_isolated_task_on_level_zero(self, diamond_graph):
        """Scenario D."""
        diamond_graph.add_node(TaskNode(id="E", project_id="P"))

        levels = assign_levels(diamond_graph.nodes, diamond_graph.edges)

        assert levels["E"] == 0

    def test_level_is_longest_prerequisite_chain(self, graph_factory):
        """A depends on B and D directly, B on C, C on D: A must sit below C."""
        graph = graph_factory([("A", "B"), ("A", "D"), ("B", "C"), ("C", "D")])

        levels = assign_levels(graph.nodes, graph.edges)

        assert levels == {"D": 0, "C": 1, "B": 2, "A": 3}

    @pytest.mark.parametrize("seed", range(10))
    def test_random_dags(self, graph_factory, seed):
        graph = random_dag(graph_factory, size=15, density=0.2, seed=seed)

        levels = assign_levels(graph.nodes, graph.edges)

        assert set(levels) == set(graph.node_ids)
        for edge in graph.edges:
            assert levels[edge.dependent_id] >= levels[edge.prerequisite_id] + 1
        for node_id in graph.node_ids:
            assert levels[node_id] == longest_chain_from(graph, node_id).length

    def test_dangling_and_repeated_edges_ignored(self):
        nodes = [TaskNode(id="A"), TaskNode(id="B")]
        edges = [DependencyEdge("A", "B"), DependencyEdge("A", "B"), DependencyEdge("A", "Z")]

        assert assign_levels(nodes, edges) == {"B": 0, "A": 1}

    def test_cyclic_input_gets_fallback_level(self):
        nodes = [TaskNode(id="A"), TaskNode(id="B"), TaskNode(id="C")]
        edges = [DependencyEdge("A", "B"), DependencyEdge("B", "A")]

        assert assign_levels(nodes, edges) == {"C": 0, "A": 1, "B": 1}

    def test_empty(self):
        assert assign_levels([], []) == {}

    def test_group_by_level(self):
        grouped = group_by_level({"C": 1, "A": 2, "B": 1, "D": 0})

        assert grouped == {0: ["D"], 1: ["B", "C"], 2: ["A"]}
        assert list(grouped) == [0, 1, 2]


class TestPositions:
    def test_rows_centered_on_canvas(self, diamond_graph):
        """
        Scenario: diamond, no relaxation
        Expected: one-task rows centered at x=500, the B/C row centered as a pair
        """
        levels = assign_levels(diamond_graph.nodes, diamond_graph.edges)
        positions = compute_positions(levels, config=LayoutConfig(iterations=0))

        assert positions["D"] == Position(x=500, y=50)
        assert positions["B"] == Position(x=275, y=170)
        assert positions["C"] == Position(x=725, y=170)
        assert positions["A"] == Position(x=500, y=290)

    def test_wide_row_starts_at_margin(self):
        config = LayoutConfig()
        positions = initial_positions({0: ["a", "b", "c", "d", "e"]}, config)

        assert positions["a"].x == config.margin_left
        assert positions["e"].x == config.margin_left + 4 * (config.node_width + config.horizontal_spacing)

    def test_relaxation_keeps_row_order(self, chain_graph):
        levels = assign_levels(chain_graph.nodes, chain_graph.edges)

        positions = compute_positions(levels)

        assert positions["D"].y < positions["C"].y < positions["B"].y < positions["A"].y
        assert positions["D"].y == LayoutConfig().margin_top

    def test_coincident_nodes_separate_along_x(self):
        positions = {"a": Position(100, 100), "b": Position(100, 100)}

        relax_positions(positions, LayoutConfig(iterations=1))

        assert positions["a"].x < 100 < positions["b"].x
        assert positions["a"].y == positions["b"].y == 100

    def test_clamped_at_margins(self):
        config = LayoutConfig(iterations=5)
        positions = {
            "a": Position(config.margin_left, config.margin_top),
            "b": Position(config.margin_left, config.margin_top),
        }

        relax_positions(positions, config)

        for position in positions.values():
            assert position.x >= config.margin_left
            assert position.y >= config.margin_top

    @pytest.mark.parametrize("seed", range(5))
    def test_random_layouts_deterministic_and_non_negative(self, graph_factory, seed):
        graph = random_dag(graph_factory, size=30, density=0.1, seed=seed)
        levels = assign_levels(graph.nodes, graph.edges)

        first = compute_positions(levels)
        second = compute_positions(levels)

        assert first == second
        assert set(first) == set(graph.node_ids)
        for position in first.values():
            assert position.x >= 0
            assert position.y >= 0

    @pytest.mark.parametrize("seed", range(20))
    def test_random_layouts_have_no_overlapping_boxes(self, graph_factory, seed):
        graph = random_dag(graph_factory, size=60, density=0.08, seed=seed)
        levels = assign_levels(graph.nodes, graph.edges)
        config = LayoutConfig()

        positions = compute_positions(levels, group_by_level(levels), config)

        placed = sorted(positions.items())
        for index, (first_id, first) in enumerate(placed):
            for second_id, second in placed[index + 1:]:
                dx = abs(first.x - second.x)
                dy = abs(first.y - second.y)
                assert dx >= config.node_width or dy >= config.node_height, (first_id, second_id)

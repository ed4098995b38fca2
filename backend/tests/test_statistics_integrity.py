"""
Tests for flow statistics and the whole-project integrity scan.
"""

from app.services.graph import DependencyEdge, TaskNode
from app.services.integrity import find_redundant_dependencies, scan_integrity
from app.services.rules import DependencyPolicy
from app.services.statistics import FlowStatistics, compute_statistics


def finding(findings, kind):
    matches = [item for item in findings if item.kind == kind]
    assert len(matches) == 1, f"expected one {kind}, got {[item.kind for item in findings]}"
    return matches[0]


class TestFlowStatistics:
    def test_diamond_with_isolated_task(self, diamond_graph):
        diamond_graph.add_node(TaskNode(id="E", project_id="P"))

        stats = compute_statistics(diamond_graph.nodes, diamond_graph.edges)

        assert stats == FlowStatistics(
            total_tasks=5,
            total_dependencies=4,
            tasks_with_dependencies=3,
            tasks_with_dependents=3,
            average_dependencies_per_task=0.8,
            independent_tasks=1,
        )

    def test_empty(self):
        assert compute_statistics([], []) == FlowStatistics()

    def test_dangling_and_repeated_edges_not_counted(self):
        nodes = [TaskNode(id="A"), TaskNode(id="B")]
        edges = [DependencyEdge("A", "B"), DependencyEdge("A", "B"), DependencyEdge("A", "Z")]

        stats = compute_statistics(nodes, edges)

        assert stats.total_dependencies == 1
        assert stats.independent_tasks == 0


class TestIntegrityIssues:
    def test_clean_chain(self, chain_graph):
        report = scan_integrity(chain_graph.nodes, chain_graph.edges)

        assert report.is_valid
        assert report.total_tasks == 4
        assert report.total_dependencies == 3
        assert report.issues == []
        assert report.suggestions == []

    def test_orphan_dependency(self):
        nodes = [TaskNode(id="A")]
        edges = [DependencyEdge("A", "Z")]

        report = scan_integrity(nodes, edges)

        assert not report.is_valid
        orphan = finding(report.issues, "orphan_dependency")
        assert orphan.task_ids == ["Z"]
        assert orphan.dependencies == [DependencyEdge("A", "Z")]

    def test_orphan_reported_per_missing_endpoint(self):
        report = scan_integrity([], [DependencyEdge("X", "Y")])

        assert [issue.task_ids for issue in report.issues] == [["X"], ["Y"]]

    def test_duplicate_dependency(self):
        nodes = [TaskNode(id="A"), TaskNode(id="B")]
        edges = [DependencyEdge("A", "B"), DependencyEdge("A", "B")]

        report = scan_integrity(nodes, edges)

        duplicate = finding(report.issues, "duplicate_dependency")
        assert duplicate.dependencies == [DependencyEdge("A", "B")]
        assert report.total_dependencies == 2

    def test_circular_dependencies(self):
        nodes = [TaskNode(id=node_id) for node_id in "ABC"]
        edges = [DependencyEdge("A", "B"), DependencyEdge("B", "A"), DependencyEdge("C", "A")]

        report = scan_integrity(nodes, edges)

        cycles = finding(report.issues, "circular_dependencies")
        assert cycles.chains == [["A", "B"]]
        assert not any(item.kind == "remove_redundant" for item in report.suggestions)


class TestIntegritySuggestions:
    def test_isolated_and_parallel_tasks(self, graph_factory):
        graph = graph_factory([("A", "B")], nodes=["C"])

        report = scan_integrity(graph.nodes, graph.edges)

        assert report.is_valid
        assert finding(report.suggestions, "isolated_tasks").task_ids == ["C"]
        assert finding(report.suggestions, "parallelize").task_ids == ["B", "C"]

    def test_long_chain(self, graph_factory):
        graph = graph_factory([(f"N{i}", f"N{i + 1}") for i in range(6)])

        report = scan_integrity(graph.nodes, graph.edges, DependencyPolicy(long_chain_threshold=5))

        long_chains = finding(report.suggestions, "simplify_chains")
        assert long_chains.chains == [[f"N{i}" for i in range(7)]]
        assert long_chains.task_ids == ["N0"]

    def test_chain_at_threshold_not_reported(self, graph_factory):
        graph = graph_factory([(f"N{i}", f"N{i + 1}") for i in range(5)])

        report = scan_integrity(graph.nodes, graph.edges, DependencyPolicy(long_chain_threshold=5))

        assert not any(item.kind == "simplify_chains" for item in report.suggestions)

    def test_redundant_dependency(self, graph_factory):
        """A -> C is implied by A -> B -> C."""
        graph = graph_factory([("A", "B"), ("B", "C"), ("A", "C")])

        report = scan_integrity(graph.nodes, graph.edges)

        redundant = finding(report.suggestions, "remove_redundant")
        assert redundant.dependencies == [DependencyEdge("A", "C")]
        assert find_redundant_dependencies(graph) == [DependencyEdge("A", "C")]

    def test_scan_does_not_touch_input(self, graph_factory):
        graph = graph_factory([("A", "B"), ("B", "C"), ("A", "C")])
        edges = graph.edges

        scan_integrity(graph.nodes, edges)

        assert graph.edges == edges

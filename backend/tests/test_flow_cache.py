"""
Tests for flow view assembly and the revision-checked flow cache.

Stale views must never be served and never replace newer ones: a cached
view is only returned for the revision it was computed from.
"""

import uuid

import pytest

from app.schemas.flow import FlowRead
from app.services.flow import FlowViewCache, build_flow_view
from app.services.layout import LayoutConfig


def flow_read(graph, revision) -> FlowRead:
    return FlowRead.model_validate(build_flow_view(graph, revision), from_attributes=True)


@pytest.fixture
def uuid_chain(graph_factory):
    """Three tasks with UUID ids: first depends on second, second on third."""
    first, second, third = sorted(uuid.uuid4() for _ in range(3))
    return graph_factory([(first, second), (second, third)]), [first, second, third]


class TestBuildFlowView:
    def test_chain(self, chain_graph):
        view = build_flow_view(chain_graph, revision=3)

        assert view.revision == 3
        assert [node.id for node in view.nodes] == ["A", "B", "C", "D"]
        assert {node.id: node.level for node in view.nodes} == {"A": 3, "B": 2, "C": 1, "D": 0}
        assert view.critical_path == ["A", "B", "C", "D"]
        assert view.edges == chain_graph.edges
        assert view.statistics.total_dependencies == 3

    def test_layout_config_is_used(self, diamond_graph):
        view = build_flow_view(diamond_graph, layout_config=LayoutConfig(iterations=0, margin_top=10))

        top = next(node for node in view.nodes if node.id == "D")
        assert top.position.y == 10

    def test_serializes_to_schema(self, uuid_chain):
        graph, ids = uuid_chain

        view = flow_read(graph, revision=1)

        assert view.critical_path == ids
        assert [node.level for node in view.nodes] == [2, 1, 0]
        assert view.edges[0].dependent_id == ids[0]


@pytest.mark.asyncio
class TestFlowViewCache:
    async def test_miss(self, fake_redis):
        cache = FlowViewCache(fake_redis, ttl_seconds=60)

        assert await cache.load(uuid.uuid4(), 0) is None

    async def test_hit_only_for_current_revision(self, fake_redis, uuid_chain):
        graph, _ = uuid_chain
        project_id = uuid.uuid4()
        cache = FlowViewCache(fake_redis, ttl_seconds=60)

        assert await cache.store(project_id, flow_read(graph, revision=2))

        cached = await cache.load(project_id, 2)
        assert cached is not None
        assert cached.revision == 2
        assert await cache.load(project_id, 3) is None

    async def test_older_view_never_replaces_newer(self, fake_redis, uuid_chain):
        """
        Scenario: the job for revision 5 finishes after the one for revision 6
        Expected: the revision 6 view stays cached
        """
        graph, _ = uuid_chain
        project_id = uuid.uuid4()
        cache = FlowViewCache(fake_redis, ttl_seconds=60)

        assert await cache.store(project_id, flow_read(graph, revision=6))
        assert not await cache.store(project_id, flow_read(graph, revision=5))
        assert not await cache.store(project_id, flow_read(graph, revision=6))

        assert (await cache.load(project_id, 6)).revision == 6

    async def test_newer_view_replaces_older(self, fake_redis, uuid_chain):
        graph, _ = uuid_chain
        project_id = uuid.uuid4()
        cache = FlowViewCache(fake_redis, ttl_seconds=60)

        await cache.store(project_id, flow_read(graph, revision=1))
        assert await cache.store(project_id, flow_read(graph, revision=2))

        assert await cache.load(project_id, 1) is None
        assert (await cache.load(project_id, 2)).revision == 2

    async def test_ttl(self, fake_redis, uuid_chain):
        graph, _ = uuid_chain
        project_id = uuid.uuid4()

        await FlowViewCache(fake_redis, ttl_seconds=42).store(project_id, flow_read(graph, revision=1))

        assert fake_redis.expiry[f"{FlowViewCache.KEY_PREFIX}{project_id}"] == 42

# tests/conftest.py
"""
Shared fixtures: compact graph construction and a delay-free engine.
"""

import pytest

from chatflow.core.collaborators import FlowCollaborators
from chatflow.core.delay_policy import NoDelayPolicy
from chatflow.core.flow_engine import FlowEngine
from chatflow.models.flow_graph import FlowGraph
from chatflow.services.crm_service import InMemoryCRMService


@pytest.fixture
def build_graph():
    """
    Build a FlowGraph from stored-record style tuples.

    nodes: (id, type) or (id, type, data)
    edges: (source, target) or (source, target, source_handle)
    """
    def _build(nodes, edges, flow_id="flow-test"):
        node_records = [
            {
                "id": node[0],
                "type": node[1],
                "position_x": index * 200,
                "position_y": 0,
                "data": node[2] if len(node) > 2 else {},
            }
            for index, node in enumerate(nodes)
        ]
        edge_records = [
            {
                "id": f"edge-{index}",
                "source_node_id": edge[0],
                "target_node_id": edge[1],
                "source_handle": edge[2] if len(edge) > 2 else None,
            }
            for index, edge in enumerate(edges)
        ]
        return FlowGraph.from_records(node_records, edge_records, flow_id=flow_id)

    return _build


@pytest.fixture
def crm():
    return InMemoryCRMService()


@pytest.fixture
def collaborators(crm):
    return FlowCollaborators(tags=crm, funnels=crm, handoff=crm)


@pytest.fixture
def engine():
    """Engine without collaborators; every wait is skipped"""
    return FlowEngine(delay_policy=NoDelayPolicy())


@pytest.fixture
def crm_engine(collaborators):
    return FlowEngine(collaborators=collaborators, delay_policy=NoDelayPolicy())

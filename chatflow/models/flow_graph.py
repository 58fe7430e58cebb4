# chatflow/models/flow_graph.py
"""
In-memory flow graph: nodes, edges and the two routing lookups the
interpreter needs.

The graph is plain data. It performs no cycle detection; runaway loops are
bounded by the interpreter's step budget.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, TypeAdapter, ValidationError

from chatflow.core.exceptions import GraphValidationError
from chatflow.core.interpolation import placeholders
from chatflow.models.flow_models import (
    KNOWN_NODE_KINDS,
    ActionNode,
    AiResponseNode,
    ConditionNode,
    FlowEdge,
    FlowNode,
    HttpRequestAction,
    MessageNode,
    NodeKind,
    QuestionNode,
    SendNotificationAction,
    SetVariableAction,
    StartNode,
    TagAction,
)

logger = logging.getLogger(__name__)

_node_adapter: TypeAdapter = TypeAdapter(FlowNode)


def _templated_texts(node: FlowNode) -> List[str]:
    """Author texts of ``node`` that go through placeholder substitution."""
    if isinstance(node, MessageNode):
        return [node.text]
    if isinstance(node, QuestionNode):
        return [node.prompt]
    if isinstance(node, AiResponseNode):
        return [node.prompt or ""]
    if isinstance(node, ActionNode):
        action = node.action
        if isinstance(action, TagAction):
            return [action.tag_name]
        if isinstance(action, SetVariableAction):
            return [action.variable_value]
        if isinstance(action, HttpRequestAction):
            return [action.url]
        if isinstance(action, SendNotificationAction):
            return [action.message or ""]
    return []


def parse_node(record: Mapping[str, Any]) -> FlowNode:
    """
    Decode one stored node record into a typed node.

    Accepts both the persisted row shape (``type``, ``position_x``,
    ``position_y``, ``data``) and the editor shape (``type``, ``position``,
    ``data``). Unrecognised types become an ``UnknownNode``.

    Raises:
        GraphValidationError: If the record cannot be decoded
    """
    node_id = record.get("id")
    if not node_id:
        raise GraphValidationError("Node record without id", field="id", value=record)

    node_type = record.get("type") or record.get("kind") or ""
    data = dict(record.get("data") or {})

    position = record.get("position")
    if position is None:
        position = {"x": record.get("position_x") or 0, "y": record.get("position_y") or 0}

    if node_type in KNOWN_NODE_KINDS:
        payload = {**data, "id": node_id, "kind": node_type, "position": position}
    else:
        payload = {
            "id": node_id,
            "kind": NodeKind.UNKNOWN.value,
            "position": position,
            "type_name": str(node_type),
            "raw_data": data,
        }

    try:
        return _node_adapter.validate_python(payload)
    except ValidationError as e:
        raise GraphValidationError(
            f"Invalid {node_type} node {node_id}",
            field="data",
            value=data,
            details={"node_id": node_id, "errors": e.errors(include_url=False)},
        ) from e


def parse_edge(record: Mapping[str, Any]) -> FlowEdge:
    """Decode one stored edge record (``source_node_id`` or ``source`` keys)."""
    try:
        return FlowEdge.model_validate(dict(record))
    except ValidationError as e:
        raise GraphValidationError(
            f"Invalid edge {record.get('id')}",
            field="edge",
            value=record,
            details={"errors": e.errors(include_url=False)},
        ) from e


class FlowGraph(BaseModel):
    """
    A conversation flow.

    Treat instances as read-only while a run uses them; sessions keep their
    own deep copy taken at run start.
    """
    model_config = ConfigDict(frozen=True)

    flow_id: Optional[str] = None
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    _node_index: Dict[str, Any] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: Dict[str, Any] = {}
        for node in self.nodes:
            # First node wins on duplicate ids, like a linear search would
            index.setdefault(node.id, node)
        self._node_index = index

    @classmethod
    def from_records(
        cls,
        node_records: Iterable[Mapping[str, Any]],
        edge_records: Iterable[Mapping[str, Any]],
        flow_id: Optional[str] = None,
    ) -> "FlowGraph":
        """Build a graph from stored node/edge rows."""
        nodes = [parse_node(record) for record in node_records]
        edges = [parse_edge(record) for record in edge_records]
        graph = cls(flow_id=flow_id, nodes=nodes, edges=edges)

        for issue in graph.validate_structure():
            logger.warning(f"Flow {flow_id or '<unsaved>'}: {issue}")

        return graph

    # ===========================================
    # LOOKUPS
    # ===========================================

    def find_node(self, node_id: Optional[str]) -> Optional[FlowNode]:
        if node_id is None:
            return None
        return self._node_index.get(node_id)

    def start_node(self) -> Optional[StartNode]:
        for node in self.nodes:
            if node.kind == NodeKind.START.value:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> List[FlowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def find_edge(self, node_id: str, handle: Optional[str] = None) -> Optional[FlowEdge]:
        """
        First edge leaving ``node_id`` for the given output handle.

        With a handle, the edge's ``source_handle`` must match exactly.
        Without one, only edges carrying no handle qualify; an edge bound
        to some other handle is never picked.
        """
        for edge in self.edges:
            if edge.source == node_id and edge.source_handle == handle:
                return edge
        return None

    def find_next_node(self, node_id: str, handle: Optional[str] = None) -> Optional[FlowNode]:
        edge = self.find_edge(node_id, handle)
        if edge is None:
            return None
        return self.find_node(edge.target)

    # ===========================================
    # STRUCTURAL CHECKS
    # ===========================================

    def validate_structure(self) -> List[str]:
        """Report structural problems without raising."""
        issues = []

        start_count = sum(1 for node in self.nodes if node.kind == NodeKind.START.value)
        if start_count == 0:
            issues.append("No start node")
        elif start_count > 1:
            issues.append(f"{start_count} start nodes, the first one is used")

        seen_ids = set()
        for node in self.nodes:
            if node.id in seen_ids:
                issues.append(f"Duplicate node id: {node.id}")
            seen_ids.add(node.id)

        for edge in self.edges:
            if edge.source not in self._node_index:
                issues.append(f"Edge {edge.id} leaves unknown node {edge.source}")
            if edge.target not in self._node_index:
                issues.append(f"Edge {edge.id} points to unknown node {edge.target}")

        for node in self.nodes:
            outgoing = self.outgoing_edges(node.id)
            if len(outgoing) <= 1:
                continue
            if not isinstance(node, ConditionNode):
                issues.append(f"Node {node.id} ({node.kind}) has {len(outgoing)} outgoing edges")
                continue
            handles = [edge.source_handle for edge in outgoing]
            duplicates = sorted({h or "<none>" for h in handles if handles.count(h) > 1})
            if duplicates:
                issues.append(f"Condition {node.id} repeats handles: {', '.join(duplicates)}")

        issues.extend(self._unprovided_placeholders())
        return issues

    def _unprovided_placeholders(self) -> List[str]:
        """Placeholders no question or set_variable action in the graph collects."""
        provided = set()
        for node in self.nodes:
            if isinstance(node, QuestionNode) and node.variable_name:
                provided.add(node.variable_name)
            elif isinstance(node, ActionNode) and isinstance(node.action, SetVariableAction):
                if node.action.variable_name:
                    provided.add(node.action.variable_name)

        issues = []
        for node in self.nodes:
            reported = set()
            for text in _templated_texts(node):
                for name in placeholders(text):
                    if name in provided or name in reported:
                        continue
                    reported.add(name)
                    issues.append(f"Node {node.id} uses {{{{{name}}}}} but nothing in the flow collects it")
        return issues

"""Execution planner: validates a workflow graph and orders it for execution.

The graph is ordered with Kahn's algorithm. Among nodes that become ready
at the same time, node insertion order is preserved so plans are
reproducible for the same graph.
"""

from collections import deque
from typing import Any, Iterable

import structlog

from core.constants import NodeType
from core.exceptions import PlanningError, ValidationError
from workflow.graph import WorkflowEdge, WorkflowNode, normalize_edge, normalize_graph, normalize_node
from workflow.types import ExecutionPlan, ExecutionStep, ValidationResult

logger = structlog.get_logger(__name__)


class ExecutionPlanner:
    """Builds execution plans from raw or normalized graphs."""

    @classmethod
    def create_plan(cls, nodes: Iterable[Any], edges: Iterable[Any]) -> ExecutionPlan:
        """Create a topologically ordered plan.

        Accepts raw node/edge dicts in any supported shape as well as
        already-normalized WorkflowNode/WorkflowEdge objects.

        Raises:
            PlanningError: the graph contains a cycle or a node that can
                never become ready.
        """
        node_list, edge_list = normalize_graph(nodes, edges)
        logger.debug("Creating execution plan", node_count=len(node_list), edge_count=len(edge_list))

        dependencies = cls.build_dependency_graph(node_list, edge_list)
        sorted_ids = cls.topological_sort(node_list, dependencies)

        nodes_by_id = {n.id: n for n in node_list}
        outgoing: dict[str, list[WorkflowEdge]] = {n.id: [] for n in node_list}
        for edge in edge_list:
            if edge.source in outgoing:
                outgoing[edge.source].append(edge)

        steps = [
            ExecutionStep(
                step_order=index,
                node_id=node_id,
                node=nodes_by_id[node_id],
                dependencies=list(dependencies.get(node_id, [])),
                edges=outgoing[node_id],
            )
            for index, node_id in enumerate(sorted_ids)
        ]

        logger.info("Execution plan created", total_steps=len(steps))
        return ExecutionPlan(steps=steps)

    @staticmethod
    def build_dependency_graph(
        nodes: list[WorkflowNode], edges: list[WorkflowEdge]
    ) -> dict[str, list[str]]:
        """Map every node id to the source ids of the edges targeting it."""
        graph: dict[str, list[str]] = {node.id: [] for node in nodes}
        for edge in edges:
            if edge.target in graph:
                graph[edge.target].append(edge.source)
        return graph

    @staticmethod
    def topological_sort(
        nodes: list[WorkflowNode], dependencies: dict[str, list[str]]
    ) -> list[str]:
        """Order node ids so every dependency precedes its dependents."""
        in_degree = {node.id: len(dependencies.get(node.id, [])) for node in nodes}

        # dependents[x] lists, in node order, each node once per edge from x
        dependents: dict[str, list[str]] = {}
        for node in nodes:
            for dep_id in dependencies.get(node.id, []):
                dependents.setdefault(dep_id, []).append(node.id)

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        sorted_ids: list[str] = []

        while queue:
            node_id = queue.popleft()
            sorted_ids.append(node_id)
            for dependent_id in dependents.get(node_id, []):
                in_degree[dependent_id] -= 1
                if in_degree[dependent_id] == 0:
                    queue.append(dependent_id)

        if len(sorted_ids) != len(nodes):
            placed = set(sorted_ids)
            missing = [node.id for node in nodes if node.id not in placed]
            raise PlanningError(
                f"Workflow contains cycles or disconnected nodes: {', '.join(missing)}",
                node_ids=missing,
            )

        return sorted_ids

    @classmethod
    def validate(cls, nodes: Iterable[Any], edges: Iterable[Any]) -> ValidationResult:
        """Check graph structure, collecting every problem found."""
        errors: list[str] = []
        node_list = cls._collect(nodes, normalize_node, errors)
        edge_list = cls._collect(edges, normalize_edge, errors)

        logger.debug(
            "Validating workflow structure",
            node_count=len(node_list),
            edge_count=len(edge_list),
        )

        triggers = [n for n in node_list if n.node_type == NodeType.TRIGGER.value]
        if not triggers:
            errors.append("Workflow must have at least one trigger node")

        if not node_list:
            errors.append("Workflow must have at least one node")

        connected: set[str] = set()
        for edge in edge_list:
            connected.add(edge.source)
            connected.add(edge.target)

        orphaned = [
            n for n in node_list
            if n.node_type != NodeType.TRIGGER.value and n.id not in connected
        ]
        if orphaned:
            errors.append(f"Orphaned nodes detected: {', '.join(n.label for n in orphaned)}")

        node_ids = {n.id for n in node_list}
        invalid_edges = [e for e in edge_list if e.source not in node_ids or e.target not in node_ids]
        if invalid_edges:
            errors.append(f"Invalid edge references detected: {len(invalid_edges)} edge(s)")

        seen: set[str] = set()
        duplicates = []
        for n in node_list:
            if n.id in seen and n.id not in duplicates:
                duplicates.append(n.id)
            seen.add(n.id)
        if duplicates:
            errors.append(f"Duplicate node ids detected: {', '.join(duplicates)}")

        try:
            cls.topological_sort(node_list, cls.build_dependency_graph(node_list, edge_list))
        except PlanningError as e:
            errors.append(e.message)

        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def _collect(raw_items: Iterable[Any], adapter, errors: list[str]) -> list:
        """Normalize what can be normalized; malformed entries become errors."""
        items = []
        for raw in raw_items or []:
            try:
                items.append(adapter(raw))
            except ValidationError as e:
                errors.append(e.message)
        return items

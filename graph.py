"""Production graph: nodes, symmetric edges and flow queries."""

from enum import Enum
from typing import Callable, Iterator

from tarjan import tarjan

from graph_node import GraphBugError, GraphHandle, GraphNode, NodeKind

__all__ = ["Flow", "Graph", "GraphBugError"]


class Flow(Enum):
    """control signal returned by a dfs visitor"""

    CONTINUE = "continue"
    STOP = "stop"


class Graph:
    """Directed graph of production nodes connected handle to handle.

    Each edge is stored twice, once in the source node's ``outgoing_edges``
    and once in the target node's ``incoming_edges``. Node ids are handed out
    from ``node_id_counter`` and never reused.
    """

    def __init__(self):
        self.nodes: dict[int, GraphNode] = {}
        self.node_id_counter = 0

    def node(self, node_id: int, role: str = "") -> GraphNode:
        """Get a node by id.

        Raises:
            GraphBugError: if no node has that id
        """
        try:
            return self.nodes[node_id]
        except KeyError as exc:
            prefix = f"{role} " if role else ""
            raise GraphBugError(f"{prefix}node with id '{node_id}' does not exist") from exc

    def has_node(self, node_id: int) -> bool:
        return node_id in self.nodes

    def add_node(self, node: GraphNode) -> int:
        node_id = self.node_id_counter
        self.node_id_counter += 1
        self.nodes[node_id] = node
        return node_id

    def remove_node(self, node_id: int) -> None:
        """Remove a node that has no edges left.

        Raises:
            GraphBugError: if the node is missing or still has edges
        """
        if self.node(node_id).has_edges():
            raise GraphBugError(f"node '{node_id}' still has edges")
        del self.nodes[node_id]

    def _check_handles(self, source: GraphHandle, target: GraphHandle) -> tuple[GraphNode, GraphNode]:
        source_node = self.node(source.node, "source")
        target_node = self.node(target.node, "target")
        if source.handle not in source_node.outputs():
            raise GraphBugError(f"source handle {source} is not an output")
        if target.handle not in target_node.inputs():
            raise GraphBugError(f"target handle {target} is not an input")
        return source_node, target_node

    def add_edge(self, source: GraphHandle, target: GraphHandle) -> None:
        """Connect an output handle to an input handle.

        Precondition:
            both nodes exist
            source.handle is an output of its node, target.handle an input of its node
            neither handle is connected yet

        Postcondition:
            the source node's outgoing_edges maps source.handle -> target
            the target node's incoming_edges maps target.handle -> source

        Item compatibility is not checked here, see is_valid_connection.

        Raises:
            GraphBugError: if any precondition does not hold
        """
        source_node, target_node = self._check_handles(source, target)
        if source.handle in source_node.outgoing_edges:
            raise GraphBugError(f"source handle {source} already connected")
        if target.handle in target_node.incoming_edges:
            raise GraphBugError(f"target handle {target} already connected")

        source_node.outgoing_edges[source.handle] = target
        target_node.incoming_edges[target.handle] = source

    def remove_edge(self, source: GraphHandle, target: GraphHandle) -> None:
        """Disconnect an existing edge.

        Raises:
            GraphBugError: if either node is missing, a handle is invalid, or
                there is no edge between exactly these two handles
        """
        source_node, target_node = self._check_handles(source, target)
        if source.handle not in source_node.outgoing_edges:
            raise GraphBugError(f"source handle {source} not connected")
        if target.handle not in target_node.incoming_edges:
            raise GraphBugError(f"target handle {target} not connected")
        if source_node.outgoing_edges[source.handle] != target or target_node.incoming_edges[target.handle] != source:
            raise GraphBugError(f"handles {source} and {target} are not connected to each other")

        del source_node.outgoing_edges[source.handle]
        del target_node.incoming_edges[target.handle]

    def edges(self) -> Iterator[tuple[GraphHandle, GraphHandle]]:
        """Iterate (source, target) pairs, each edge once."""
        for node_id, node in self.nodes.items():
            for handle, target in node.outgoing_edges.items():
                yield GraphHandle(node_id, handle), target

    def node_edges(self, node_id: int) -> list[tuple[GraphHandle, GraphHandle]]:
        """List the (source, target) pairs of every edge touching a node, each once."""
        node = self.node(node_id)
        pairs = [(source, GraphHandle(node_id, handle)) for handle, source in node.incoming_edges.items()]
        for handle, target in node.outgoing_edges.items():
            pair = (GraphHandle(node_id, handle), target)
            if pair not in pairs:
                pairs.append(pair)
        return pairs

    def dfs(
        self,
        start: GraphHandle,
        visit: Callable[[GraphHandle, GraphNode], tuple[Flow, object]],
    ):
        """Depth-first search over handles.

        The visitor returns ``(Flow.CONTINUE, neighbors)`` to keep searching
        from the given handles, or ``(Flow.STOP, value)`` to end the search with
        a result. Each handle is visited at most once, so the search terminates
        on cyclic graphs.

        Args:
            start: handle to start from
            visit: visitor called with (handle, node owning the handle)

        Returns:
            the value passed with Flow.STOP, or None if the search ran out
        """
        visited: set[GraphHandle] = set()
        stack = [start]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)

            flow, payload = visit(current, self.node(current.node))
            if flow is Flow.STOP:
                return payload
            stack.extend(payload)
        return None

    def item_at(self, handle: GraphHandle) -> str | None:
        """Find the item carried at a handle.

        Recipe handles and sources determine the item directly. Splitters and
        mergers pass the search on to everything they are connected to.

        Returns:
            item id, or None when nothing reachable determines it
        """

        def visit(current: GraphHandle, node: GraphNode) -> tuple[Flow, object]:
            item = node.match(
                recipe=lambda n: n.entry(current.handle).item,
                source=lambda n: n.item,
                splitter=lambda n: None,
                merger=lambda n: None,
            )
            if item is not None:
                return Flow.STOP, item
            return Flow.CONTINUE, node.neighbors()

        return self.dfs(handle, visit)

    def is_valid_connection(self, source: GraphHandle, target: GraphHandle) -> bool:
        """Check whether connecting source to target keeps items consistent.

        True if either side's item is still undetermined, or both carry the same item.
        """
        source_item = self.item_at(source)
        target_item = self.item_at(target)
        return source_item is None or target_item is None or source_item == target_item

    def expected_output_rate(self, handle: GraphHandle) -> float | None:
        """Sum of what the consumers downstream of an output handle expect.

        Precondition:
            handle is an output handle of an existing node

        Postcondition:
            returns None if the handle is unconnected
            returns None if a merger with more than one connected input is reached
            otherwise returns the summed total_rate of every recipe input reached
            through splitters and single-input mergers

        Args:
            handle: output handle to evaluate

        Returns:
            expected rate per minute, or None if it cannot be determined
        """
        other_side = self.node(handle.node).outgoing_edges.get(handle.handle)
        if other_side is None:
            return None

        total = 0.0
        ambiguous = False

        def visit(current: GraphHandle, node: GraphNode) -> tuple[Flow, object]:
            nonlocal total, ambiguous
            # a merger fed from several inputs only has a combined expectation
            if node.kind is NodeKind.MERGER and len(node.incoming_edges) > 1:
                ambiguous = True
                return Flow.STOP, None
            if node.kind is NodeKind.RECIPE:
                total += node.entry(current.handle).total_rate
                return Flow.CONTINUE, []
            return Flow.CONTINUE, node.outgoing_edges.values()

        self.dfs(other_side, visit)
        return None if ambiguous else total

    def successors(self) -> dict[int, list[int]]:
        """Node-level adjacency: node id -> ids of the nodes it feeds."""
        return {
            node_id: sorted({target.node for target in node.outgoing_edges.values()})
            for node_id, node in self.nodes.items()
        }

    def cycles(self) -> list[list[int]]:
        """Find the groups of nodes that form directed cycles.

        Returns:
            sorted node-id lists, one per strongly connected component of size
            greater than one or node feeding itself, ordered by smallest id
        """
        successors = self.successors()
        groups = []
        for component in tarjan(successors):
            if len(component) > 1 or component[0] in successors[component[0]]:
                groups.append(sorted(component))
        return sorted(groups)

    def __repr__(self) -> str:
        edge_count = sum(len(node.outgoing_edges) for node in self.nodes.values())
        return f"Graph(nodes={len(self.nodes)}, edges={edge_count})"

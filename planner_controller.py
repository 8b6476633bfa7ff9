"""Controller for editing a production plan - no GUI dependencies"""

import logging
import math

from balance_report import RateMismatch, rate_report
from graph import Graph
from graph_node import (
    GraphBugError,
    GraphHandle,
    GraphNode,
    MergerNode,
    NodeKind,
    Position,
    RecipeNode,
    SourceNode,
    SplitterNode,
)
from parsing_utils import parse_buildings_count, parse_overclock, parse_rate
from persistence import load_plan, save_plan

_LOGGER = logging.getLogger("satisplanner")

_UNSET = object()


def _to_position(x, y) -> Position | None:
    """Round canvas coordinates to a Position, None if either is missing or NaN."""
    if x is None or y is None:
        return None
    if isinstance(x, float) and not math.isfinite(x):
        return None
    if isinstance(y, float) and not math.isfinite(y):
        return None
    return Position(round(x), round(y))


class PlannerController:
    """Stateful owner of a production graph - the single writer of plan state"""

    def __init__(self, graph: Graph | None = None):
        """Initialize controller with an existing or empty graph.

        Precondition:
            graph is None or a Graph

        Postcondition:
            self.graph is the given graph, or a new empty Graph

        Args:
            graph: graph to edit, None to start empty
        """
        self.graph = graph if graph is not None else Graph()

    # ========== Nodes ==========

    def _add(self, node: GraphNode) -> int:
        node_id = self.graph.add_node(node)
        _LOGGER.debug("Added %s node %s", node.kind.value, node_id)
        return node_id

    def add_recipe_node(self, recipe_id: str, x: int = 0, y: int = 0) -> int:
        """Add a recipe node running one building at 100%.

        Raises:
            ValueError: if recipe_id is unknown
        """
        return self._add(RecipeNode(recipe_id, Position(x, y)))

    def add_source_node(self, item: str, rate: float, x: int = 0, y: int = 0) -> int:
        """Add a source node supplying a resource item.

        Raises:
            ValueError: if item is not a resource item or rate is negative
        """
        return self._add(SourceNode(item, rate, Position(x, y)))

    def add_splitter_node(self, x: int = 0, y: int = 0) -> int:
        return self._add(SplitterNode(Position(x, y)))

    def add_merger_node(self, x: int = 0, y: int = 0) -> int:
        return self._add(MergerNode(Position(x, y)))

    def remove_node(self, node_id: int) -> None:
        """Remove a node that has no edges.

        Raises:
            GraphBugError: if the node is missing or still connected
        """
        self.graph.remove_node(node_id)
        _LOGGER.debug("Removed node %s", node_id)

    def delete_node(self, node_id: int) -> None:
        """Remove a node together with all of its edges.

        Precondition:
            node_id exists in the graph

        Postcondition:
            every edge touching the node is removed, one by one, from both ends
            the node is removed

        Args:
            node_id: node to delete

        Raises:
            GraphBugError: if the node does not exist
        """
        for source, target in self.graph.node_edges(node_id):
            self.graph.remove_edge(source, target)
        self.graph.remove_node(node_id)
        _LOGGER.info("Deleted node %s", node_id)

    def update_node_pos(self, node_id: int, x, y) -> bool:
        """Move a node.

        Precondition:
            node_id exists in the graph

        Postcondition:
            float coordinates are rounded to integers
            missing or NaN coordinates leave the node where it is

        Args:
            node_id: node to move
            x: new x coordinate
            y: new y coordinate

        Returns:
            True if the node was moved
        """
        node = self.graph.node(node_id)
        pos = _to_position(x, y)
        if pos is None:
            _LOGGER.debug("Ignoring invalid position (%s, %s) for node %s", x, y, node_id)
            return False
        node.pos = pos
        return True

    # ========== Edges ==========

    def can_connect(self, source: GraphHandle, target: GraphHandle) -> bool:
        """Check whether source may be connected to target right now.

        Precondition:
            both nodes exist

        Postcondition:
            returns True only if source is a free output, target is a free
            input and their items do not disagree

        Args:
            source: output handle
            target: input handle

        Returns:
            True if connect would succeed
        """
        source_node = self.graph.node(source.node, "source")
        target_node = self.graph.node(target.node, "target")
        if source.handle not in source_node.outputs() or target.handle not in target_node.inputs():
            return False
        if source_node.is_handle_connected(source.handle) or target_node.is_handle_connected(target.handle):
            return False
        return self.graph.is_valid_connection(source, target)

    def connect(self, source: GraphHandle, target: GraphHandle) -> bool:
        """Connect two handles if can_connect allows it.

        Returns:
            True if the edge was added, False if the graph was left unchanged
        """
        if not self.can_connect(source, target):
            _LOGGER.info("Rejected connection %s -> %s", source, target)
            return False
        self.graph.add_edge(source, target)
        _LOGGER.debug("Connected %s -> %s", source, target)
        return True

    def disconnect(self, source: GraphHandle, target: GraphHandle) -> None:
        """Remove an existing edge.

        Raises:
            GraphBugError: if there is no such edge
        """
        self.graph.remove_edge(source, target)
        _LOGGER.debug("Disconnected %s -> %s", source, target)

    # ========== Node data ==========

    def _node_of_kind(self, node_id: int, kind: NodeKind) -> GraphNode:
        node = self.graph.node(node_id)
        if node.kind is not kind:
            raise GraphBugError(f"node {node_id} is not a {kind.value} node")
        return node

    def set_recipe_node_data(self, node_id: int, recipe_id=_UNSET, buildings_count=_UNSET, overclock=_UNSET) -> None:
        """Update the fields of a recipe node; omitted fields are kept.

        Precondition:
            node_id is a recipe node

        Postcondition:
            given fields are validated and assigned
            a recipe swap never drops or migrates edges

        Args:
            node_id: recipe node to update
            recipe_id: new recipe id
            buildings_count: new number of buildings (>= 1)
            overclock: new clock factor (> 0)

        Raises:
            GraphBugError: if the node is not a recipe node, or the new
                recipe lacks a handle that is currently connected
            ValueError: if a field value is invalid
        """
        node = self._node_of_kind(node_id, NodeKind.RECIPE)
        if recipe_id is not _UNSET:
            node.recipe_id = recipe_id
        if buildings_count is not _UNSET:
            node.buildings_count = buildings_count
        if overclock is not _UNSET:
            node.overclock = overclock
        _LOGGER.debug(
            "Recipe node %s: %s x%s @ %s", node_id, node.recipe_id, node.buildings_count, node.overclock
        )

    def set_source_node_data(self, node_id: int, item=_UNSET, rate=_UNSET) -> None:
        """Update the fields of a source node; omitted fields are kept.

        A source keeps its edges when its item changes. Connections that no
        longer carry a single item show up through is_valid_connection.

        Raises:
            GraphBugError: if the node is not a source node
            ValueError: if a field value is invalid
        """
        node = self._node_of_kind(node_id, NodeKind.SOURCE)
        if item is not _UNSET:
            node.item = item
        if rate is not _UNSET:
            node.rate = rate
        _LOGGER.debug("Source node %s: %s at %s/min", node_id, node.item, node.rate)

    def set_source_rate_text(self, node_id: int, text: str) -> None:
        self.set_source_node_data(node_id, rate=parse_rate(text))

    def set_overclock_text(self, node_id: int, text: str) -> None:
        self.set_recipe_node_data(node_id, overclock=parse_overclock(text))

    def set_buildings_count_text(self, node_id: int, text: str) -> None:
        self.set_recipe_node_data(node_id, buildings_count=parse_buildings_count(text))

    # ========== Reports and files ==========

    def rate_report(self) -> list[RateMismatch]:
        return rate_report(self.graph)

    def save(self, filepath: str) -> None:
        save_plan(filepath, self.graph)

    def load(self, filepath: str) -> None:
        """Replace the current graph with a plan file.

        On failure the current graph is kept.

        Raises:
            OSError: if the file cannot be read
            GraphDecodeError: if the file is not a valid plan
        """
        self.graph = load_plan(filepath)

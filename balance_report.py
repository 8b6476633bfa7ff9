"""Compare what each output supplies against what its consumers expect."""

import logging
from dataclasses import dataclass

from graph import Graph
from graph_node import GraphHandle, GraphNode, MergerNode, NodeKind

_LOGGER = logging.getLogger("satisplanner")

# Rates closer than this are considered balanced
RATE_TOLERANCE = 1e-6

# Label colors for balanced, surplus and deficit flows
BALANCED_COLOR = "#27ae60"
SURPLUS_COLOR = "#2481bf"
DEFICIT_COLOR = "#ec1818"

_REPORTED_KINDS = (NodeKind.SOURCE, NodeKind.RECIPE, NodeKind.MERGER)


@dataclass(frozen=True)
class RateMismatch:
    """supplied vs expected rate at one output handle"""

    handle: GraphHandle
    item: str | None
    expected: float
    actual: float

    @property
    def diff(self) -> float:
        return self.actual - self.expected

    @property
    def is_balanced(self) -> bool:
        return abs(self.diff) <= RATE_TOLERANCE


def supplied_rate(graph: Graph, handle: GraphHandle) -> float | None:
    """Get the rate actually leaving an output handle.

    Precondition:
        handle is an output handle of an existing node

    Postcondition:
        sources supply their configured rate
        recipes supply the total rate of the output entry
        mergers supply the sum of what their connected inputs receive
        splitters return None, their split is not determined by the graph
        returns None if any contribution is unknown or the search loops back

    Args:
        graph: graph to inspect
        handle: output handle

    Returns:
        rate per minute, or None if it cannot be determined
    """
    return _supplied_rate(graph, handle, frozenset())


def _supplied_rate(graph: Graph, handle: GraphHandle, visiting: frozenset) -> float | None:
    if handle in visiting:
        return None
    visiting = visiting | {handle}
    return graph.node(handle.node).match(
        recipe=lambda n: n.entry(handle.handle).total_rate,
        source=lambda n: n.rate,
        splitter=lambda n: None,
        merger=lambda n: _merger_supply(graph, n, visiting),
    )


def _merger_supply(graph: Graph, merger: MergerNode, visiting: frozenset) -> float | None:
    total = 0.0
    for upstream in merger.upstream_neighbors():
        rate = _supplied_rate(graph, upstream, visiting)
        if rate is None:
            return None
        total += rate
    return total


def _node_report(graph: Graph, node_id: int, node: GraphNode) -> list[RateMismatch]:
    report = []
    for handle_id in node.outputs():
        if handle_id not in node.outgoing_edges:
            continue
        handle = GraphHandle(node_id, handle_id)
        expected = graph.expected_output_rate(handle)
        actual = supplied_rate(graph, handle)
        if expected is None or actual is None:
            continue
        report.append(RateMismatch(handle, graph.item_at(handle), expected, actual))
    return report


def rate_report(graph: Graph) -> list[RateMismatch]:
    """Compute supplied vs expected rates for every determinable output.

    Only connected outputs of sources, recipes and mergers are reported, and
    only where both rates are known.

    Returns:
        RateMismatch list ordered by node id, then handle
    """
    report = []
    for node_id in sorted(graph.nodes):
        node = graph.nodes[node_id]
        if node.kind in _REPORTED_KINDS:
            report.extend(_node_report(graph, node_id, node))
    return report


def unbalanced(graph: Graph) -> list[RateMismatch]:
    """Get only the outputs whose supply does not meet demand."""
    mismatches = [entry for entry in rate_report(graph) if not entry.is_balanced]
    for entry in mismatches:
        _LOGGER.debug(
            "Unbalanced %s at %s: expected %s, supplied %s",
            entry.item, entry.handle, entry.expected, entry.actual,
        )
    return mismatches


def _number_text(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_rate_diff(expected: float | None, actual: float) -> str:
    """Format a surplus/deficit label.

    Returns:
        "" if expected is None, "±0" on an exact match, otherwise the signed
        difference with its number text cut to 6 characters
    """
    if expected is None:
        return ""
    diff = actual - expected
    if diff == 0:
        return "±0"
    if diff > 0:
        return f"+{_number_text(diff)[:6]}"
    return f"-{_number_text(-diff)[:6]}"


def rate_diff_color(expected: float | None, actual: float) -> str | None:
    if expected is None:
        return None
    diff = actual - expected
    if abs(diff) <= RATE_TOLERANCE:
        return BALANCED_COLOR
    return SURPLUS_COLOR if diff > 0 else DEFICIT_COLOR

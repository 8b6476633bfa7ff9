"""Graphviz export of production graphs."""

import graphviz

from balance_report import RateMismatch, format_rate_diff, rate_diff_color, rate_report, supplied_rate
from gamedata import get_all_items, get_fluid_color, is_fluid
from graph import Graph
from graph_node import GraphHandle, GraphNode

# The capacities of the conveyors in the game
_CONVEYORS = [60, 120, 270, 480]
# The capacities of the pipelines in the game
_PIPELINES = [300, 600]


def _get_conveyor_mark(flow_rate: float) -> int:
    """Determine which conveyor mark is needed for a given flow rate.

    Precondition:
        flow_rate is a non-negative float

    Postcondition:
        returns mark (1-4) that can handle the flow_rate
        returns 4 for rates exceeding 480/min

    Args:
        flow_rate: items per minute to transport

    Returns:
        conveyor belt mark number (1-4)
    """
    for mark, speed in enumerate(_CONVEYORS, start=1):
        if flow_rate <= speed:
            return mark
    return len(_CONVEYORS)


def _get_pipeline_mark(flow_rate: float) -> int:
    for mark, speed in enumerate(_PIPELINES, start=1):
        if flow_rate <= speed:
            return mark
    return len(_PIPELINES)


def _get_conveyor_stripe_color(mark: int) -> str:
    """Alternate black and white stripes, one black stripe per mark.

    Mark 1: "black", Mark 2: "black:white:black", and so on.
    """
    return ":".join(["black"] * mark).replace(":", ":white:")


def _get_pipeline_stripe_color(mark: int, fluid: str) -> str:
    """Fluid color between grey borders, wider for higher marks.

    Mark 1: "grey:c:c:grey", Mark 2: "grey:c:c:c:c:c:grey"
    """
    color = get_fluid_color(fluid)
    fill_width = 2 if mark == 1 else 5
    return ":".join(["grey", *([color] * fill_width), "grey"])


def get_edge_color(item: str | None, flow_rate: float | None) -> str:
    """Get the edge color for a given item and flow rate.

    Precondition:
        flow_rate is None or a non-negative float

    Postcondition:
        fluids get pipeline stripes, solids get conveyor stripes
        unknown item or rate gives plain grey

    Args:
        item: item id, or None if undetermined
        flow_rate: units per minute, or None if undetermined

    Returns:
        graphviz color specification string
    """
    if item is None or flow_rate is None:
        return "grey"
    if is_fluid(item):
        return _get_pipeline_stripe_color(_get_pipeline_mark(flow_rate), item)
    return _get_conveyor_stripe_color(_get_conveyor_mark(flow_rate))


def _format_flow(flow_rate: float) -> str:
    return str(int(flow_rate)) if flow_rate == int(flow_rate) else f"{flow_rate:.2f}".rstrip("0").rstrip(".")


def _dot_id(node_id: int) -> str:
    return f"N{node_id}"


def _item_name(item: str | None) -> str:
    if item is None:
        return "?"
    items = get_all_items()
    return items[item].name if item in items else item


def _add_node(dot: graphviz.Digraph, node_id: int, node: GraphNode) -> None:
    attrs = node.match(
        recipe=lambda n: {
            "label": (
                f"{n.recipe().name}\n"
                f"{n.buildings_count}x {n.recipe().produced_in.value} @ {_format_flow(n.overclock * 100)}%"
            ),
            "shape": "box",
            "fillcolor": "lightblue" if n.recipe().alternative else "white",
        },
        source=lambda n: {
            "label": f"{_item_name(n.item)}\n{_format_flow(n.rate)}/min",
            "shape": "ellipse",
            "fillcolor": "orange",
        },
        splitter=lambda n: {"label": "Splitter", "shape": "diamond", "fillcolor": "lightyellow"},
        merger=lambda n: {"label": "Merger", "shape": "diamond", "fillcolor": "lightcoral"},
    )
    dot.node(_dot_id(node_id), style="filled", **attrs)


def _add_edge(
    dot: graphviz.Digraph,
    graph: Graph,
    source: GraphHandle,
    target: GraphHandle,
    mismatches: dict[GraphHandle, RateMismatch],
) -> None:
    item = graph.item_at(source)
    flow_rate = supplied_rate(graph, source)
    flow_label = "?" if flow_rate is None else f"{_format_flow(flow_rate)}/min"
    attrs = {
        "label": f"{_item_name(item)}\n{flow_label}",
        "color": get_edge_color(item, flow_rate),
        "penwidth": "2",
    }

    mismatch = mismatches.get(source)
    if mismatch is not None and not mismatch.is_balanced:
        attrs["label"] += f" ({format_rate_diff(mismatch.expected, mismatch.actual)})"
        attrs["fontcolor"] = rate_diff_color(mismatch.expected, mismatch.actual)

    dot.edge(_dot_id(source.node), _dot_id(target.node), **attrs)


def to_digraph(graph: Graph) -> graphviz.Digraph:
    """Render a graph as a graphviz diagram.

    Precondition:
        graph satisfies the edge symmetry invariant

    Postcondition:
        one DOT node per graph node, one DOT edge per connection
        edges are labelled with item name and supplied rate
        unbalanced outputs carry the rate difference in a colored label

    Args:
        graph: graph to render

    Returns:
        graphviz.Digraph, layout is left to graphviz
    """
    dot = graphviz.Digraph(comment="Production Plan")
    dot.attr(rankdir="LR")

    for node_id in sorted(graph.nodes):
        _add_node(dot, node_id, graph.nodes[node_id])

    mismatches = {entry.handle: entry for entry in rate_report(graph)}
    for source, target in graph.edges():
        _add_edge(dot, graph, source, target, mismatches)

    return dot

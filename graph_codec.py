"""JSON encoding and validated decoding of production graphs."""

import json
import logging
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, Strict, StringConstraints, ValidationError, field_validator

from gamedata import RESOURCE_ITEMS, is_known_recipe
from graph import Graph
from graph_node import (
    GraphBugError,
    GraphHandle,
    GraphNode,
    MergerNode,
    Position,
    RecipeNode,
    SourceNode,
    SplitterNode,
)

_LOGGER = logging.getLogger("satisplanner")

Int32 = Annotated[int, Strict(), Field(ge=-(2**31), le=2**31 - 1)]
UInt32 = Annotated[int, Strict(), Field(ge=0, le=2**32 - 1)]
NodeKey = Annotated[str, StringConstraints(pattern=r"^[0-9]+$")]


class GraphDecodeError(ValueError):
    """Raised when persisted graph data is malformed"""


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PosModel(_Schema):
    x: Int32
    y: Int32


class RecipeNodeModel(_Schema):
    type: Literal["recipe"]
    pos: PosModel
    recipe: Annotated[str, Strict()]
    buildings_count: Annotated[int, Strict(), Field(alias="buildingsCount", ge=1, le=2**32 - 1)]
    overclock: Annotated[float, Strict(), Field(gt=0, allow_inf_nan=False)]

    @field_validator("recipe")
    @classmethod
    def _known_recipe(cls, value: str) -> str:
        if not is_known_recipe(value):
            raise ValueError(f"unknown recipe '{value}'")
        return value


class SourceNodeModel(_Schema):
    type: Literal["source"]
    pos: PosModel
    item: Annotated[str, Strict()]
    rate: Annotated[float, Strict(), Field(ge=0, allow_inf_nan=False)]

    @field_validator("item")
    @classmethod
    def _resource_item(cls, value: str) -> str:
        if value not in RESOURCE_ITEMS:
            raise ValueError(f"'{value}' is not a resource item")
        return value


class SplitterNodeModel(_Schema):
    type: Literal["splitter"]
    pos: PosModel


class MergerNodeModel(_Schema):
    type: Literal["merger"]
    pos: PosModel


NodeModel = Annotated[
    Union[RecipeNodeModel, SourceNodeModel, SplitterNodeModel, MergerNodeModel],
    Field(discriminator="type"),
]


class HandleModel(_Schema):
    node: UInt32
    handle: UInt32


class EdgeModel(_Schema):
    source: HandleModel
    target: HandleModel


class GraphModel(_Schema):
    nodes: dict[NodeKey, NodeModel]
    edges: list[EdgeModel]


def _encode_node(node: GraphNode) -> dict:
    pos = {"x": node.pos.x, "y": node.pos.y}
    return node.match(
        recipe=lambda n: {
            "type": "recipe",
            "pos": pos,
            "recipe": n.recipe_id,
            "buildingsCount": n.buildings_count,
            "overclock": n.overclock,
        },
        source=lambda n: {"type": "source", "pos": pos, "item": n.item, "rate": n.rate},
        splitter=lambda n: {"type": "splitter", "pos": pos},
        merger=lambda n: {"type": "merger", "pos": pos},
    )


def _encode_handle(handle: GraphHandle) -> dict:
    return {"node": handle.node, "handle": handle.handle}


def encode(graph: Graph) -> dict:
    """Encode a graph into plain JSON-compatible data.

    Precondition:
        graph satisfies the edge symmetry invariant

    Postcondition:
        returns {"nodes": {...}, "edges": [...]}
        node ids become decimal string keys
        each edge is emitted once, from its source side

    Args:
        graph: graph to encode

    Returns:
        dict ready for json.dumps
    """
    return {
        "nodes": {str(node_id): _encode_node(node) for node_id, node in graph.nodes.items()},
        "edges": [
            {"source": _encode_handle(source), "target": _encode_handle(target)}
            for source, target in graph.edges()
        ],
    }


def _build_node(model) -> GraphNode:
    pos = Position(model.pos.x, model.pos.y)
    if isinstance(model, RecipeNodeModel):
        return RecipeNode(model.recipe, pos, model.buildings_count, model.overclock)
    if isinstance(model, SourceNodeModel):
        return SourceNode(model.item, model.rate, pos)
    if isinstance(model, SplitterNodeModel):
        return SplitterNode(pos)
    return MergerNode(pos)


def _validate(data) -> GraphModel:
    try:
        return GraphModel.model_validate(data)
    except ValidationError as exc:
        _LOGGER.error("Raw data that failed to validate: %s", data)
        _LOGGER.error("Validation errors: %s", exc.errors())
        raise GraphDecodeError(f"Validation failed when loading graph data: {exc.error_count()} error(s)") from exc


def decode(data) -> Graph:
    """Rebuild a graph from encoded data.

    Precondition:
        data is the parsed JSON of an encoded graph

    Postcondition:
        on failure no graph is returned and nothing is partially built
        node ids are taken from the keys, node_id_counter is max id + 1
        edges are replayed through Graph.add_edge

    Args:
        data: encoded graph (as produced by encode)

    Returns:
        the decoded Graph

    Raises:
        GraphDecodeError: if the data does not match the schema or its
            edges are structurally invalid
    """
    model = _validate(data)

    graph = Graph()
    for raw_id, node_model in model.nodes.items():
        node_id = int(raw_id)
        if node_id in graph.nodes:
            raise GraphDecodeError(f"duplicate node id '{raw_id}'")
        graph.nodes[node_id] = _build_node(node_model)
    graph.node_id_counter = max(graph.nodes, default=-1) + 1

    for edge in model.edges:
        source = GraphHandle(edge.source.node, edge.source.handle)
        target = GraphHandle(edge.target.node, edge.target.handle)
        try:
            graph.add_edge(source, target)
        except GraphBugError as exc:
            _LOGGER.error("Invalid edge %s -> %s in graph data: %s", source, target, exc)
            raise GraphDecodeError(f"Invalid edge in graph data: {exc}") from exc

    return graph


def dumps(graph: Graph, indent: int | None = None) -> str:
    return json.dumps(encode(graph), indent=indent)


def loads(text: str) -> Graph:
    """Decode a graph from JSON text.

    Raises:
        GraphDecodeError: if the text is not JSON or fails validation
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GraphDecodeError(f"Graph data is not valid JSON: {exc}") from exc
    return decode(data)

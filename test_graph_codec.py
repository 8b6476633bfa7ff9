"""Tests for graph_codec module"""

import copy
import logging

from pytest import mark, raises

from graph import Graph
from graph_codec import GraphDecodeError, decode, dumps, encode, loads
from graph_node import GraphBugError, GraphHandle, MergerNode, Position, RecipeNode, SourceNode, SplitterNode


def _sample_graph() -> Graph:
    graph = Graph()
    ore = graph.add_node(SourceNode("iron-ore", 120, Position(0, 0)))
    splitter = graph.add_node(SplitterNode(Position(100, 0)))
    smelter = graph.add_node(RecipeNode("iron-ingot", Position(200, -50), buildings_count=2, overclock=1.5))
    merger = graph.add_node(MergerNode(Position(300, 0)))
    graph.add_edge(GraphHandle(ore, 0), GraphHandle(splitter, 0))
    graph.add_edge(GraphHandle(splitter, 1), GraphHandle(smelter, 0))
    graph.add_edge(GraphHandle(smelter, 4), GraphHandle(merger, 0))
    return graph


def _sample_data() -> dict:
    return {
        "nodes": {
            "0": {"type": "source", "pos": {"x": 0, "y": 0}, "item": "iron-ore", "rate": 120.0},
            "1": {"type": "splitter", "pos": {"x": 100, "y": 0}},
            "2": {
                "type": "recipe",
                "pos": {"x": 200, "y": -50},
                "recipe": "iron-ingot",
                "buildingsCount": 2,
                "overclock": 1.5,
            },
            "3": {"type": "merger", "pos": {"x": 300, "y": 0}},
        },
        "edges": [
            {"source": {"node": 0, "handle": 0}, "target": {"node": 1, "handle": 0}},
            {"source": {"node": 1, "handle": 1}, "target": {"node": 2, "handle": 0}},
            {"source": {"node": 2, "handle": 4}, "target": {"node": 3, "handle": 0}},
        ],
    }


def test_encode():
    """encode should emit every node and each edge once from the source side"""
    assert encode(_sample_graph()) == _sample_data()


def test_encode_empty():
    """an empty graph should encode to empty collections"""
    assert encode(Graph()) == {"nodes": {}, "edges": []}


def test_decode():
    """decode should rebuild nodes, fields and symmetric edges"""
    graph = decode(_sample_data())

    assert sorted(graph.nodes) == [0, 1, 2, 3]
    assert graph.node_id_counter == 4

    smelter = graph.node(2)
    assert isinstance(smelter, RecipeNode)
    assert smelter.recipe_id == "iron-ingot"
    assert smelter.buildings_count == 2
    assert smelter.overclock == 1.5
    assert smelter.pos == Position(200, -50)
    assert smelter.incoming_edges == {0: GraphHandle(1, 1)}
    assert smelter.outgoing_edges == {4: GraphHandle(3, 0)}

    source = graph.node(0)
    assert isinstance(source, SourceNode)
    assert (source.item, source.rate) == ("iron-ore", 120.0)
    assert isinstance(graph.node(1), SplitterNode)
    assert isinstance(graph.node(3), MergerNode)


def test_round_trip_idempotent():
    """encoding a decoded graph should reproduce the data"""
    data = encode(_sample_graph())
    assert encode(decode(data)) == data
    assert encode(decode(encode(decode(data)))) == data


def test_decode_sparse_ids():
    """node_id_counter should continue after the largest id"""
    data = {
        "nodes": {
            "3": {"type": "splitter", "pos": {"x": 0, "y": 0}},
            "17": {"type": "merger", "pos": {"x": 0, "y": 0}},
        },
        "edges": [],
    }
    graph = decode(data)
    assert graph.node_id_counter == 18
    assert graph.add_node(SplitterNode()) == 18


def test_decode_empty():
    """an empty graph should decode with a fresh counter"""
    graph = decode({"nodes": {}, "edges": []})
    assert graph.nodes == {}
    assert graph.node_id_counter == 0


def test_decode_unknown_recipe(caplog):
    """unknown recipe ids should fail validation, log, and build nothing"""
    data = _sample_data()
    data["nodes"]["2"]["recipe"] = "unobtainium"

    with caplog.at_level(logging.ERROR, logger="satisplanner"):
        with raises(GraphDecodeError, match="Validation failed") as exc_info:
            decode(data)

    assert "Raw data that failed to validate" in caplog.text
    assert "unobtainium" in caplog.text
    assert exc_info.value.__cause__ is not None


def test_decode_error_is_value_error():
    """decode errors should be ValueErrors"""
    with raises(ValueError):
        decode({"nodes": "nope", "edges": []})


def _mutated(mutate):
    data = _sample_data()
    mutate(data)
    return data


@mark.parametrize(
    "data",
    [
        _mutated(lambda d: d.update(extra=1)),
        _mutated(lambda d: d.pop("edges")),
        _mutated(lambda d: d["nodes"].update({"a1": {"type": "splitter", "pos": {"x": 0, "y": 0}}})),
        _mutated(lambda d: d["nodes"].update({"-4": {"type": "splitter", "pos": {"x": 0, "y": 0}}})),
        _mutated(lambda d: d["nodes"]["1"].update(type="balancer")),
        _mutated(lambda d: d["nodes"]["1"].pop("type")),
        _mutated(lambda d: d["nodes"]["1"].update(color="red")),
        _mutated(lambda d: d["nodes"]["1"]["pos"].update(x=2**31)),
        _mutated(lambda d: d["nodes"]["1"]["pos"].update(y=1.5)),
        _mutated(lambda d: d["nodes"]["1"]["pos"].update(x="0")),
        _mutated(lambda d: d["nodes"]["2"].update(buildingsCount=0)),
        _mutated(lambda d: d["nodes"]["2"].update(buildingsCount=2**32)),
        _mutated(lambda d: d["nodes"]["2"].update(buildingsCount=True)),
        _mutated(lambda d: d["nodes"]["2"].update(overclock=0.0)),
        _mutated(lambda d: d["nodes"]["2"].update(overclock=-1.0)),
        _mutated(lambda d: d["nodes"]["2"].update(overclock=float("nan"))),
        _mutated(lambda d: d["nodes"]["2"].pop("overclock")),
        _mutated(lambda d: d["nodes"]["0"].update(item="iron-ingot")),
        _mutated(lambda d: d["nodes"]["0"].update(rate=-1.0)),
        _mutated(lambda d: d["nodes"]["0"].update(rate=float("inf"))),
        _mutated(lambda d: d["edges"][0]["source"].update(node=-1)),
        _mutated(lambda d: d["edges"][0]["target"].update(handle=2**32)),
        _mutated(lambda d: d["edges"][0].update(weight=3)),
    ],
)
def test_decode_rejects_schema_violations(data):
    """data violating the schema should be rejected"""
    with raises(GraphDecodeError, match="Validation failed"):
        decode(data)


def test_decode_does_not_mutate_input():
    """decode should leave its input untouched"""
    data = _sample_data()
    original = copy.deepcopy(data)
    decode(data)
    assert data == original


def test_decode_invalid_edge():
    """structurally invalid edges should be reported as decode errors"""
    data = _sample_data()
    data["edges"].append({"source": {"node": 2, "handle": 0}, "target": {"node": 3, "handle": 1}})

    with raises(GraphDecodeError, match="Invalid edge") as exc_info:
        decode(data)
    assert isinstance(exc_info.value.__cause__, GraphBugError)


def test_decode_edge_to_missing_node():
    """edges to missing nodes should be reported as decode errors"""
    data = _sample_data()
    data["edges"].append({"source": {"node": 3, "handle": 3}, "target": {"node": 99, "handle": 0}})

    with raises(GraphDecodeError, match="does not exist"):
        decode(data)


def test_decode_duplicate_edge():
    """connecting a handle twice should be reported as a decode error"""
    data = _sample_data()
    data["edges"].append(copy.deepcopy(data["edges"][0]))

    with raises(GraphDecodeError, match="already connected"):
        decode(data)


def test_decode_duplicate_node_ids():
    """keys naming the same id twice should be rejected"""
    data = {
        "nodes": {
            "7": {"type": "splitter", "pos": {"x": 0, "y": 0}},
            "07": {"type": "merger", "pos": {"x": 0, "y": 0}},
        },
        "edges": [],
    }
    with raises(GraphDecodeError, match="duplicate node id"):
        decode(data)


def test_dumps_loads():
    """JSON text should round trip"""
    text = dumps(_sample_graph())
    assert encode(loads(text)) == _sample_data()


def test_loads_invalid_json():
    """text that is not JSON should be a decode error"""
    with raises(GraphDecodeError, match="not valid JSON"):
        loads("{nodes:")

"""Versioned save format for plans and structural comparison of saved graphs."""

import json
import logging
import os
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, Strict, ValidationError, field_validator

from graph import Graph
from graph_codec import GraphDecodeError, decode, encode

_LOGGER = logging.getLogger("satisplanner")

# Bump when the persisted layout changes
PERSISTED_STATE_VERSION = 0


class _StateModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    graph: dict


class PersistedStateModel(BaseModel):
    """envelope around an encoded graph"""

    model_config = ConfigDict(extra="forbid")

    version: Annotated[int, Strict(), Field(ge=0)]
    state: _StateModel

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value > PERSISTED_STATE_VERSION:
            raise ValueError(
                f"state version {value} is newer than the supported version {PERSISTED_STATE_VERSION}"
            )
        return value


def to_persisted_state(graph: Graph) -> dict:
    return {"version": PERSISTED_STATE_VERSION, "state": {"graph": encode(graph)}}


def from_persisted_state(data) -> Graph:
    """Decode a graph from a persisted state envelope.

    Raises:
        GraphDecodeError: if the envelope or the graph inside is malformed
    """
    try:
        envelope = PersistedStateModel.model_validate(data)
    except ValidationError as exc:
        _LOGGER.error("Persisted state failed to validate: %s", exc.errors())
        raise GraphDecodeError(f"Invalid persisted state: {exc.error_count()} error(s)") from exc
    return decode(envelope.state.graph)


def save_plan(filepath: str, graph: Graph) -> None:
    """Save a graph to a JSON plan file.

    Precondition:
        filepath is a writable path

    Postcondition:
        file holds the persisted state envelope as UTF-8 JSON

    Args:
        filepath: path of the plan file
        graph: graph to save
    """
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(to_persisted_state(graph), f, indent=2)
    _LOGGER.info("Plan saved to %s", os.path.basename(filepath))


def load_plan(filepath: str) -> Graph:
    """Load a graph from a JSON plan file.

    Precondition:
        filepath is a readable path

    Postcondition:
        returns a fully validated graph

    Args:
        filepath: path of the plan file

    Returns:
        the loaded Graph

    Raises:
        OSError: if the file cannot be read
        GraphDecodeError: if the file is not a valid plan
    """
    with open(filepath, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise GraphDecodeError(f"Plan file is not valid JSON: {exc}") from exc
    graph = from_persisted_state(data)
    _LOGGER.info("Plan loaded from %s", os.path.basename(filepath))
    return graph


def _origin(graph_json: dict, translation_invariant: bool) -> tuple[int, int]:
    nodes = graph_json["nodes"].values()
    if not translation_invariant or not nodes:
        return 0, 0
    return min(n["pos"]["x"] for n in nodes), min(n["pos"]["y"] for n in nodes)


def _node_key(node: dict, origin: tuple[int, int]) -> tuple:
    rest = tuple(sorted((key, value) for key, value in node.items() if key != "pos"))
    return (node["pos"]["x"] - origin[0], node["pos"]["y"] - origin[1]), rest


def _edge_tuple(edge: dict) -> tuple[int, int, int, int]:
    source, target = edge["source"], edge["target"]
    return source["node"], source["handle"], target["node"], target["handle"]


def _group_by_key(graph_json: dict, origin: tuple[int, int]) -> dict[tuple, list[int]]:
    groups: dict[tuple, list[int]] = {}
    for node_id, node in graph_json["nodes"].items():
        groups.setdefault(_node_key(node, origin), []).append(int(node_id))
    for ids in groups.values():
        ids.sort()
    return groups


def _map_edges(edges: set, a_to_b: dict[int, int]) -> set:
    return {(a_to_b.get(s), sh, a_to_b.get(t), th) for s, sh, t, th in edges}


def _edges_agree(edges: list, a_to_b: dict[int, int], edges_b: set) -> bool:
    """Check the edges whose both ends are already paired."""
    for s, sh, t, th in edges:
        if s in a_to_b and t in a_to_b and (a_to_b[s], sh, a_to_b[t], th) not in edges_b:
            return False
    return True


def _find_pairing(
    pending: list[int],
    candidates: dict[int, list[int]],
    edges_by_node: dict[int, list],
    edges_a: set,
    edges_b: set,
    a_to_b: dict[int, int],
    used: set[int],
) -> bool:
    """Backtrack over the nodes that have several lookalikes in the other graph.

    Postcondition:
        on success a_to_b holds a pairing under which the edge sets are equal
    """
    if not pending:
        return _map_edges(edges_a, a_to_b) == edges_b
    id_a, rest = pending[0], pending[1:]
    for id_b in candidates[id_a]:
        if id_b in used:
            continue
        a_to_b[id_a] = id_b
        if _edges_agree(edges_by_node.get(id_a, []), a_to_b, edges_b):
            used.add(id_b)
            if _find_pairing(rest, candidates, edges_by_node, edges_a, edges_b, a_to_b, used):
                return True
            used.discard(id_b)
        del a_to_b[id_a]
    return False


def is_graph_json_equal(a: dict, b: dict, translation_invariant: bool = False) -> bool:
    """Check whether two encoded graphs describe the same structure.

    Node ids and the order of nodes and edges are ignored. Nodes are paired up
    by position and fields. A node with a unique position and fields has only
    one possible partner; among lookalike nodes every pairing is tried until
    one makes the edges match.

    Args:
        a: encoded graph
        b: encoded graph
        translation_invariant: compare positions relative to each graph's
            smallest x and y instead of absolutely

    Returns:
        True if there is a node pairing under which the edges match exactly
    """
    edges_a = {_edge_tuple(edge) for edge in a["edges"]}
    edges_b = {_edge_tuple(edge) for edge in b["edges"]}
    if len(a["nodes"]) != len(b["nodes"]) or len(edges_a) != len(edges_b):
        _LOGGER.error(
            "Length mismatch: %s/%s nodes, %s/%s edges",
            len(a["nodes"]), len(b["nodes"]), len(edges_a), len(edges_b),
        )
        return False

    groups_a = _group_by_key(a, _origin(a, translation_invariant))
    groups_b = _group_by_key(b, _origin(b, translation_invariant))
    for key, ids_a in groups_a.items():
        if len(groups_b.get(key, [])) != len(ids_a):
            _LOGGER.error("Node %s not found in other graph", ids_a[0])
            return False

    a_to_b: dict[int, int] = {}
    candidates: dict[int, list[int]] = {}
    for key, ids_a in groups_a.items():
        if len(ids_a) == 1:
            a_to_b[ids_a[0]] = groups_b[key][0]
        else:
            for id_a in ids_a:
                candidates[id_a] = groups_b[key]

    edges_by_node: dict[int, list] = {}
    for edge in edges_a:
        edges_by_node.setdefault(edge[0], []).append(edge)
        if edge[2] != edge[0]:
            edges_by_node.setdefault(edge[2], []).append(edge)

    pending = sorted(candidates)
    used: set[int] = set()
    if not _find_pairing(pending, candidates, edges_by_node, edges_a, edges_b, a_to_b, used):
        _LOGGER.error("Edges differ under every node pairing of %s nodes", len(a["nodes"]))
        return False
    return True


def is_state_equal(a: dict, b: dict, translation_invariant: bool = False) -> bool:
    """Check whether two persisted states hold the same version and graph."""
    if a["version"] != b["version"]:
        _LOGGER.error("Version mismatch: %s != %s", a["version"], b["version"])
        return False
    return is_graph_json_equal(a["state"]["graph"], b["state"]["graph"], translation_invariant)

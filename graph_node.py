"""Typed nodes of a production graph and their handle layouts."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from gamedata import MAX_RECIPE_IO, Recipe, get_recipe, is_known_recipe, is_resource_item, rate_per_minute

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

# Recipe inputs use handles 0..3, outputs use 4..7
RECIPE_OUTPUT_OFFSET = MAX_RECIPE_IO

SOURCE_OUTPUTS = (0,)

SPLITTER_INPUTS = (0,)
SPLITTER_OUTPUTS = (1, 2, 3)

MERGER_INPUTS = (0, 1, 2)
MERGER_OUTPUTS = (3,)


class GraphBugError(RuntimeError):
    """Raised when the graph is used in a structurally invalid way"""


class NodeKind(str, Enum):
    """closed set of node variants"""

    RECIPE = "recipe"
    SOURCE = "source"
    SPLITTER = "splitter"
    MERGER = "merger"


@dataclass(frozen=True)
class GraphHandle:
    """a specific handle of a specific node"""

    node: int
    handle: int


@dataclass(frozen=True)
class Position:
    """integer canvas position of a node, opaque to the graph"""

    x: int
    y: int

    def __post_init__(self):
        for axis, value in (("x", self.x), ("y", self.y)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Position {axis} must be an integer, got {value!r}")
            if not _INT32_MIN <= value <= _INT32_MAX:
                raise ValueError(f"Position {axis}={value} is outside the int32 range")


def recipe_handle_for(idx: int, is_output: bool) -> int:
    """Get the handle id of the idx-th recipe input or output."""
    return RECIPE_OUTPUT_OFFSET + idx if is_output else idx


class GraphNode:
    """Base class for all node variants.

    Edges are stored on both ends: ``outgoing_edges`` maps an output handle of
    this node to the input it feeds, ``incoming_edges`` maps an input handle of
    this node to the output feeding it.
    """

    kind: NodeKind

    def __init__(self, pos: Position | None = None):
        self.pos = pos if pos is not None else Position(0, 0)
        self.incoming_edges: dict[int, GraphHandle] = {}
        self.outgoing_edges: dict[int, GraphHandle] = {}

    def inputs(self) -> list[int]:
        raise NotImplementedError

    def outputs(self) -> list[int]:
        raise NotImplementedError

    def handles(self) -> list[int]:
        return [*self.inputs(), *self.outputs()]

    def upstream_neighbors(self) -> list[GraphHandle]:
        """Get the output handles feeding this node, in input order."""
        return [self.incoming_edges[h] for h in self.inputs() if h in self.incoming_edges]

    def downstream_neighbors(self) -> list[GraphHandle]:
        """Get the input handles fed by this node, in output order."""
        return [self.outgoing_edges[h] for h in self.outputs() if h in self.outgoing_edges]

    def neighbors(self) -> list[GraphHandle]:
        return [*self.upstream_neighbors(), *self.downstream_neighbors()]

    def is_handle_connected(self, handle: int) -> bool:
        return handle in self.incoming_edges or handle in self.outgoing_edges

    def has_edges(self) -> bool:
        return bool(self.incoming_edges) or bool(self.outgoing_edges)

    def match(
        self,
        *,
        recipe: Callable[["RecipeNode"], object],
        source: Callable[["SourceNode"], object],
        splitter: Callable[["SplitterNode"], object],
        merger: Callable[["MergerNode"], object],
    ):
        """Dispatch on the node variant.

        Every arm must be given, so adding a variant breaks all callers
        that do not handle it.

        Args:
            recipe: called with the node if it is a RecipeNode
            source: called with the node if it is a SourceNode
            splitter: called with the node if it is a SplitterNode
            merger: called with the node if it is a MergerNode

        Returns:
            whatever the selected arm returns

        Raises:
            GraphBugError: if the node kind is not one of the four variants
        """
        arms = {
            NodeKind.RECIPE: recipe,
            NodeKind.SOURCE: source,
            NodeKind.SPLITTER: splitter,
            NodeKind.MERGER: merger,
        }
        arm = arms.get(getattr(self, "kind", None))
        if arm is None:
            raise GraphBugError(f"unknown node kind for {type(self).__name__}")
        return arm(self)


@dataclass(frozen=True)
class RecipeEntry:
    """a recipe input or output line resolved against a concrete node"""

    item: str
    amount: float
    handle: int
    rate: float
    total_rate: float
    connected_to: GraphHandle | None


def _check_buildings_count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Buildings count must be a positive integer, got {value!r}")
    return value


def _check_overclock(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise ValueError(f"Overclock must be a finite number greater than 0, got {value!r}")
    return float(value)


def _check_rate(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise ValueError(f"Rate must be a finite non-negative number, got {value!r}")
    return float(value)


class RecipeNode(GraphNode):
    """A group of identical buildings running one recipe."""

    kind = NodeKind.RECIPE

    def __init__(self, recipe_id: str, pos: Position | None = None, buildings_count: int = 1, overclock: float = 1.0):
        super().__init__(pos)
        if not is_known_recipe(recipe_id):
            raise ValueError(f"Unknown recipe '{recipe_id}'")
        self._recipe_id = recipe_id
        self.buildings_count = buildings_count
        self.overclock = overclock

    @property
    def recipe_id(self) -> str:
        return self._recipe_id

    @recipe_id.setter
    def recipe_id(self, recipe_id: str) -> None:
        """Swap the recipe, keeping every existing edge valid.

        Raises:
            ValueError: if recipe_id is not in the catalog
            GraphBugError: if a connected handle does not exist under the new recipe
        """
        new_recipe = get_recipe(recipe_id)
        orphaned = self._orphaned_handles(new_recipe)
        if orphaned:
            raise GraphBugError(
                f"cannot switch to recipe '{recipe_id}': connected handles {orphaned} would no longer exist"
            )
        self._recipe_id = recipe_id

    @property
    def buildings_count(self) -> int:
        return self._buildings_count

    @buildings_count.setter
    def buildings_count(self, value: int) -> None:
        self._buildings_count = _check_buildings_count(value)

    @property
    def overclock(self) -> float:
        return self._overclock

    @overclock.setter
    def overclock(self, value: float) -> None:
        self._overclock = _check_overclock(value)

    def _orphaned_handles(self, new_recipe: Recipe) -> list[int]:
        new_handles = set(self._handles_for(new_recipe))
        connected = [*self.incoming_edges, *self.outgoing_edges]
        return sorted(h for h in connected if h not in new_handles)

    @staticmethod
    def _handles_for(recipe: Recipe) -> list[int]:
        return [
            *(recipe_handle_for(idx, False) for idx in range(len(recipe.inputs))),
            *(recipe_handle_for(idx, True) for idx in range(len(recipe.outputs))),
        ]

    def can_use_recipe(self, recipe_id: str) -> bool:
        """Check whether assigning recipe_id would keep every edge valid."""
        if not is_known_recipe(recipe_id):
            return False
        return not self._orphaned_handles(get_recipe(recipe_id))

    def recipe(self) -> Recipe:
        return get_recipe(self._recipe_id)

    def inputs(self) -> list[int]:
        return [recipe_handle_for(idx, False) for idx in range(len(self.recipe().inputs))]

    def outputs(self) -> list[int]:
        return [recipe_handle_for(idx, True) for idx in range(len(self.recipe().outputs))]

    def multiplier(self) -> float:
        return self._buildings_count * self._overclock

    def entry(self, handle: int) -> RecipeEntry:
        """Resolve a handle to its recipe line with per-minute rates.

        Precondition:
            handle is one of self.handles()

        Postcondition:
            rate is the per-building rate at 100% clock
            total_rate is rate * buildings_count * overclock

        Args:
            handle: input or output handle of this node

        Returns:
            RecipeEntry for that handle

        Raises:
            GraphBugError: if handle is not a handle of this node
        """
        recipe = self.recipe()
        if handle < RECIPE_OUTPUT_OFFSET:
            lines, edges, idx = recipe.inputs, self.incoming_edges, handle
        else:
            lines, edges, idx = recipe.outputs, self.outgoing_edges, handle - RECIPE_OUTPUT_OFFSET
        if not 0 <= idx < len(lines):
            raise GraphBugError(f"handle {handle} does not exist on recipe '{self._recipe_id}'")

        line = lines[idx]
        rate = rate_per_minute(line.amount, recipe.duration)
        return RecipeEntry(
            item=line.item,
            amount=line.amount,
            handle=handle,
            rate=rate,
            total_rate=rate * self.multiplier(),
            connected_to=edges.get(handle),
        )

    def input_entries(self) -> list[RecipeEntry]:
        return [self.entry(handle) for handle in self.inputs()]

    def output_entries(self) -> list[RecipeEntry]:
        return [self.entry(handle) for handle in self.outputs()]


class SourceNode(GraphNode):
    """An external supply of one raw resource at a fixed rate."""

    kind = NodeKind.SOURCE

    def __init__(self, item: str, rate: float, pos: Position | None = None):
        super().__init__(pos)
        self.item = item
        self.rate = rate

    @property
    def item(self) -> str:
        return self._item

    @item.setter
    def item(self, item: str) -> None:
        if not is_resource_item(item):
            raise ValueError(f"Source item must be a resource item, got '{item}'")
        self._item = item

    @property
    def rate(self) -> float:
        return self._rate

    @rate.setter
    def rate(self, value: float) -> None:
        self._rate = _check_rate(value)

    def inputs(self) -> list[int]:
        return []

    def outputs(self) -> list[int]:
        return list(SOURCE_OUTPUTS)


class SplitterNode(GraphNode):
    kind = NodeKind.SPLITTER

    def inputs(self) -> list[int]:
        return list(SPLITTER_INPUTS)

    def outputs(self) -> list[int]:
        return list(SPLITTER_OUTPUTS)


class MergerNode(GraphNode):
    kind = NodeKind.MERGER

    def inputs(self) -> list[int]:
        return list(MERGER_INPUTS)

    def outputs(self) -> list[int]:
        return list(MERGER_OUTPUTS)

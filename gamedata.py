"""Read-only Satisfactory reference catalog: items, recipes, fluids."""

import json
import os
from dataclasses import dataclass
from enum import Enum

from frozendict import frozendict

import satisplanner_data

# All rates are "per minute"

# No recipe in the game has more than this many inputs or outputs
MAX_RECIPE_IO = 4

# The extractable items a source node may emit, in menu order
RESOURCE_ITEMS = (
    "iron-ore",
    "copper-ore",
    "limestone",
    "coal",
    "water",
    "raw-quartz",
    "sulfur",
    "crude-oil",
    "caterium-ore",
    "bauxite",
    "uranium",
    "sam",
)

# The rate menu offered for source nodes
SOURCE_RATE_PRESETS = (30, 60, 120, 240, 480, 960, 1200)

_DATA_DIR = os.path.dirname(os.path.abspath(satisplanner_data.__file__))


class ProductionBuilding(str, Enum):
    """buildings that run recipes"""

    SMELTER = "smelter"
    FOUNDRY = "foundry"
    CONSTRUCTOR = "constructor"
    ASSEMBLER = "assembler"
    MANUFACTURER = "manufacturer"
    REFINERY = "refinery"
    PACKAGER = "packager"
    BLENDER = "blender"
    NUCLEAR_REACTOR = "nuclear-reactor"
    PARTICLE_ACCELERATOR = "particle-accelerator"
    CONVERTER = "converter"
    QUANTUM_ENCODER = "quantum-encoder"


@dataclass(frozen=True)
class Item:
    """a Satisfactory item"""

    name: str
    description: str


@dataclass(frozen=True)
class IoEntry:
    """one input or output line of a recipe"""

    item: str
    amount: float


@dataclass(frozen=True)
class Recipe:
    """a Satisfactory recipe"""

    name: str
    duration: float
    produced_in: ProductionBuilding
    alternative: bool
    inputs: tuple[IoEntry, ...]
    outputs: tuple[IoEntry, ...]
    power_requirements: tuple[float, float] | None = None


def _load_json(filename: str):
    with open(os.path.join(_DATA_DIR, filename), "r", encoding="utf-8") as f:
        return json.load(f)


def _create_item(item_data: dict) -> Item:
    return Item(item_data["name"], item_data.get("description", ""))


def _create_io_entries(entries_data: list[dict], items: dict[str, Item], recipe_id: str) -> tuple[IoEntry, ...]:
    """Convert raw input/output lines into IoEntry tuples.

    Precondition:
        entries_data is a list of dicts with "item" and "amount" keys
        items is the fully loaded item table

    Postcondition:
        returns IoEntry tuple preserving the raw order

    Args:
        entries_data: raw list of {"item", "amount"} dicts
        items: item table used to check references
        recipe_id: recipe id for error messages

    Returns:
        tuple of IoEntry

    Raises:
        ValueError: if an entry references an unknown item, or there are
            more than MAX_RECIPE_IO entries
    """
    if len(entries_data) > MAX_RECIPE_IO:
        raise ValueError(
            f"Recipe '{recipe_id}' has {len(entries_data)} entries, at most {MAX_RECIPE_IO} are supported"
        )
    entries = []
    for entry in entries_data:
        if entry["item"] not in items:
            raise ValueError(f"Recipe '{recipe_id}' references unknown item '{entry['item']}'")
        entries.append(IoEntry(entry["item"], float(entry["amount"])))
    return tuple(entries)


def _create_recipe(recipe_id: str, recipe_data: dict, items: dict[str, Item]) -> Recipe:
    """Create a Recipe object from raw JSON data.

    Precondition:
        recipe_data contains "name", "duration", "producedIn", "inputs", "outputs"
        items is the fully loaded item table

    Postcondition:
        returns a frozen Recipe with tuple inputs/outputs

    Args:
        recipe_id: recipe id (used for error messages)
        recipe_data: raw recipe dict
        items: item table used to check references

    Returns:
        Recipe object

    Raises:
        ValueError: if the duration is not positive, the building is unknown
            or any entry is invalid
    """
    duration = float(recipe_data["duration"])
    if duration <= 0:
        raise ValueError(f"Recipe '{recipe_id}' has non-positive duration {duration}")
    try:
        produced_in = ProductionBuilding(recipe_data["producedIn"])
    except ValueError as exc:
        raise ValueError(
            f"Recipe '{recipe_id}' is produced in unknown building '{recipe_data['producedIn']}'"
        ) from exc
    power = recipe_data.get("powerRequirements")
    return Recipe(
        name=recipe_data["name"],
        duration=duration,
        produced_in=produced_in,
        alternative=bool(recipe_data.get("alternative", False)),
        inputs=_create_io_entries(recipe_data["inputs"], items, recipe_id),
        outputs=_create_io_entries(recipe_data["outputs"], items, recipe_id),
        power_requirements=(float(power[0]), float(power[1])) if power else None,
    )


def _check_resource_items(items: dict[str, Item]) -> None:
    missing = [item for item in RESOURCE_ITEMS if item not in items]
    if missing:
        raise ValueError(f"Resource items missing from the item table: {missing}")


def _check_fluids(fluids: dict[str, str], items: dict[str, Item]) -> None:
    unknown = [fluid for fluid in fluids if fluid not in items]
    if unknown:
        raise ValueError(f"Fluid colors defined for unknown items: {unknown}")


# This is just to keep the global scope cleaner
def _populate_lookups() -> tuple[frozendict, frozendict, frozendict]:
    """Load and validate all catalog tables from the JSON data files.

    Precondition:
        items.json, recipes.json and fluids.json ship in the satisplanner_data package

    Postcondition:
        returns (items, recipes, fluids) as frozendicts
        every recipe reference, resource item and fluid is a known item

    Returns:
        tuple of (item table, recipe table, fluid color table)

    Raises:
        ValueError: if the data is inconsistent
    """
    items = {item_id: _create_item(data) for item_id, data in _load_json("items.json").items()}
    _check_resource_items(items)
    recipes = {
        recipe_id: _create_recipe(recipe_id, data, items)
        for recipe_id, data in _load_json("recipes.json").items()
    }
    fluids = _load_json("fluids.json")
    _check_fluids(fluids, items)
    return frozendict(items), frozendict(recipes), frozendict(fluids)


_ITEMS, _RECIPES, _FLUIDS = _populate_lookups()


def rate_per_minute(amount: float, duration: float) -> float:
    """Convert an amount per craft cycle into a rate per minute.

    Args:
        amount: units per cycle
        duration: cycle length in seconds

    Returns:
        units per minute
    """
    return amount / duration * 60


def get_item(item_id: str) -> Item:
    """Get an item by id.

    Raises:
        ValueError: if the item id is unknown
    """
    try:
        return _ITEMS[item_id]
    except KeyError as exc:
        raise ValueError(f"Unknown item '{item_id}'") from exc


def get_recipe(recipe_id: str) -> Recipe:
    """Get a recipe by id.

    Precondition:
        recipe_id is a string

    Postcondition:
        returns the Recipe registered under recipe_id

    Args:
        recipe_id: recipe id to look up

    Returns:
        Recipe object

    Raises:
        ValueError: if the recipe id is unknown
    """
    try:
        return _RECIPES[recipe_id]
    except KeyError as exc:
        raise ValueError(f"Unknown recipe '{recipe_id}'") from exc


def get_all_items() -> frozendict:
    return _ITEMS


def get_all_recipes() -> frozendict:
    """Get all recipes by id.

    Returns:
        immutable mapping of recipe id -> Recipe
    """
    return _RECIPES


def is_known_recipe(recipe_id: str) -> bool:
    return recipe_id in _RECIPES


def is_resource_item(item_id: str) -> bool:
    return item_id in RESOURCE_ITEMS


def get_resource_items() -> tuple[str, ...]:
    return RESOURCE_ITEMS


def get_recipes_producing(item_id: str) -> dict[str, Recipe]:
    """Get all recipes that list item_id among their outputs.

    Precondition:
        _RECIPES is populated

    Postcondition:
        returns a new dict in catalog order
        modifications to the returned dict do not affect the catalog

    Args:
        item_id: item to look for

    Returns:
        dict mapping recipe id -> Recipe
    """
    return {
        recipe_id: recipe
        for recipe_id, recipe in _RECIPES.items()
        if any(entry.item == item_id for entry in recipe.outputs)
    }


def get_recipes_consuming(item_id: str) -> dict[str, Recipe]:
    """Get all recipes that list item_id among their inputs.

    Returns:
        dict mapping recipe id -> Recipe, in catalog order
    """
    return {
        recipe_id: recipe
        for recipe_id, recipe in _RECIPES.items()
        if any(entry.item == item_id for entry in recipe.inputs)
    }


def get_fluids() -> list[str]:
    """Get all fluid item ids.

    Returns:
        list of fluid item ids (water, crude-oil, etc.)
    """
    return list(_FLUIDS.keys())


def is_fluid(item_id: str) -> bool:
    return item_id in _FLUIDS


def get_fluid_color(fluid: str) -> str:
    """Get the hex color code for a given fluid.

    Precondition:
        fluid is a non-empty string
        _FLUIDS is populated with fluid colors

    Postcondition:
        returns hex color string for the fluid

    Args:
        fluid: fluid item id

    Returns:
        hex color code as string (e.g., "#1E90FF")

    Raises:
        KeyError: if fluid is not in _FLUIDS
    """
    return _FLUIDS[fluid]

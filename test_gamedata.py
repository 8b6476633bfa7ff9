"""Tests for gamedata module"""

import os

from pytest import raises

import satisplanner_data
from gamedata import (
    MAX_RECIPE_IO,
    RESOURCE_ITEMS,
    SOURCE_RATE_PRESETS,
    IoEntry,
    ProductionBuilding,
    Recipe,
    _DATA_DIR,
    _create_recipe,
    get_all_items,
    get_all_recipes,
    get_fluid_color,
    get_fluids,
    get_item,
    get_recipe,
    get_recipes_consuming,
    get_recipes_producing,
    get_resource_items,
    is_fluid,
    is_known_recipe,
    is_resource_item,
    rate_per_minute,
)


def test_get_recipe():
    """recipe lookup should return the catalog entry in order"""
    recipe = get_recipe("steel-ingot")

    assert isinstance(recipe, Recipe)
    assert recipe.name == "Steel Ingot"
    assert recipe.duration == 4
    assert recipe.produced_in is ProductionBuilding.FOUNDRY
    assert recipe.alternative is False
    assert recipe.inputs == (IoEntry("iron-ore", 3), IoEntry("coal", 3))
    assert recipe.outputs == (IoEntry("steel-ingot", 3),)
    assert recipe.power_requirements is None


def test_get_recipe_unknown():
    """unknown recipe ids should raise ValueError"""
    with raises(ValueError, match="Unknown recipe 'unobtainium'"):
        get_recipe("unobtainium")


def test_get_item():
    """item lookup should return names and reject unknown ids"""
    assert get_item("iron-plate").name == "Iron Plate"
    with raises(ValueError, match="Unknown item"):
        get_item("unobtainium")


def test_is_known_recipe():
    """is_known_recipe should only accept catalog ids"""
    assert is_known_recipe("iron-ingot")
    assert is_known_recipe("alternate-pure-iron-ingot")
    assert not is_known_recipe("Iron Ingot")


def test_recipes_respect_io_limit():
    """no recipe should have more inputs or outputs than there are handles"""
    for recipe_id, recipe in get_all_recipes().items():
        assert 0 < len(recipe.inputs) <= MAX_RECIPE_IO, recipe_id
        assert 0 < len(recipe.outputs) <= MAX_RECIPE_IO, recipe_id
        assert recipe.duration > 0, recipe_id


def test_recipes_reference_known_items():
    """every recipe line should reference a catalog item"""
    items = get_all_items()
    for recipe in get_all_recipes().values():
        for entry in (*recipe.inputs, *recipe.outputs):
            assert entry.item in items


def test_resource_items():
    """resource items should be the twelve extractable items, all in the catalog"""
    assert len(RESOURCE_ITEMS) == 12
    assert get_resource_items() == RESOURCE_ITEMS
    assert RESOURCE_ITEMS[0] == "iron-ore"
    for item in RESOURCE_ITEMS:
        assert item in get_all_items()
        assert is_resource_item(item)
    assert not is_resource_item("iron-ingot")


def test_source_rate_presets():
    """source rate presets should be ascending"""
    assert list(SOURCE_RATE_PRESETS) == sorted(SOURCE_RATE_PRESETS)
    assert 120 in SOURCE_RATE_PRESETS


def test_rate_per_minute():
    """rate_per_minute should convert per-cycle amounts"""
    assert rate_per_minute(30, 1) == 1800
    assert rate_per_minute(3, 6) == 30
    assert rate_per_minute(1, 4) == 15


def test_catalog_is_immutable():
    """catalog tables should not be writable"""
    with raises(TypeError):
        get_all_recipes()["new"] = get_recipe("iron-ingot")
    with raises(TypeError):
        get_all_items()["new"] = get_item("iron-ore")


def test_get_recipes_producing():
    """recipes producing an item should include alternates and by-products"""
    screws = get_recipes_producing("screw")
    assert set(screws) == {"screw", "alternate-cast-screw"}

    residue = get_recipes_producing("heavy-oil-residue")
    assert "plastic" in residue
    assert "rubber" in residue

    assert get_recipes_producing("iron-ore") == {"iron-ore-limestone": get_recipe("iron-ore-limestone")}


def test_get_recipes_consuming():
    """recipes consuming crude oil should be the refinery recipes"""
    consumers = get_recipes_consuming("crude-oil")
    assert set(consumers) == {"plastic", "rubber", "fuel"}
    for recipe in consumers.values():
        assert recipe.produced_in is ProductionBuilding.REFINERY


def test_fluids():
    """fluids should have colors and be catalog items"""
    fluids = get_fluids()
    assert "water" in fluids
    assert "crude-oil" in fluids
    assert is_fluid("water")
    assert not is_fluid("iron-ore")
    assert get_fluid_color("water").startswith("#")
    with raises(KeyError):
        get_fluid_color("iron-ore")


def test_power_requirements():
    """variable power recipes should expose their power range"""
    assert get_recipe("iron-ore-limestone").power_requirements == (100.0, 400.0)


def test_create_recipe_rejects_bad_duration():
    """recipes with non-positive duration should be rejected"""
    data = {
        "name": "Broken", "duration": 0, "producedIn": "smelter",
        "inputs": [{"item": "iron-ore", "amount": 1}],
        "outputs": [{"item": "iron-ingot", "amount": 1}],
    }
    with raises(ValueError, match="non-positive duration"):
        _create_recipe("broken", data, get_all_items())


def test_create_recipe_rejects_unknown_item():
    """recipes referencing unknown items should be rejected"""
    data = {
        "name": "Broken", "duration": 2, "producedIn": "smelter",
        "inputs": [{"item": "unobtainium", "amount": 1}],
        "outputs": [{"item": "iron-ingot", "amount": 1}],
    }
    with raises(ValueError, match="unknown item 'unobtainium'"):
        _create_recipe("broken", data, get_all_items())


def test_create_recipe_rejects_too_many_inputs():
    """recipes with more than MAX_RECIPE_IO inputs should be rejected"""
    data = {
        "name": "Broken", "duration": 2, "producedIn": "manufacturer",
        "inputs": [{"item": "iron-ore", "amount": 1}] * (MAX_RECIPE_IO + 1),
        "outputs": [{"item": "iron-ingot", "amount": 1}],
    }
    with raises(ValueError, match="at most 4"):
        _create_recipe("broken", data, get_all_items())


def test_create_recipe_rejects_unknown_building():
    """recipes produced in an unknown building should be rejected"""
    data = {
        "name": "Broken", "duration": 2, "producedIn": "workbench",
        "inputs": [{"item": "iron-ore", "amount": 1}],
        "outputs": [{"item": "iron-ingot", "amount": 1}],
    }
    with raises(ValueError, match="unknown building 'workbench'"):
        _create_recipe("broken", data, get_all_items())


def test_catalog_ships_with_data_package():
    """catalog JSON should be read from the installed data package"""
    assert _DATA_DIR == os.path.dirname(os.path.abspath(satisplanner_data.__file__))
    for name in ("items.json", "recipes.json", "fluids.json"):
        assert os.path.isfile(os.path.join(_DATA_DIR, name))

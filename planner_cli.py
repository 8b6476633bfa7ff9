#!/usr/bin/env python3
"""Command-line interface for inspecting and editing production plans."""

import argparse
import logging
import os
import sys

from balance_report import format_rate_diff, unbalanced
from gamedata import get_all_recipes, get_item, get_recipes_producing, is_resource_item
from graph import Graph
from graph_dot import to_digraph
from parsing_utils import parse_item_rate
from planner_controller import PlannerController


def _item_disagreements(graph: Graph) -> list[tuple]:
    """Find connections whose two ends carry different items.

    Returns:
        list of (source, target, source_item, target_item)
    """
    findings = []
    for source, target in graph.edges():
        source_item = graph.item_at(source)
        target_item = graph.item_at(target)
        if source_item is not None and target_item is not None and source_item != target_item:
            findings.append((source, target, source_item, target_item))
    return findings


def _check_plan(filepath: str, strict: bool) -> int:
    """Load a plan and print its structural and rate findings.

    Precondition:
        filepath is a readable plan file

    Postcondition:
        summary and findings are printed to stdout
        returns 1 if strict and anything was found, else 0

    Args:
        filepath: plan file to check
        strict: treat findings as failure

    Returns:
        exit code
    """
    controller = PlannerController()
    controller.load(filepath)
    graph = controller.graph

    edge_count = sum(1 for _ in graph.edges())
    print(f"{os.path.basename(filepath)}: {len(graph.nodes)} nodes, {edge_count} edges")

    disagreements = _item_disagreements(graph)
    for source, target, source_item, target_item in disagreements:
        print(f"Item mismatch: {source} carries {source_item} but {target} expects {target_item}")

    cycles = graph.cycles()
    for cycle in cycles:
        print(f"Cycle through nodes {cycle}")

    mismatches = unbalanced(graph)
    for entry in mismatches:
        print(
            f"Unbalanced {entry.item} at {entry.handle}: "
            f"supplies {entry.actual:g}/min, expected {entry.expected:g}/min "
            f"({format_rate_diff(entry.expected, entry.actual)})"
        )

    findings = len(disagreements) + len(cycles) + len(mismatches)
    if findings == 0:
        print("No issues found")
    return 1 if strict and findings else 0


def _output_graphviz(graphviz_source: str, output_file: str | None) -> None:
    """Write graphviz source to file or stdout.

    Args:
        graphviz_source: graphviz source code to output
        output_file: optional file path to write to (None = stdout)
    """
    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(graphviz_source)
        print(f"Graphviz written to {output_file}", file=sys.stderr)
    else:
        print(graphviz_source)


def _dot_plan(filepath: str, output_file: str | None) -> int:
    controller = PlannerController()
    controller.load(filepath)
    _output_graphviz(to_digraph(controller.graph).source, output_file)
    return 0


def _format_entries(entries) -> str:
    return ", ".join(f"{entry.amount:g} {entry.item}" for entry in entries)


def _list_recipes(item: str | None) -> int:
    """Print catalog recipes, optionally only those producing item.

    Raises:
        ValueError: if item is not a known item
    """
    if item is None:
        recipes = get_all_recipes()
    else:
        get_item(item)
        recipes = get_recipes_producing(item)

    for recipe_id, recipe in recipes.items():
        marker = " (alternate)" if recipe.alternative else ""
        print(
            f"{recipe_id}: {recipe.name}{marker} [{recipe.produced_in.value}, {recipe.duration:g}s] "
            f"{_format_entries(recipe.inputs)} -> {_format_entries(recipe.outputs)}"
        )
    return 0


def _add_source(filepath: str, item_rate: str, x: int, y: int) -> int:
    """Append a source node to a plan file, creating the file if missing.

    Raises:
        ValueError: if item_rate is malformed or the item is not a resource
    """
    item, rate = parse_item_rate(item_rate)
    if not is_resource_item(item):
        raise ValueError(f"'{item}' is not a resource item")

    controller = PlannerController()
    if os.path.exists(filepath):
        controller.load(filepath)
    node_id = controller.add_source_node(item, rate, x, y)
    controller.save(filepath)
    print(f"Added source node {node_id}: {item} at {rate:g}/min")
    return 0


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Returns:
        ArgumentParser instance ready to parse command-line arguments
    """
    parser = argparse.ArgumentParser(
        description="Inspect and edit Satisfactory production plans",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report item mismatches, cycles and unbalanced outputs
  %(prog)s check plan.json --strict

  # Render a plan with graphviz
  %(prog)s dot plan.json -f plan.dot

  # Which recipes make screws?
  %(prog)s recipes --item screw

  # Add an iron ore supply to a plan
  %(prog)s add-source plan.json iron-ore:120 --x 0 --y 200
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Check a plan for problems")
    check.add_argument("plan", help="Plan file (JSON)")
    check.add_argument("--strict", action="store_true", help="Exit with 1 if anything is found")

    dot = subparsers.add_parser("dot", help="Write graphviz source for a plan")
    dot.add_argument("plan", help="Plan file (JSON)")
    dot.add_argument("--output-file", "-f", help="Write graphviz output to file instead of stdout")

    recipes = subparsers.add_parser("recipes", help="List catalog recipes")
    recipes.add_argument("--item", help="Only recipes producing this item id")

    add_source = subparsers.add_parser("add-source", help="Add a source node to a plan")
    add_source.add_argument("plan", help="Plan file (JSON), created if missing")
    add_source.add_argument("item_rate", metavar="ITEM:RATE", help='Resource and rate, e.g. "iron-ore:120"')
    add_source.add_argument("--x", type=int, default=0, help="Node x position")
    add_source.add_argument("--y", type=int, default=0, help="Node y position")

    return parser


def main():
    """Main CLI function.

    Precondition:
        command-line arguments are available via sys.argv

    Postcondition:
        the selected subcommand has run
        returns 0 on success, 1 on error

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args()

    # Setup logging to capture controller messages
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        if args.command == "check":
            return _check_plan(args.plan, args.strict)
        if args.command == "dot":
            return _dot_plan(args.plan, args.output_file)
        if args.command == "recipes":
            return _list_recipes(args.item)
        return _add_source(args.plan, args.item_rate, args.x, args.y)

    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

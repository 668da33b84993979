"""Read a production network from a JSON description.

Layout of a description::

    {
        "items": [{"name": "Iron Ore"}, {"name": "Water", "fluid": true}],
        "machines": [{"name": "Smelter", "power": 4}],
        "recipes": [{"name": "Iron Ingot", "machine": "Smelter", "cycle_time": 2,
                     "in": {"Iron Ore": 1}, "out": {"Iron Ingot": 1}}],
        "nodes": [{"id": "smelter", "type": "machine", "recipe": "Iron Ingot"},
                  {"id": "line", "type": "group", "children": [...]}],
        "connections": [{"from": "miner.0", "to": "smelter.0", "belt": 2}]
    }

Ports are referenced as "<node id>.<index>", outputs on the source side and
inputs on the target side.
"""

import json
from typing import Any

from frozendict import frozendict

from connections import BeltTier
from network import FactoryNetwork
from nodes import GroupNode, MachineNode, MergerNode, Node, SplitterNode
from recipes import Item, MachineType, Recipe, RecipeIngredient


def _require(entry: dict, key: str, context: str) -> Any:
    """Get a mandatory key of a description entry.

    Raises:
        ValueError: if the key is missing
    """
    if not isinstance(entry, dict):
        raise ValueError(f"{context} must be a JSON object")
    if key not in entry:
        raise ValueError(f"{context} is missing '{key}'")
    return entry[key]


def _to_number(value, convert, problem: str):
    """Convert a JSON value with int or float.

    Raises:
        ValueError: with the problem text if value is not a number
    """
    if isinstance(value, bool):
        raise ValueError(problem)
    try:
        return convert(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(problem) from exc


def _number(entry: dict, key: str, default, convert, context: str):
    """Read an optional numeric field.

    Raises:
        ValueError: if the field is present but not a number
    """
    return _to_number(entry.get(key, default), convert, f"{context} has invalid '{key}'")


def _list(entry: dict, key: str, context: str) -> list:
    """Read an optional list field, empty when absent.

    Raises:
        ValueError: if the field is present but not a list
    """
    value = entry.get(key, [])
    if not isinstance(value, list):
        raise ValueError(f"{context} has invalid '{key}', expected a list")
    return value


def _mapping(entry: dict, key: str, context: str) -> dict:
    value = entry.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"{context} has invalid '{key}', expected an object")
    return value


def _parse_items(entries: list[dict]) -> frozendict:
    """Build the item catalog.

    Precondition:
        entries is a list of dicts with a "name" key

    Postcondition:
        returns frozendict mapping item name to Item
        missing ids are numbered from 1 in list order

    Raises:
        ValueError: if a name is missing or repeated
    """
    items = {}
    for index, entry in enumerate(entries, start=1):
        name = _require(entry, "name", f"Item #{index}")
        if name in items:
            raise ValueError(f"Duplicate item '{name}'")
        items[name] = Item(entry.get("id", index), name, bool(entry.get("fluid", False)))
    return frozendict(items)


def _parse_machines(entries: list[dict]) -> frozendict:
    machines = {}
    for index, entry in enumerate(entries, start=1):
        name = _require(entry, "name", f"Machine #{index}")
        if name in machines:
            raise ValueError(f"Duplicate machine '{name}'")
        power = _number(entry, "power", 0.0, float, f"Machine '{name}'")
        machines[name] = MachineType(entry.get("id", index), name, power)
    return frozendict(machines)


def _lookup(catalog: frozendict, name: str, kind: str, context: str):
    try:
        return catalog[name]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"{context} references unknown {kind} '{name}'") from exc


def _parse_ingredients(amounts: dict[str, float], is_input: bool, items: frozendict, context: str) -> list[RecipeIngredient]:
    return [
        RecipeIngredient(_lookup(items, name, "item", context), _number(amounts, name, 0.0, float, context), is_input)
        for name in amounts
    ]


def _parse_recipes(entries: list[dict], items: frozendict, machines: frozendict) -> frozendict:
    """Build the recipe catalog.

    Precondition:
        items and machines are the catalogs parsed from the same description

    Postcondition:
        returns frozendict mapping recipe name to Recipe
        inputs precede outputs in each recipe's ingredients
        cycle_time defaults to 60 seconds, so amounts read as per-minute rates

    Raises:
        ValueError: if a name is missing or repeated, or an item/machine is unknown
    """
    recipes = {}
    for index, entry in enumerate(entries, start=1):
        name = _require(entry, "name", f"Recipe #{index}")
        if name in recipes:
            raise ValueError(f"Duplicate recipe '{name}'")
        context = f"Recipe '{name}'"
        machine = _lookup(machines, entry["machine"], "machine", context) if "machine" in entry else None
        ingredients = _parse_ingredients(_mapping(entry, "in", context), True, items, context)
        ingredients += _parse_ingredients(_mapping(entry, "out", context), False, items, context)
        recipes[name] = Recipe(
            entry.get("id", index),
            name,
            _number(entry, "cycle_time", 60.0, float, context),
            tuple(ingredients),
            machine,
        )
    return frozendict(recipes)


def _build_machine(entry: dict, node_id: str, recipes: frozendict, machines: frozendict) -> MachineNode:
    context = f"Node '{node_id}'"
    recipe = _lookup(recipes, entry["recipe"], "recipe", context) if "recipe" in entry else None
    if "machine" in entry:
        machine_type = _lookup(machines, entry["machine"], "machine", context)
    else:
        machine_type = recipe.machine if recipe else None
    return MachineNode(
        machine_type,
        recipe,
        name=entry.get("name"),
        overclock_percent=_number(entry, "overclock", 100.0, float, context),
        node_id=node_id,
    )


def _build_splitter(entry: dict, node_id: str) -> SplitterNode:
    context = f"Node '{node_id}'"
    splitter = SplitterNode(
        entry.get("name", "Splitter"),
        outputs=_number(entry, "outputs", 3, int, context),
        even_split=bool(entry.get("even_split", True)),
        node_id=node_id,
    )
    targets = _list(entry, "targets", context)
    if len(targets) > len(splitter.outputs):
        raise ValueError(f"{context} has more targets than outputs")
    for index, (port, target) in enumerate(zip(splitter.outputs, targets)):
        if target is not None:
            port.target_flow = _to_number(target, float, f"{context} has invalid target {index}")
    return splitter


def _build_node(entry: dict, recipes: frozendict, machines: frozendict) -> Node:
    """Create one node (and, for groups, its children) from its description.

    Precondition:
        entry is a dict with "id" and "type" keys

    Postcondition:
        returns the node, with nested children already attached for groups

    Raises:
        ValueError: if the type is unknown or a reference cannot be resolved
    """
    node_id = str(_require(entry, "id", "Node"))
    node_type = _require(entry, "type", f"Node '{node_id}'")

    if node_type == "machine":
        return _build_machine(entry, node_id, recipes, machines)
    if node_type == "splitter":
        return _build_splitter(entry, node_id)
    if node_type == "merger":
        inputs = _number(entry, "inputs", 3, int, f"Node '{node_id}'")
        return MergerNode(entry.get("name", "Merger"), inputs=inputs, node_id=node_id)
    if node_type == "group":
        group = GroupNode(entry.get("name", node_id), entry.get("description", ""), node_id=node_id)
        for child in _list(entry, "children", f"Node '{node_id}'"):
            group.add_child(_build_node(child, recipes, machines))
        return group
    raise ValueError(f"Node '{node_id}' has unknown type '{node_type}'")


def _resolve_port(network: FactoryNetwork, reference: str, outputs: bool) -> str:
    """Turn a "<node id>.<index>" reference into a port id.

    Raises:
        ValueError: if the reference is malformed or names no port
    """
    node_id, _, index_str = str(reference).rpartition(".")
    if not node_id or not index_str.isdigit():
        raise ValueError(f"Invalid port reference '{reference}'. Expected 'node.index'")
    node = network.get_node(node_id)
    ports = node.outputs if outputs else node.inputs
    index = int(index_str)
    if index >= len(ports):
        kind = "output" if outputs else "input"
        raise ValueError(f"Node '{node_id}' has no {kind} port {index}")
    return ports[index].id


def _parse_belt(value, context: str) -> int:
    """Accept a tier number or a BeltTier name such as "PIPE_MK1"."""
    if isinstance(value, str) and not value.isdigit():
        try:
            return BeltTier[value.upper()]
        except KeyError as exc:
            raise ValueError(f"{context} has unknown belt tier '{value}'") from exc
    return _to_number(value, int, f"{context} has invalid 'belt'")


def parse_network(data: dict) -> FactoryNetwork:
    """Build a FactoryNetwork from a parsed JSON description.

    Precondition:
        data is a dict following the layout in the module docstring

    Postcondition:
        returns a network containing every described node and connection
        no calculation has run yet

    Args:
        data: decoded JSON description

    Returns:
        FactoryNetwork ready for calculate()

    Raises:
        ValueError: if the description is malformed or inconsistent
    """
    if not isinstance(data, dict):
        raise ValueError("Network description must be a JSON object")

    items = _parse_items(_list(data, "items", "Network description"))
    machines = _parse_machines(_list(data, "machines", "Network description"))
    recipes = _parse_recipes(_list(data, "recipes", "Network description"), items, machines)

    network = FactoryNetwork()
    for entry in _list(data, "nodes", "Network description"):
        network.add_node(_build_node(entry, recipes, machines))

    for index, entry in enumerate(_list(data, "connections", "Network description"), start=1):
        context = f"Connection #{index}"
        source = _resolve_port(network, _require(entry, "from", context), outputs=True)
        target = _resolve_port(network, _require(entry, "to", context), outputs=False)
        item = _lookup(items, entry["item"], "item", context) if "item" in entry else None
        network.connect(source, target, _parse_belt(entry.get("belt", BeltTier.MK1), context), item)

    return network


def load_network(path: str) -> FactoryNetwork:
    """Read a network description file.

    Precondition:
        path names a readable UTF-8 JSON file

    Postcondition:
        returns the described FactoryNetwork

    Raises:
        ValueError: if the file is not valid JSON or the description is invalid
        OSError: if the file cannot be read
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    return parse_network(data)

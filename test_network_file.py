"""Tests for network_file module"""

import json
import os
import tempfile

from pytest import approx, raises

from connections import BeltTier
from network_file import load_network, parse_network
from nodes import GroupNode, MachineNode, MergerNode, SplitterNode


def _description():
    return {
        "items": [{"name": "Iron Ore"}, {"name": "Iron Ingot"}, {"name": "Water", "fluid": True}],
        "machines": [{"name": "Miner", "power": 5}, {"name": "Smelter", "power": 4}],
        "recipes": [
            {"name": "Iron Ore", "machine": "Miner", "out": {"Iron Ore": 120}},
            {"name": "Iron Ingot", "machine": "Smelter", "cycle_time": 2, "in": {"Iron Ore": 1}, "out": {"Iron Ingot": 1}},
        ],
        "nodes": [
            {"id": "miner", "type": "machine", "recipe": "Iron Ore"},
            {"id": "split", "type": "splitter", "outputs": 2},
            {
                "id": "line",
                "type": "group",
                "name": "Smelting",
                "children": [
                    {"id": "smelter_1", "type": "machine", "recipe": "Iron Ingot", "overclock": 150},
                    {"id": "smelter_2", "type": "machine", "recipe": "Iron Ingot"},
                ],
            },
            {"id": "merge", "type": "merger", "inputs": 2},
        ],
        "connections": [
            {"from": "miner.0", "to": "split.0", "belt": 2},
            {"from": "split.0", "to": "smelter_1.0"},
            {"from": "split.1", "to": "smelter_2.0", "belt": "mk2"},
            {"from": "smelter_1.0", "to": "merge.0"},
            {"from": "smelter_2.0", "to": "merge.1"},
        ],
    }


def test_parse_network_nodes():
    """every described node should be built with its settings"""
    network = parse_network(_description())

    miner = network.get_node("miner")
    smelter = network.get_node("smelter_1")
    assert isinstance(miner, MachineNode)
    assert miner.machine_type.name == "Miner"
    assert smelter.overclock_percent == 150
    assert isinstance(network.get_node("split"), SplitterNode)
    assert len(network.get_node("split").outputs) == 2
    assert isinstance(network.get_node("merge"), MergerNode)


def test_parse_network_groups():
    """group children are nested and registered"""
    network = parse_network(_description())

    line = network.get_node("line")
    assert isinstance(line, GroupNode)
    assert line.name == "Smelting"
    assert [child.id for child in line.children] == ["smelter_1", "smelter_2"]
    assert network.get_node("smelter_2").parent_group_id == "line"


def test_parse_network_connections():
    """connections resolve port references, items and belts"""
    network = parse_network(_description())

    first, second, third = network.connections[:3]
    assert first.belt == BeltTier.MK2
    assert first.item.name == "Iron Ore"
    assert second.belt == BeltTier.MK1
    assert third.belt == BeltTier.MK2
    assert third.target_port_id == network.get_node("smelter_2").inputs[0].id


def test_parse_network_recipe_rates():
    """cycle time and amounts are turned into per-minute rates"""
    network = parse_network(_description())

    assert network.get_node("miner").active_recipe.outputs == {"Iron Ore": approx(120)}
    assert network.get_node("smelter_2").active_recipe.inputs == {"Iron Ore": approx(30)}


def test_parse_network_calculates():
    """a parsed network is ready for a calculation pass"""
    network = parse_network(_description())
    result = network.calculate()

    assert not result.has_cycles
    assert not result.has_bottlenecks
    # each smelter gets half of 120, smelter_1 at 150% uses 45 of it
    assert network.get_node("smelter_1").efficiency == approx(1.0)
    assert network.get_node("merge").outputs[0].current_flow == approx(45 + 30)


def test_parse_network_splitter_targets():
    """splitter targets set fixed output flows"""
    data = _description()
    data["nodes"][1].update(even_split=False, targets=[20, None])
    network = parse_network(data)

    splitter = network.get_node("split")
    assert not splitter.even_split
    assert splitter.outputs[0].target_flow == 20.0
    assert splitter.outputs[1].target_flow is None


def test_parse_network_too_many_targets():
    """a splitter cannot have more targets than outputs"""
    data = _description()
    data["nodes"][1]["targets"] = [10, 10, 10]
    with raises(ValueError, match="more targets than outputs"):
        parse_network(data)


def test_parse_network_unknown_recipe():
    """an unknown recipe name is reported with its node"""
    data = _description()
    data["nodes"][0]["recipe"] = "Unobtainium"
    with raises(ValueError, match="Node 'miner' references unknown recipe 'Unobtainium'"):
        parse_network(data)


def test_parse_network_unknown_item():
    """a recipe naming an unknown item is rejected"""
    data = _description()
    data["recipes"][1]["in"] = {"Copper Ore": 1}
    with raises(ValueError, match="unknown item 'Copper Ore'"):
        parse_network(data)


def test_parse_network_unknown_type():
    """node types are validated"""
    data = _description()
    data["nodes"].append({"id": "box", "type": "storage"})
    with raises(ValueError, match="unknown type 'storage'"):
        parse_network(data)


def test_parse_network_missing_key():
    """mandatory keys are reported"""
    data = _description()
    del data["connections"][0]["to"]
    with raises(ValueError, match="Connection #1 is missing 'to'"):
        parse_network(data)


def test_parse_network_duplicate_names():
    """catalog names must be unique"""
    data = _description()
    data["items"].append({"name": "Iron Ore"})
    with raises(ValueError, match="Duplicate item 'Iron Ore'"):
        parse_network(data)


def test_parse_network_bad_port_reference():
    """port references must be node.index and name an existing port"""
    data = _description()
    data["connections"][0]["from"] = "miner"
    with raises(ValueError, match="Invalid port reference"):
        parse_network(data)

    data["connections"][0]["from"] = "miner.3"
    with raises(ValueError, match="has no output port 3"):
        parse_network(data)


def test_parse_network_unknown_belt():
    """belt names must be BeltTier names"""
    data = _description()
    data["connections"][0]["belt"] = "hyper tube"
    with raises(ValueError, match="Connection #1 has unknown belt tier"):
        parse_network(data)


def test_parse_network_null_numbers():
    """null or non-numeric fields are reported as ValueError"""
    data = _description()
    data["nodes"][3]["inputs"] = None
    with raises(ValueError, match="Node 'merge' has invalid 'inputs'"):
        parse_network(data)

    data = _description()
    data["nodes"][0]["overclock"] = None
    with raises(ValueError, match="Node 'miner' has invalid 'overclock'"):
        parse_network(data)

    data = _description()
    data["nodes"][1]["outputs"] = "two"
    with raises(ValueError, match="Node 'split' has invalid 'outputs'"):
        parse_network(data)

    data = _description()
    data["recipes"][1]["cycle_time"] = [2]
    with raises(ValueError, match="Recipe 'Iron Ingot' has invalid 'cycle_time'"):
        parse_network(data)

    data = _description()
    data["recipes"][1]["in"] = {"Iron Ore": None}
    with raises(ValueError, match="Recipe 'Iron Ingot' has invalid 'Iron Ore'"):
        parse_network(data)

    data = _description()
    data["connections"][0]["belt"] = None
    with raises(ValueError, match="Connection #1 has invalid 'belt'"):
        parse_network(data)


def test_parse_network_bad_targets():
    """splitter targets must be a list of numbers or nulls"""
    data = _description()
    data["nodes"][1]["targets"] = 5
    with raises(ValueError, match="Node 'split' has invalid 'targets', expected a list"):
        parse_network(data)

    data["nodes"][1]["targets"] = [10, "lots"]
    with raises(ValueError, match="Node 'split' has invalid target 1"):
        parse_network(data)


def test_parse_network_non_list_sections():
    """top level sections and group children must be lists"""
    data = _description()
    data["nodes"][2]["children"] = {"id": "smelter_1"}
    with raises(ValueError, match="Node 'line' has invalid 'children'"):
        parse_network(data)

    for key in ("items", "machines", "recipes", "nodes", "connections"):
        data = _description()
        data[key] = "oops"
        with raises(ValueError, match=f"Network description has invalid '{key}'"):
            parse_network(data)


def test_parse_network_entry_not_an_object():
    """every node and connection entry must be an object"""
    data = _description()
    data["nodes"].append("smelter_3")
    with raises(ValueError, match="Node must be a JSON object"):
        parse_network(data)

    data = _description()
    data["connections"].append(7)
    with raises(ValueError, match="Connection #6 must be a JSON object"):
        parse_network(data)


def test_parse_network_not_an_object():
    """the top level must be a JSON object"""
    with raises(ValueError, match="must be a JSON object"):
        parse_network([])


def test_parse_network_empty():
    """an empty description gives an empty network"""
    network = parse_network({})
    assert network.nodes == []
    assert network.connections == []


def test_load_network():
    """load_network should read a description file"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False, encoding="utf-8") as f:
        json.dump(_description(), f)
        temp_path = f.name

    try:
        network = load_network(temp_path)
        assert len(network.nodes) == 6
        assert len(network.connections) == 5
    finally:
        os.remove(temp_path)


def test_load_network_invalid_json():
    """load_network should report broken JSON as ValueError"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False, encoding="utf-8") as f:
        f.write("{not json")
        temp_path = f.name

    try:
        with raises(ValueError, match="Invalid JSON"):
            load_network(temp_path)
    finally:
        os.remove(temp_path)

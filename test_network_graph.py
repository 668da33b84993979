"""Test graphviz export of calculated networks."""

from connections import BeltTier, Connection
from network import FactoryNetwork
from network_graph import (
    _format_rate,
    _get_conveyor_stripe_color,
    _get_edge_color,
    _get_pipeline_stripe_color,
    _get_usage_color,
    render_network,
)
from nodes import GroupNode, MachineNode, MergerNode, SplitterNode
from recipes import Item, MachineType, recipe_from_rates

ORE = Item(1, "Iron Ore")
INGOT = Item(2, "Iron Ingot")
SMELTER = MachineType(1, "Smelter", 4)


def _conn(belt, flow, bottleneck=False):
    conn = Connection("a", "a.out", "b", "b.in", belt=belt)
    conn.actual_flow = flow
    conn.is_bottleneck = bottleneck
    return conn


def test_format_rate():
    """Test rate formatting."""
    assert _format_rate(60.0) == "60"
    assert _format_rate(22.5) == "22.50"
    assert _format_rate(float("inf")) == "inf"


def test_get_usage_color():
    """Test usage thresholds."""
    assert _get_usage_color(_conn(BeltTier.MK1, 0)) == "grey"
    assert _get_usage_color(_conn(BeltTier.MK1, 30)) == "#4CAF50"
    assert _get_usage_color(_conn(BeltTier.MK1, 50)) == "#FF9800"
    assert _get_usage_color(_conn(BeltTier.MK1, 60)) == "#F44336"
    assert _get_usage_color(_conn(BeltTier.MK1, 60, bottleneck=True)) == "#F44336"
    # unbounded connections never fill up
    assert _get_usage_color(_conn(99, 5000)) == "#4CAF50"


def test_get_conveyor_stripe_color():
    """Test conveyor stripe color generation."""
    assert _get_conveyor_stripe_color(1, "red") == "red"
    assert _get_conveyor_stripe_color(2, "red") == "red:white:red"
    assert _get_conveyor_stripe_color(5, "c") == "c:white:c:white:c:white:c:white:c"


def test_get_pipeline_stripe_color():
    """Test pipeline stripe color generation."""
    assert _get_pipeline_stripe_color(BeltTier.PIPE_MK1, "c") == "grey:c:c:grey"
    assert _get_pipeline_stripe_color(BeltTier.PIPE_MK2, "c") == "grey:c:c:c:c:c:grey"


def test_get_edge_color():
    """Test edge color by tier."""
    assert _get_edge_color(_conn(BeltTier.MK3, 0)) == "grey:white:grey:white:grey"
    assert _get_edge_color(_conn(BeltTier.PIPE_MK1, 100)) == "grey:#4CAF50:#4CAF50:grey"
    assert _get_edge_color(_conn(7, 10)) == "#4CAF50"


def _network():
    network = FactoryNetwork()
    miner = network.add_node(MachineNode(None, recipe_from_rates("Iron Ore", {}, {ORE: 90}), name="Miner"))
    splitter = network.add_node(SplitterNode(outputs=2))
    group = network.add_node(GroupNode("Smelting"))
    smelt = recipe_from_rates("Iron Ingot", {ORE: 30}, {INGOT: 30}, SMELTER)
    first = network.add_node(MachineNode(SMELTER, smelt, name="Smelter A"), group)
    second = network.add_node(MachineNode(SMELTER, smelt, name="Smelter B"), group)
    merger = network.add_node(MergerNode(inputs=2))
    network.connect(miner.outputs[0].id, splitter.inputs[0].id, BeltTier.MK1)
    network.connect(splitter.outputs[0].id, first.inputs[0].id)
    network.connect(splitter.outputs[1].id, second.inputs[0].id)
    network.connect(first.outputs[0].id, merger.inputs[0].id)
    network.connect(second.outputs[0].id, merger.inputs[1].id)
    return network, group


def test_render_network():
    """Test the rendered graph source."""
    network, group = _network()
    network.calculate()

    source = render_network(network).source

    assert "digraph" in source
    assert f"cluster_{group.id}" in source
    assert "Smelting" in source
    assert "Smelter A" in source
    assert "Splitter" in source and "Merger" in source
    # the miner pushes 90 onto a Mk.1 belt
    assert "60/60" in source
    assert "lightsalmon" not in source
    assert "Iron Ingot: 30/min" in source


def test_render_network_starved_machine():
    """Starved machines are highlighted."""
    network, _ = _network()
    miner = network.nodes[0]
    miner.set_recipe(recipe_from_rates("Iron Ore", {}, {ORE: 30}))
    network.calculate()

    source = render_network(network).source

    assert "lightsalmon" in source
    assert "50% efficiency" in source
    # each smelter makes half of its 30 ingots per minute
    assert "Iron Ingot: 15/min" in source


def test_render_network_cyclic_outline():
    """Nodes in a loop get a red outline."""
    network = FactoryNetwork()
    merger = network.add_node(MergerNode(inputs=1))
    splitter = network.add_node(SplitterNode(outputs=1))
    network.connect(merger.outputs[0].id, splitter.inputs[0].id)
    network.connect(splitter.outputs[0].id, merger.inputs[0].id)
    network.calculate()

    source = render_network(network).source

    assert "penwidth=3" in source

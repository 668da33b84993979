"""Graphviz export of a calculated production network."""

import math

import graphviz

from connections import BeltTier, Connection
from network import FactoryNetwork
from nodes import GroupNode, MachineNode, MergerNode, Node, SplitterNode

# Usage colors, from idle to saturated
_GREEN = "#4CAF50"
_ORANGE = "#FF9800"
_RED = "#F44336"
_GREY = "grey"

_PIPES = (BeltTier.PIPE_MK1, BeltTier.PIPE_MK2)


def _format_rate(rate: float) -> str:
    """Format a per-minute rate, dropping the fraction when it is whole.

    Precondition:
        rate is a non-negative float, possibly math.inf

    Postcondition:
        returns "inf" for unbounded rates
        returns an integer string for whole numbers, else 2 decimals
    """
    if math.isinf(rate):
        return "inf"
    if rate == int(rate):
        return str(int(rate))
    return f"{rate:.2f}"


def _get_usage_color(conn: Connection) -> str:
    """Get the color of a connection from how much of its capacity it uses.

    Precondition:
        conn has been through a calculation pass

    Postcondition:
        returns grey for connections carrying nothing
        returns red above 99% usage or for bottlenecks
        returns orange above 75% usage
        returns green otherwise
    """
    if conn.actual_flow <= 0:
        return _GREY
    ratio = conn.usage_ratio
    if conn.is_bottleneck or ratio > 0.99:
        return _RED
    if ratio > 0.75:
        return _ORANGE
    return _GREEN


def _get_conveyor_stripe_color(mark: int, color: str) -> str:
    """Generate graphviz color string with one stripe per belt mark.

    Precondition:
        mark is a positive integer (1-5)

    Postcondition:
        returns colon-separated color string for graphviz
        number of colored stripes equals mark number
        white stripes are between colored stripes
        Mark 1: "c"
        Mark 2: "c:white:c"

    Args:
        mark: conveyor belt mark number
        color: stripe color

    Returns:
        graphviz color specification string
    """
    stripes = []
    for i in range(mark):
        stripes.append(color)
        if i < mark - 1:  # don't add white after the last stripe
            stripes.append("white")
    return ":".join(stripes)


def _get_pipeline_stripe_color(belt: int, color: str) -> str:
    """Generate graphviz color string with grey walls around the fluid color.

    Postcondition:
        Mk.1 pipe: "grey:c:c:grey"
        Mk.2 pipe: "grey:c:c:c:c:c:grey"
    """
    if belt == BeltTier.PIPE_MK1:
        return f"grey:{color}:{color}:grey"
    return f"grey:{color}:{color}:{color}:{color}:{color}:grey"


def _get_edge_color(conn: Connection) -> str:
    """Get the edge color of a connection from its tier and usage.

    Precondition:
        conn has been through a calculation pass

    Postcondition:
        pipes get pipeline stripes
        known conveyor tiers get one stripe per mark
        unknown tiers get a single plain stripe
    """
    color = _get_usage_color(conn)
    if conn.belt in _PIPES:
        return _get_pipeline_stripe_color(conn.belt, color)
    if conn.belt in tuple(BeltTier):
        return _get_conveyor_stripe_color(int(conn.belt), color)
    return color


def _node_label(node: Node) -> str:
    if isinstance(node, MachineNode):
        lines = [node.name]
        if node.active_recipe is not None:
            lines.append(f"{node.overclock_percent:g}% clock, {node.efficiency:.0%} efficiency")
            scale = node.overclock_factor * node.efficiency
            for item_name, rate in node.active_recipe.outputs.items():
                lines.append(f"{item_name}: {_format_rate(rate * scale)}/min")
        if node.machine_type is not None:
            lines.append(f"{node.actual_power_mw:.1f} MW")
        return "\n".join(lines)
    return node.name


def _add_node(dot: graphviz.Digraph, node: Node, cyclic: frozenset[str]):
    """Add one machine or logistic node.

    Postcondition:
        machines are light blue boxes
        splitters are light yellow diamonds, mergers thistle diamonds
        cyclic nodes get a thick red outline
    """
    outline = {"color": "red", "penwidth": "3"} if node.id in cyclic else {}
    if isinstance(node, MachineNode):
        fillcolor = "lightblue" if node.efficiency >= 1.0 else "lightsalmon"
        dot.node(node.id, _node_label(node), shape="box", style="filled", fillcolor=fillcolor, **outline)
    elif isinstance(node, SplitterNode):
        dot.node(node.id, node.name, shape="diamond", style="filled", fillcolor="lightyellow", **outline)
    elif isinstance(node, MergerNode):
        dot.node(node.id, node.name, shape="diamond", style="filled", fillcolor="thistle", **outline)


def _add_level(dot: graphviz.Digraph, network: FactoryNetwork, group: GroupNode | None, cyclic: frozenset[str]):
    """Add the nodes of one level, nesting groups as clusters.

    Postcondition:
        each group becomes a labelled cluster holding its children
        nested groups become nested clusters
    """
    for node in network.nodes_at_level(group):
        if isinstance(node, GroupNode):
            with dot.subgraph(name=f"cluster_{node.id}") as cluster:
                cluster.attr(label=f"{node.name}\n{node.total_power_mw:.1f} MW", style="filled", fillcolor="whitesmoke")
                _add_level(cluster, network, node, cyclic)
        else:
            _add_node(dot, node, cyclic)


def render_network(network: FactoryNetwork) -> graphviz.Digraph:
    """Draw a calculated network as a graphviz digraph.

    Precondition:
        network.calculate() has run (otherwise flows show as zero)

    Postcondition:
        returns Digraph with every machine, splitter and merger as a node
        groups are clusters
        every connection is an edge labelled with item, flow and capacity,
        colored by usage and striped by belt tier

    Args:
        network: the network to draw

    Returns:
        graphviz Digraph
    """
    result = network.last_result
    cyclic = result.cyclic_node_ids if result is not None else frozenset()

    dot = graphviz.Digraph(comment="Production Network")
    dot.attr(rankdir="LR")

    _add_level(dot, network, None, cyclic)

    for conn in network.connections:
        item = conn.item.name if conn.item else "any"
        label = f"{item}\n{_format_rate(conn.actual_flow)}/{_format_rate(conn.max_capacity)}"
        dot.edge(conn.source_node_id, conn.target_node_id, label=label, color=_get_edge_color(conn), penwidth="2")

    return dot

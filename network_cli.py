#!/usr/bin/env python3
"""Command-line interface for production network flow calculation."""

import argparse
import logging
import sys

from flow_calculator import FlowResult
from network import FactoryNetwork
from network_file import load_network
from network_graph import render_network
from nodes import GroupNode, MachineNode
from parsing_utils import parse_name_value_list


def _apply_overclocks(network: FactoryNetwork, overclocks: dict[str, float]) -> None:
    """Set the clock speed of machine nodes by id.

    Precondition:
        overclocks maps node ids to percentages

    Postcondition:
        each named machine's overclock_percent is set (clamped to 1-250)

    Raises:
        ValueError: if a node is unknown or not a machine
    """
    for node_id, percent in overclocks.items():
        node = network.get_node(node_id)
        if not isinstance(node, MachineNode):
            raise ValueError(f"Node '{node_id}' is not a machine and cannot be overclocked")
        node.overclock_percent = percent


def _format_flow(flow: float) -> str:
    return f"{flow:.2f}".rstrip("0").rstrip(".")


def format_report(network: FactoryNetwork, result: FlowResult) -> str:
    """Format the outcome of a calculation pass as text.

    Precondition:
        result comes from network.calculate()

    Postcondition:
        returns a multi-line report listing connections (flow, capacity,
        bottleneck), machines (efficiency, power), groups (boundary ports),
        cyclic nodes and total power

    Args:
        network: calculated network
        result: summary of the pass

    Returns:
        report text
    """
    lines = ["Connections:"]
    for conn in network.connections:
        source = network.get_node(conn.source_node_id).name
        target = network.get_node(conn.target_node_id).name
        item = conn.item.name if conn.item else "any"
        marker = "  BOTTLENECK" if conn.id in result.bottleneck_connection_ids else ""
        lines.append(
            f"  {source} -> {target} [{item}] "
            f"{_format_flow(conn.actual_flow)}/min on {conn.capacity_label}{marker}"
        )

    lines.append("Machines:")
    for node in network.nodes:
        if isinstance(node, MachineNode):
            lines.append(
                f"  {node.name}: {node.efficiency:.0%} efficiency, "
                f"{node.overclock_percent:g}% clock, {node.actual_power_mw:.2f} MW"
            )

    groups = [node for node in network.nodes if isinstance(node, GroupNode)]
    if groups:
        lines.append("Groups:")
        for group in groups:
            inflow = sum(port.current_flow for port in group.inputs)
            outflow = sum(port.current_flow for port in group.outputs)
            lines.append(
                f"  {group.name}: {len(group.inputs)} in ({_format_flow(inflow)}/min), "
                f"{len(group.outputs)} out ({_format_flow(outflow)}/min), {group.total_power_mw:.2f} MW"
            )

    if result.has_cycles:
        names = sorted(network.get_node(node_id).name for node_id in result.cyclic_node_ids)
        lines.append(f"Cyclic nodes (excluded): {', '.join(names)}")

    lines.append(f"Total power: {network.total_power_mw:.2f} MW")
    return "\n".join(lines)


def _write_graphviz(network: FactoryNetwork, output_file: str) -> None:
    """Write the graphviz source of the calculated network to a file."""
    with open(output_file, "w", encoding="utf-8") as f:
        f.write(render_network(network).source)
    print(f"Graphviz written to {output_file}", file=sys.stderr)


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Postcondition:
        returns configured ArgumentParser with all CLI arguments defined
    """
    parser = argparse.ArgumentParser(
        description="Calculate belt throughput, bottlenecks and machine efficiency of a production network",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report flows of a network
  %(prog)s factory.json

  # Run two machines at a different clock speed
  %(prog)s factory.json --overclock "smelter_1:150, smelter_2:50"

  # Also export a graphviz diagram
  %(prog)s factory.json --graphviz factory.dot
        """,
    )

    parser.add_argument("network", help="JSON network description")

    parser.add_argument(
        "--overclock",
        "-c",
        default="",
        help='Clock speeds as "NodeId:Percent, NodeId:Percent, ..." (optional)',
    )

    parser.add_argument("--graphviz", "-g", help="Write a graphviz diagram of the result to a file")

    parser.add_argument("--verbose", "-v", action="store_true", help="Log calculation details")

    return parser


def main():
    """Main CLI function.

    Precondition:
        command-line arguments are available via sys.argv

    Postcondition:
        the network is calculated and the report printed to stdout
        returns 0 on success, 1 on error

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    try:
        network = load_network(args.network)
        _apply_overclocks(network, parse_name_value_list(args.overclock))

        result = network.calculate()
        print(format_report(network, result))

        if args.graphviz:
            _write_graphviz(network, args.graphviz)

        return 0

    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Steady-state flow calculation over a production network.

A pass resets every computed field, finds the nodes caught in (or feeding) a
cycle, orders the remaining nodes topologically, pushes flow from the sources
downstream while throttling starved machines, and finally derives the
boundary ports of every group. Nothing in here raises: degenerate input
(missing recipes, dangling ids, cycles, unknown belt tiers) simply yields zero
or unbounded flow.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import IntEnum

from tarjan import tarjan

from connections import Connection
from nodes import GroupNode, InputPort, MachineNode, MergerNode, Node, OutputPort, SplitterNode, collect_all_groups

_LOGGER = logging.getLogger("satisflow")


class _VisitState(IntEnum):
    WHITE = 0  # unvisited
    GRAY = 1  # on the current path
    BLACK = 2  # finished


@dataclass(frozen=True)
class FlowResult:
    """Summary of one calculation pass."""

    order: tuple[str, ...] = ()
    cyclic_node_ids: frozenset[str] = field(default_factory=frozenset)
    bottleneck_connection_ids: frozenset[str] = field(default_factory=frozenset)
    # Strongly connected components that are actual loops
    loops: tuple[frozenset[str], ...] = ()

    @property
    def has_cycles(self) -> bool:
        return bool(self.cyclic_node_ids)

    @property
    def has_bottlenecks(self) -> bool:
        return bool(self.bottleneck_connection_ids)


def _index_nodes(nodes: list[Node]) -> dict[str, Node]:
    """Build the node-by-id lookup, including every group descendant.

    Precondition:
        nodes is a list of Node objects

    Postcondition:
        returns dict mapping id to node, in input order
        descendants of groups missing from nodes are appended
        the first node seen with a given id wins
    """
    node_by_id: dict[str, Node] = {}
    for node in nodes:
        node_by_id.setdefault(node.id, node)
    for group in collect_all_groups(nodes):
        for child in group.descendants():
            node_by_id.setdefault(child.id, child)
    return node_by_id


def _group_connections(connections: list[Connection], by_source: bool) -> dict[str, list[Connection]]:
    """Group connections by their source (or target) node id, preserving order."""
    grouped = defaultdict(list)
    for conn in connections:
        grouped[conn.source_node_id if by_source else conn.target_node_id].append(conn)
    return dict(grouped)


def _reset(nodes, connections: list[Connection]):
    """Clear every computed field so a pass depends only on the current graph.

    Postcondition:
        every port flow is 0.0
        every machine efficiency is 1.0
        every connection has zero flow and no bottleneck/cross-boundary flag
    """
    for node in nodes:
        node.reset()
    for conn in connections:
        conn.reset()


def _detect_cycles(node_ids: list[str], conns_by_source: dict[str, list[Connection]]) -> set[str]:
    """Find nodes on a cycle or on a path leading into one.

    Precondition:
        node_ids lists every known node id
        conns_by_source groups connections by source node id

    Postcondition:
        returns set of cyclic node ids
        both endpoints of every back edge are included
        every node whose DFS subtree contains a cyclic node is included
        edges to unknown nodes are ignored

    Args:
        node_ids: known node ids, in visiting order
        conns_by_source: outgoing connections per node

    Returns:
        set of cyclic node ids
    """
    state = {node_id: _VisitState.WHITE for node_id in node_ids}
    cyclic: set[str] = set()

    for root in node_ids:
        if state[root] != _VisitState.WHITE:
            continue

        # Explicit stack of (node, remaining outgoing edges) instead of recursion
        state[root] = _VisitState.GRAY
        stack = [(root, iter(conns_by_source.get(root, ())))]
        while stack:
            node_id, edges = stack[-1]
            for conn in edges:
                neighbor = conn.target_node_id
                if neighbor not in state:
                    continue
                if state[neighbor] == _VisitState.GRAY:
                    # back edge
                    cyclic.add(node_id)
                    cyclic.add(neighbor)
                elif state[neighbor] == _VisitState.WHITE:
                    state[neighbor] = _VisitState.GRAY
                    stack.append((neighbor, iter(conns_by_source.get(neighbor, ()))))
                    break
            else:
                state[node_id] = _VisitState.BLACK
                stack.pop()
                if stack and node_id in cyclic:
                    cyclic.add(stack[-1][0])

    return cyclic


def _find_loops(node_ids: list[str], conns_by_source: dict[str, list[Connection]]) -> tuple[frozenset[str], ...]:
    """Find the strongly connected components that form loops.

    Precondition:
        node_ids lists every known node id

    Postcondition:
        returns components with more than one node, or with a self edge
        edges to unknown nodes are ignored
    """
    known = set(node_ids)
    graph = {
        node_id: [c.target_node_id for c in conns_by_source.get(node_id, ()) if c.target_node_id in known]
        for node_id in node_ids
    }
    loops = []
    for component in tarjan(graph):
        if len(component) > 1 or component[0] in graph[component[0]]:
            loops.append(frozenset(component))
    return tuple(loops)


def _topological_order(
    node_ids: list[str],
    conns_by_source: dict[str, list[Connection]],
    conns_by_target: dict[str, list[Connection]],
    cyclic: set[str],
) -> list[str]:
    """Order the non-cyclic nodes with Kahn's algorithm.

    Precondition:
        cyclic is the result of _detect_cycles for the same graph

    Postcondition:
        returns every non-cyclic node id exactly once
        a node comes after all of its non-cyclic known predecessors
        cyclic nodes are absent

    Args:
        node_ids: known node ids, in input order
        conns_by_source: outgoing connections per node
        conns_by_target: incoming connections per node
        cyclic: ids excluded from the order

    Returns:
        list of node ids in propagation order
    """
    acyclic = [node_id for node_id in node_ids if node_id not in cyclic]
    acyclic_set = set(acyclic)
    in_degree = {
        node_id: sum(1 for c in conns_by_target.get(node_id, ()) if c.source_node_id in acyclic_set)
        for node_id in acyclic
    }

    queue = deque(node_id for node_id in acyclic if in_degree[node_id] == 0)
    order = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for conn in conns_by_source.get(current, ()):
            target = conn.target_node_id
            if target not in in_degree:
                continue
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    return order


def _produce_source_output(node: Node):
    """Write a source machine's unconstrained production onto its output ports.

    Postcondition:
        for machines with an active recipe, each output ingredient's nominal
        rate is written to the matching output port
        other nodes are untouched
    """
    if not isinstance(node, MachineNode) or node.active_recipe is None:
        return
    for ingredient in node.active_recipe.output_ingredients:
        port = node.output_port_for(ingredient)
        if port is not None:
            port.current_flow = node.nominal_rate(ingredient)


def _apply_machine_efficiency(machine: MachineNode):
    """Throttle a machine by its most starved input ingredient.

    Precondition:
        input ports hold the flow accumulated from upstream

    Postcondition:
        machines without a recipe or without input ingredients are untouched
        efficiency = min over inputs of min(received / required, 1.0),
        skipping ingredients without a port or with no requirement
        every output port flow = nominal rate * efficiency
    """
    recipe = machine.active_recipe
    if recipe is None or not recipe.input_ingredients:
        return

    min_ratio = 1.0
    for ingredient in recipe.input_ingredients:
        port = machine.input_port_for(ingredient)
        if port is None:
            continue
        required = machine.nominal_rate(ingredient)
        if required <= 0:
            continue
        # surplus cannot over-drive production
        min_ratio = min(min_ratio, port.current_flow / required, 1.0)

    machine.efficiency = min_ratio

    for ingredient in recipe.output_ingredients:
        port = machine.output_port_for(ingredient)
        if port is not None:
            port.current_flow = machine.nominal_rate(ingredient) * min_ratio


def _merge(merger: MergerNode):
    total = sum(port.current_flow for port in merger.inputs)
    for port in merger.outputs:
        port.current_flow = total


def _split(splitter: SplitterNode, outgoing: list[Connection]):
    """Distribute a splitter's input flow over its output ports.

    Precondition:
        the input port holds the flow accumulated from upstream
        outgoing lists the connections leaving the splitter

    Postcondition:
        even split: the input is shared equally by the connected outputs
        (all outputs when none is connected)
        otherwise: connected outputs with a target_flow take
        min(target, remaining) in port order, and connected outputs without
        a target share the rest
        unconnected outputs never receive flow in target mode
        the output flows never sum to more than the input
    """
    remaining = sum(port.current_flow for port in splitter.inputs)
    connected_ids = {conn.source_port_id for conn in outgoing}
    connected = [port for port in splitter.outputs if port.id in connected_ids]

    if splitter.even_split:
        receivers = connected or splitter.outputs
    else:
        for port in connected:
            if port.target_flow is None:
                continue
            port.current_flow = min(max(port.target_flow, 0.0), remaining)
            remaining -= port.current_flow
        receivers = [port for port in connected if port.target_flow is None]

    if not receivers:
        return
    share = remaining / len(receivers)
    for port in receivers:
        port.current_flow = share


def _transfer(conn: Connection, port_out: dict[str, OutputPort], port_in: dict[str, InputPort]):
    """Send a source port's flow along a connection, clamped to its capacity.

    Postcondition:
        nothing happens if the source port is not an ordered node's port
        requested_flow is the source port's flow
        if it exceeds the capacity the connection is a bottleneck and the
        excess is dropped
        actual_flow is added to the target port, when that port is known
    """
    source = port_out.get(conn.source_port_id)
    if source is None:
        return

    flow = source.current_flow
    conn.requested_flow = flow
    if flow > conn.max_capacity:
        conn.is_bottleneck = True
        flow = conn.max_capacity
    conn.actual_flow = flow

    target = port_in.get(conn.target_port_id)
    if target is not None:
        target.current_flow += flow


def _propagate(
    ordered: list[Node],
    conns_by_source: dict[str, list[Connection]],
    conns_by_target: dict[str, list[Connection]],
):
    """Push flow through the ordered nodes.

    Precondition:
        ordered is a topological order of the non-cyclic nodes
        all flows were reset

    Postcondition:
        source machines emit their nominal output
        machines are throttled by their most starved input
        mergers sum their inputs, splitters distribute theirs
        every connection leaving an ordered node carries its clamped flow
        connections touching nodes outside the order carry nothing
    """
    # Only ports of ordered nodes resolve, so connections touching cyclic
    # nodes neither deliver nor receive flow.
    port_in = {port.id: port for node in ordered for port in node.inputs}
    port_out = {port.id: port for node in ordered for port in node.outputs}

    for node in ordered:
        if not conns_by_target.get(node.id):
            _produce_source_output(node)

        outgoing = conns_by_source.get(node.id, [])

        if isinstance(node, MachineNode):
            _apply_machine_efficiency(node)
        elif isinstance(node, MergerNode):
            _merge(node)
        elif isinstance(node, SplitterNode):
            _split(node, outgoing)

        for conn in outgoing:
            _transfer(conn, port_out, port_in)


def _groups_deepest_first(node_by_id: dict[str, Node]) -> list[GroupNode]:
    """List all groups, most deeply nested first (ties keep discovery order)."""
    groups = [node for node in node_by_id.values() if isinstance(node, GroupNode)]
    parent_of = {child.id: group.id for group in groups for child in group.children}

    def depth(group: GroupNode) -> int:
        level, current, seen = 0, group.id, {group.id}
        while current in parent_of and parent_of[current] not in seen:
            current = parent_of[current]
            seen.add(current)
            level += 1
        return level

    return sorted(groups, key=depth, reverse=True)


def _sync_group_boundaries(node_by_id: dict[str, Node], connections: list[Connection]):
    for group in _groups_deepest_first(node_by_id):
        group.sync_boundary_ports(connections, node_by_id)


class FlowCalculator:
    """Stateless flow engine; keeps only the summary sets of the last pass."""

    def __init__(self):
        self.cyclic_node_ids: frozenset[str] = frozenset()
        self.bottleneck_connection_ids: frozenset[str] = frozenset()

    def calculate(self, nodes: list[Node], connections: list[Connection]) -> FlowResult:
        """Compute flows, efficiencies, bottlenecks and group ports in place.

        Precondition:
            nodes holds every node of the graph (nested ones may be listed or
            reachable through their groups)
            connections holds every connection of the graph
            nobody mutates the graph during the call

        Postcondition:
            every computed field on nodes and connections reflects the
            current topology and recipes only
            self.cyclic_node_ids and self.bottleneck_connection_ids are updated
            returns the pass summary

        Args:
            nodes: flat list of nodes
            connections: flat list of connections

        Returns:
            FlowResult with order, cyclic ids, bottleneck ids and loops
        """
        node_by_id = _index_nodes(nodes)
        node_ids = list(node_by_id)
        conns_by_source = _group_connections(connections, by_source=True)
        conns_by_target = _group_connections(connections, by_source=False)
        _LOGGER.debug("Calculating flows for %s nodes and %s connections", len(node_ids), len(connections))

        _reset(node_by_id.values(), connections)

        cyclic = _detect_cycles(node_ids, conns_by_source)
        if cyclic:
            _LOGGER.warning("%s nodes are cyclic and excluded from flow propagation", len(cyclic))

        order = _topological_order(node_ids, conns_by_source, conns_by_target, cyclic)
        _propagate([node_by_id[node_id] for node_id in order], conns_by_source, conns_by_target)

        _sync_group_boundaries(node_by_id, connections)

        bottlenecks = frozenset(conn.id for conn in connections if conn.is_bottleneck)
        _LOGGER.debug("Flow calculation found %s bottlenecks", len(bottlenecks))

        self.cyclic_node_ids = frozenset(cyclic)
        self.bottleneck_connection_ids = bottlenecks
        return FlowResult(
            order=tuple(order),
            cyclic_node_ids=self.cyclic_node_ids,
            bottleneck_connection_ids=bottlenecks,
            loops=_find_loops(node_ids, conns_by_source),
        )

"""Editable production network - the flat node and connection arenas an editor works on."""

import logging

from connections import BeltTier, Connection
from flow_calculator import FlowCalculator, FlowResult
from nodes import GroupNode, InputPort, MachineNode, Node, OutputPort

_LOGGER = logging.getLogger("satisflow")


class FactoryNetwork:
    """Stateful owner of every node and connection, at every nesting depth."""

    def __init__(self):
        """Create an empty network.

        Postcondition:
            no nodes, no connections
            self.last_result is None until calculate() runs
        """
        self._nodes: dict[str, Node] = {}
        self._connections: dict[str, Connection] = {}
        self._calculator = FlowCalculator()
        self.last_result: FlowResult | None = None

    # ========== Queries ==========

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    def get_node(self, node_id: str) -> Node:
        """Look up a node by id.

        Raises:
            ValueError: if no node has that id
        """
        try:
            return self._nodes[node_id]
        except KeyError as exc:
            raise ValueError(f"Unknown node '{node_id}'") from exc

    def get_connection(self, connection_id: str) -> Connection:
        """Look up a connection by id.

        Raises:
            ValueError: if no connection has that id
        """
        try:
            return self._connections[connection_id]
        except KeyError as exc:
            raise ValueError(f"Unknown connection '{connection_id}'") from exc

    def find_port(self, port_id: str) -> tuple[Node, InputPort | OutputPort] | None:
        """Find a port and its owning node.

        Precondition:
            port_id is a string

        Postcondition:
            returns (node, port) for the first node owning a port with that id
            returns None if no node owns it
        """
        for node in self._nodes.values():
            port = node.find_input(port_id) or node.find_output(port_id)
            if port is not None:
                return node, port
        return None

    def nodes_at_level(self, group: GroupNode | None = None) -> list[Node]:
        """Nodes visible at one level: the top level, or a group's direct children."""
        if group is None:
            return [node for node in self._nodes.values() if node.parent_group_id is None]
        return list(group.children)

    def connections_at_level(self, group: GroupNode | None = None) -> list[Connection]:
        """Connections whose endpoints are both visible at one level."""
        visible_ids = {node.id for node in self.nodes_at_level(group)}
        return [
            conn
            for conn in self._connections.values()
            if conn.source_node_id in visible_ids and conn.target_node_id in visible_ids
        ]

    @property
    def total_power_mw(self) -> float:
        return sum(node.actual_power_mw for node in self._nodes.values() if isinstance(node, MachineNode))

    # ========== Editing ==========

    def add_node(self, node: Node, group: GroupNode | None = None) -> Node:
        """Register a node at the top level or inside a group.

        Precondition:
            node is not registered yet
            group, if given, is registered in this network

        Postcondition:
            node (and any descendants it already has) are registered
            inside a group, node is a child of group with parent_group_id set
            at the top level, parent_group_id is None

        Args:
            node: node to add
            group: containing group, or None for the top level

        Returns:
            the added node

        Raises:
            ValueError: if an id is already registered or group is unknown
        """
        if group is not None and self._nodes.get(group.id) is not group:
            raise ValueError(f"Group '{group.name}' is not part of this network")

        incoming = [node] + (node.descendants() if isinstance(node, GroupNode) else [])
        for candidate in incoming:
            if candidate.id in self._nodes:
                raise ValueError(f"Node id '{candidate.id}' is already in the network")

        if group is not None:
            group.add_child(node)
        else:
            node.parent_group_id = None

        for candidate in incoming:
            self._nodes[candidate.id] = candidate
        _LOGGER.debug("Added %s", node)
        return node

    def remove_node(self, node_id: str) -> Node:
        """Remove a node, everything it contains, and every attached connection.

        Precondition:
            node_id names a registered node

        Postcondition:
            node and its descendants are unregistered
            connections touching any of them are removed
            node is detached from its parent group

        Raises:
            ValueError: if node_id is unknown
        """
        node = self.get_node(node_id)
        removed = {node.id}
        if isinstance(node, GroupNode):
            removed |= node.descendant_ids()

        parent = self._nodes.get(node.parent_group_id) if node.parent_group_id else None
        if isinstance(parent, GroupNode):
            parent.remove_child(node)

        for removed_id in removed:
            self._nodes.pop(removed_id, None)
        for conn in list(self._connections.values()):
            if conn.source_node_id in removed or conn.target_node_id in removed:
                del self._connections[conn.id]

        _LOGGER.debug("Removed %s and %s contained nodes", node, len(removed) - 1)
        return node

    def connect(
        self,
        source_port_id: str,
        target_port_id: str,
        belt: int = BeltTier.MK1,
        item=None,
    ) -> Connection:
        """Join an output port to an input port.

        Precondition:
            source_port_id is an output port of a registered non-group node
            target_port_id is an input port of a registered non-group node

        Postcondition:
            a new connection is registered and returned
            its item is the given item, else the source port's item, else the
            target port's item

        Args:
            source_port_id: id of the output port
            target_port_id: id of the input port
            belt: belt or pipe tier of the connection
            item: item carried, or None to infer it

        Returns:
            the new Connection

        Raises:
            ValueError: if a port is unknown, has the wrong direction, belongs
                to a group, or the input port is already connected
        """
        source = self.find_port(source_port_id)
        if source is None or not isinstance(source[1], OutputPort):
            raise ValueError(f"'{source_port_id}' is not an output port in this network")
        target = self.find_port(target_port_id)
        if target is None or not isinstance(target[1], InputPort):
            raise ValueError(f"'{target_port_id}' is not an input port in this network")
        source_node, source_port = source
        target_node, target_port = target
        # Group ports are rebuilt on every pass; connect the nodes inside instead
        for node in (source_node, target_node):
            if isinstance(node, GroupNode):
                raise ValueError(f"Cannot connect to the boundary ports of group '{node.name}'")
        if any(conn.target_port_id == target_port_id for conn in self._connections.values()):
            raise ValueError(f"Input port '{target_port.name}' of {target_node.name} is already connected")

        conn = Connection(
            source_node.id,
            source_port.id,
            target_node.id,
            target_port.id,
            item if item is not None else (source_port.item or target_port.item),
            belt,
        )
        self._connections[conn.id] = conn
        _LOGGER.debug("Connected %s -> %s", source_node.name, target_node.name)
        return conn

    def disconnect(self, connection_id: str) -> Connection:
        """Remove a connection.

        Raises:
            ValueError: if connection_id is unknown
        """
        conn = self.get_connection(connection_id)
        del self._connections[connection_id]
        return conn

    # ========== Calculation ==========

    def calculate(self) -> FlowResult:
        """Run a full flow calculation pass over the whole network."""
        self.last_result = self._calculator.calculate(self.nodes, self.connections)
        return self.last_result

"""Graph vertices of a production network and the ports they own."""

from dataclasses import dataclass, field

from connections import Connection, new_id
from recipes import Item, MachineType, Recipe, RecipeIngredient

# Exponent of the overclock power curve
_POWER_EXPONENT = 1.321928

_MIN_OVERCLOCK = 1.0
_MAX_OVERCLOCK = 250.0

_MAX_LOGISTIC_PORTS = 3


@dataclass(eq=False)
class InputPort:
    """an input endpoint; item None accepts any resource"""

    name: str
    item: Item | None = None
    owner_node_id: str = ""
    current_flow: float = 0.0
    id: str = field(default_factory=new_id)


@dataclass(eq=False)
class OutputPort:
    """an output endpoint; item None emits any resource"""

    name: str
    item: Item | None = None
    owner_node_id: str = ""
    current_flow: float = 0.0
    # Fixed flow requested from a splitter output when it does not split evenly
    target_flow: float | None = None
    id: str = field(default_factory=new_id)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Node:
    """Base graph vertex: identity, ports and display position."""

    def __init__(self, name: str = "", node_id: str | None = None, x: float = 0.0, y: float = 0.0):
        self.id = node_id or new_id()
        self.name = name
        self.parent_group_id: str | None = None
        self.inputs: list[InputPort] = []
        self.outputs: list[OutputPort] = []
        # Canvas position, preserved for display only
        self.x = x
        self.y = y

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, id={self.id!r})"

    def add_input(self, name: str, item: Item | None = None) -> InputPort:
        port = InputPort(name, item, self.id)
        self.inputs.append(port)
        return port

    def add_output(self, name: str, item: Item | None = None) -> OutputPort:
        port = OutputPort(name, item, self.id)
        self.outputs.append(port)
        return port

    def find_input(self, port_id: str) -> InputPort | None:
        return next((p for p in self.inputs if p.id == port_id), None)

    def find_output(self, port_id: str) -> OutputPort | None:
        return next((p for p in self.outputs if p.id == port_id), None)

    def reset(self):
        """Zero the flow of every port."""
        for port in self.inputs:
            port.current_flow = 0.0
        for port in self.outputs:
            port.current_flow = 0.0


class MachineNode(Node):
    """A machine running a recipe, possibly overclocked."""

    def __init__(
        self,
        machine_type: MachineType | None = None,
        recipe: Recipe | None = None,
        name: str | None = None,
        overclock_percent: float = 100.0,
        node_id: str | None = None,
    ):
        super().__init__(machine_type.name if machine_type else "Machine", node_id)
        self.machine_type = machine_type
        self.active_recipe: Recipe | None = None
        self._overclock_percent = 100.0
        self.overclock_percent = overclock_percent
        self.efficiency = 1.0
        self.set_recipe(recipe)
        if name is not None:
            self.name = name

    @property
    def overclock_percent(self) -> float:
        return self._overclock_percent

    @overclock_percent.setter
    def overclock_percent(self, value: float):
        self._overclock_percent = _clamp(value, _MIN_OVERCLOCK, _MAX_OVERCLOCK)

    @property
    def overclock_factor(self) -> float:
        return self._overclock_percent / 100.0

    @property
    def actual_power_mw(self) -> float:
        """Power draw in MW at the current clock speed.

        Precondition:
            none

        Postcondition:
            returns 0.0 without a machine type
            otherwise returns base power * overclock_factor ** 1.321928
        """
        if self.machine_type is None:
            return 0.0
        return self.machine_type.power_consumption * self.overclock_factor**_POWER_EXPONENT

    def set_recipe(self, recipe: Recipe | None):
        """Activate a recipe and rebuild the port lists from its ingredients.

        Precondition:
            recipe is a Recipe or None

        Postcondition:
            self.active_recipe is recipe
            all previous ports are discarded
            one input port per consumed ingredient, one output port per
            produced ingredient, in recipe order, named after the item
            name becomes "<machine> - <recipe>" when a recipe is set

        Args:
            recipe: recipe to run, or None to idle the machine
        """
        self.active_recipe = recipe
        self.inputs.clear()
        self.outputs.clear()

        if recipe is None:
            return

        machine_name = self.machine_type.name if self.machine_type else "Machine"
        self.name = f"{machine_name} - {recipe.name}"

        for ingredient in recipe.ingredients:
            if ingredient.is_input:
                self.add_input(ingredient.item.name if ingredient.item else "Input", ingredient.item)
            else:
                self.add_output(ingredient.item.name if ingredient.item else "Output", ingredient.item)

    def nominal_rate(self, ingredient: RecipeIngredient) -> float:
        """Items per minute of an ingredient at full efficiency and current clock."""
        if self.active_recipe is None:
            return 0.0
        return self.active_recipe.items_per_minute(ingredient) * self.overclock_factor

    def input_port_for(self, ingredient: RecipeIngredient) -> InputPort | None:
        if ingredient.item is None:
            return None
        return next((p for p in self.inputs if p.item == ingredient.item), None)

    def output_port_for(self, ingredient: RecipeIngredient) -> OutputPort | None:
        if ingredient.item is None:
            return None
        return next((p for p in self.outputs if p.item == ingredient.item), None)

    def reset(self):
        super().reset()
        self.efficiency = 1.0


class SplitterNode(Node):
    """One input divided over up to three outputs."""

    def __init__(self, name: str = "Splitter", outputs: int = 3, even_split: bool = True, node_id: str | None = None):
        super().__init__(name, node_id)
        self.even_split = even_split
        self._output_count = 3
        self.output_count = outputs

    @property
    def output_count(self) -> int:
        return self._output_count

    @output_count.setter
    def output_count(self, value: int):
        self._output_count = int(_clamp(value, 1, _MAX_LOGISTIC_PORTS))
        self._rebuild_ports()

    def _rebuild_ports(self):
        self.inputs.clear()
        self.outputs.clear()
        self.add_input("Input")
        for index in range(1, self._output_count + 1):
            self.add_output(f"Output {index}")


class MergerNode(Node):
    """Up to three inputs combined onto one output."""

    def __init__(self, name: str = "Merger", inputs: int = 3, node_id: str | None = None):
        super().__init__(name, node_id)
        self._input_count = 3
        self.input_count = inputs

    @property
    def input_count(self) -> int:
        return self._input_count

    @input_count.setter
    def input_count(self, value: int):
        self._input_count = int(_clamp(value, 1, _MAX_LOGISTIC_PORTS))
        self._rebuild_ports()

    def _rebuild_ports(self):
        self.inputs.clear()
        self.outputs.clear()
        for index in range(1, self._input_count + 1):
            self.add_input(f"Input {index}")
        self.add_output("Output")


class GroupNode(Node):
    """A container of child nodes whose ports mirror the connections crossing its perimeter."""

    def __init__(self, name: str = "Group", description: str = "", node_id: str | None = None):
        super().__init__(name, node_id)
        self.description = description
        self.children: list[Node] = []

    def add_child(self, node: Node):
        node.parent_group_id = self.id
        self.children.append(node)

    def remove_child(self, node: Node) -> bool:
        """Detach a direct child; returns False if it was not a child."""
        if node not in self.children:
            return False
        self.children.remove(node)
        node.parent_group_id = None
        return True

    def descendants(self) -> list[Node]:
        """All nodes contained at any depth, each once, in depth-first order.

        Precondition:
            none

        Postcondition:
            returns children, grandchildren, ... in depth-first order
            a node reachable twice (or a group containing itself) is listed once
        """
        found: list[Node] = []
        seen = {self.id}

        def visit(group: "GroupNode"):
            for child in group.children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                found.append(child)
                if isinstance(child, GroupNode):
                    visit(child)

        visit(self)
        return found

    def descendant_ids(self) -> set[str]:
        return {node.id for node in self.descendants()}

    def all_machines(self) -> list[MachineNode]:
        return [node for node in self.descendants() if isinstance(node, MachineNode)]

    @property
    def total_power_mw(self) -> float:
        return sum(machine.actual_power_mw for machine in self.all_machines())

    def sync_boundary_ports(self, connections: list[Connection], node_by_id: dict[str, Node]):
        """Rebuild the group's ports from the connections crossing its perimeter.

        Precondition:
            connections carry their computed actual_flow
            node_by_id maps identities to nodes

        Postcondition:
            previous ports are discarded
            each connection entering the group from outside adds an input port
            carrying the connection's item and actual flow
            each connection leaving the group adds an output port likewise
            such connections get is_cross_boundary set
            internal and fully external connections add nothing

        Args:
            connections: every connection in the graph
            node_by_id: lookup of every node in the graph
        """
        self.inputs.clear()
        self.outputs.clear()

        child_ids = self.descendant_ids()

        for conn in connections:
            source_inside = conn.source_node_id in child_ids
            target_inside = conn.target_node_id in child_ids

            if not source_inside and target_inside:
                source = node_by_id.get(conn.source_node_id)
                port = self.add_input(f"Input from {source.name if source else 'external'}", conn.item)
                port.current_flow = conn.actual_flow
                conn.is_cross_boundary = True
            elif source_inside and not target_inside:
                target = node_by_id.get(conn.target_node_id)
                port = self.add_output(f"Output to {target.name if target else 'external'}", conn.item)
                port.current_flow = conn.actual_flow
                conn.is_cross_boundary = True


def collect_all_groups(nodes: list[Node]) -> list[GroupNode]:
    """Find every group among nodes and inside them, at any depth.

    Precondition:
        nodes is a list of Node objects

    Postcondition:
        returns each GroupNode once, in discovery order
        nested groups follow the group containing them unless listed earlier

    Args:
        nodes: top-level or flat node list

    Returns:
        list of all groups
    """
    groups: list[GroupNode] = []
    seen: set[str] = set()

    def visit(candidates: list[Node]):
        for node in candidates:
            if not isinstance(node, GroupNode) or node.id in seen:
                continue
            seen.add(node.id)
            groups.append(node)
            visit(node.children)

    visit(nodes)
    return groups

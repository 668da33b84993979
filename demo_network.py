"""Demonstration of flow calculation on a small iron plate line."""

from connections import BeltTier
from network import FactoryNetwork
from network_cli import format_report
from network_graph import render_network
from nodes import GroupNode, MachineNode, MergerNode, SplitterNode
from recipes import Item, MachineType, Recipe, RecipeIngredient

iron_ore = Item(1, "Iron Ore")
iron_ingot = Item(2, "Iron Ingot")
iron_plate = Item(3, "Iron Plate")

miner = MachineType(1, "Miner Mk.2", 12)
smelter = MachineType(2, "Smelter", 4)
constructor = MachineType(3, "Constructor", 4)

mine_iron = Recipe(1, "Iron Ore (Normal)", 0.5, (RecipeIngredient(iron_ore, 1, False),), miner)
smelt_iron = Recipe(2, "Iron Ingot", 2, (RecipeIngredient(iron_ore, 1, True), RecipeIngredient(iron_ingot, 1, False)), smelter)
press_plate = Recipe(3, "Iron Plate", 6, (RecipeIngredient(iron_ingot, 3, True), RecipeIngredient(iron_plate, 2, False)), constructor)

network = FactoryNetwork()
line = network.add_node(GroupNode("Iron Line"))
ore = network.add_node(MachineNode(miner, mine_iron))
split = network.add_node(SplitterNode(outputs=2), line)
smelter_a = network.add_node(MachineNode(smelter, smelt_iron), line)
smelter_b = network.add_node(MachineNode(smelter, smelt_iron, overclock_percent=150), line)
merge = network.add_node(MergerNode(inputs=2), line)
plates = network.add_node(MachineNode(constructor, press_plate))

# 120 ore/min on a Mk.1 belt: the first connection is a bottleneck
network.connect(ore.outputs[0].id, split.inputs[0].id, BeltTier.MK1)
network.connect(split.outputs[0].id, smelter_a.inputs[0].id, BeltTier.MK1)
network.connect(split.outputs[1].id, smelter_b.inputs[0].id, BeltTier.MK1)
network.connect(smelter_a.outputs[0].id, merge.inputs[0].id, BeltTier.MK1)
network.connect(smelter_b.outputs[0].id, merge.inputs[1].id, BeltTier.MK1)
network.connect(merge.outputs[0].id, plates.inputs[0].id, BeltTier.MK2)

print("=" * 60)
print("Iron plate line")
print("=" * 60)
result = network.calculate()
print(format_report(network, result))

print("Rendering network_iron_plates.png...")
render_network(network).render("network_iron_plates", format="png", cleanup=True)
print("Done!")

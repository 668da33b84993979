"""Recipe data attached to machine nodes.

All rates are "per minute". Recipe data is resolved before a calculation pass;
nothing in here looks anything up in a catalog.
"""

from dataclasses import dataclass, field

from frozendict import frozendict

# Seconds per minute, used to turn per-cycle amounts into per-minute rates
_SECONDS_PER_MINUTE = 60.0


@dataclass(frozen=True)
class Item:
    """a part or fluid that flows along belts and pipes"""

    id: int
    name: str
    is_fluid: bool = False


@dataclass(frozen=True)
class MachineType:
    """a buildable machine and its baseline power draw in MW"""

    id: int
    name: str
    power_consumption: float = 0.0


@dataclass(frozen=True)
class RecipeIngredient:
    """one consumed or produced item of a recipe, per cycle"""

    item: Item | None
    amount: float
    is_input: bool


@dataclass(frozen=True)
class Recipe:
    """a Satisfactory recipe"""

    id: int
    name: str
    cycle_time_seconds: float
    ingredients: tuple[RecipeIngredient, ...] = field(default_factory=tuple)
    machine: MachineType | None = None

    def items_per_minute(self, ingredient: RecipeIngredient) -> float:
        """Get the per-minute rate of an ingredient at 100% clock speed.

        Precondition:
            ingredient belongs to this recipe

        Postcondition:
            returns amount / cycle_time * 60
            returns 0.0 if the cycle time is zero or negative

        Args:
            ingredient: ingredient of this recipe

        Returns:
            items per minute
        """
        if self.cycle_time_seconds <= 0:
            return 0.0
        return ingredient.amount / self.cycle_time_seconds * _SECONDS_PER_MINUTE

    @property
    def input_ingredients(self) -> tuple[RecipeIngredient, ...]:
        return tuple(i for i in self.ingredients if i.is_input)

    @property
    def output_ingredients(self) -> tuple[RecipeIngredient, ...]:
        return tuple(i for i in self.ingredients if not i.is_input)

    @property
    def inputs(self) -> frozendict:
        """Consumed item names mapped to items per minute."""
        return _rates_by_name(self, self.input_ingredients)

    @property
    def outputs(self) -> frozendict:
        """Produced item names mapped to items per minute."""
        return _rates_by_name(self, self.output_ingredients)


def _rates_by_name(recipe: Recipe, ingredients: tuple[RecipeIngredient, ...]) -> frozendict:
    """Sum the per-minute rates of ingredients by item name.

    Precondition:
        ingredients belong to recipe

    Postcondition:
        returns frozendict mapping item name to items per minute
        ingredients without an item are skipped
        repeated items are summed
    """
    rates: dict[str, float] = {}
    for ingredient in ingredients:
        if ingredient.item is None:
            continue
        name = ingredient.item.name
        rates[name] = rates.get(name, 0.0) + recipe.items_per_minute(ingredient)
    return frozendict(rates)


def recipe_from_rates(
    name: str,
    inputs: dict[Item, float],
    outputs: dict[Item, float],
    machine: MachineType | None = None,
    recipe_id: int = 0,
) -> Recipe:
    """Create a recipe from per-minute rates.

    Precondition:
        inputs and outputs map Item objects to non-negative rates per minute

    Postcondition:
        returns a Recipe with a 60 second cycle, so each amount equals its rate
        input ingredients come first, in dict order, then outputs

    Args:
        name: recipe name
        inputs: consumed items and their rates (e.g. {iron_ore: 30})
        outputs: produced items and their rates
        machine: machine type that runs the recipe, if known
        recipe_id: identifier of the recipe

    Returns:
        Recipe whose items_per_minute matches the given rates
    """
    ingredients = [RecipeIngredient(item, amount, True) for item, amount in inputs.items()]
    ingredients += [RecipeIngredient(item, amount, False) for item, amount in outputs.items()]
    return Recipe(recipe_id, name, _SECONDS_PER_MINUTE, tuple(ingredients), machine)

"""Scenario assignment and constrained amount generation.

This module holds the only numeric logic of the tool:

- **assign**: picks one available Case and one available Scenario for a record.
- **generate_amounts**: produces the settlement amounts for a record. The
  rule is chosen from STRATEGY_TABLE by the delivery direction of the Case
  and the Scenario:

  ============  ===========  ==============================================
  Delivery      Scenario     Constraint on the generated amounts
  ============  ===========  ==============================================
  Under         OneToOne     one value in [1, amount]
  Over          OneToOne     one value in [amount + 1, amount + 1000]
  Over          OneToMany    n values, sum > amount
  Under         OneToMany    n values, sum < amount
  ============  ===========  ==============================================

Every draw goes through `uniform`, which takes the random source explicitly so
runs can be reproduced from a seed.
"""
import math
import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .errors import InfeasibleAmountError
from .models import Case, Delivery, Scenario

T = TypeVar("T")

OVER_ONE_TO_ONE_SPREAD = 1000
OVER_ONE_TO_MANY_SLOT_PADDING = 100
OVER_ONE_TO_MANY_LAST_SPREAD = 500


def uniform(rng: random.Random, low: int, high: int) -> int:
    """Draws an integer uniformly from the inclusive range [low, high].

    Raises:
        InfeasibleAmountError: If the range is empty.
    """
    if low > high:
        raise InfeasibleAmountError(f"Empty random range [{low}, {high}]")
    return rng.randint(low, high)


def pick(rng: random.Random, options: Sequence[T]) -> T:
    """Returns options[floor(random() * len(options))]."""
    if not options:
        raise ValueError("Cannot pick from an empty sequence")
    return options[int(math.floor(rng.random() * len(options)))]


def assign(
    rng: random.Random,
    available_cases: Sequence[Case],
    available_scenarios: Sequence[Scenario],
) -> Tuple[Case, Scenario]:
    """Picks one Case and one Scenario uniformly at random.

    Callers must check that both sequences are non-empty; an empty one means
    the record cannot be assigned at all.
    """
    if not available_cases or not available_scenarios:
        raise ValueError("assign() requires at least one available case and scenario")
    return pick(rng, available_cases), pick(rng, available_scenarios)


def draw_cardinality(rng: random.Random, case: Case, reference_amount, max_cardinality: int) -> int:
    """Draws the number of settlement lines for a OneToMany record.

    For under-delivery the upper bound is capped so that `cardinality`
    positive integers can still sum to less than the reference amount. When
    not even two lines fit, 2 is returned and generate_amounts reports the
    record as infeasible.
    """
    upper = max_cardinality
    if case.direction is Delivery.UNDER:
        upper = min(upper, math.ceil(reference_amount) - 1)
    if upper < 2:
        return 2
    return uniform(rng, 2, upper)


def _under_one_to_one(rng, reference_amount, cardinality):
    return [uniform(rng, 1, math.floor(reference_amount))]


def _over_one_to_one(rng, reference_amount, cardinality):
    base = math.floor(reference_amount)
    return [uniform(rng, base + 1, base + OVER_ONE_TO_ONE_SPREAD)]


def _over_one_to_many(rng, reference_amount, cardinality):
    base = math.floor(reference_amount)
    slot_high = math.floor(reference_amount / cardinality) + OVER_ONE_TO_MANY_SLOT_PADDING

    amounts = [uniform(rng, 1, slot_high) for _ in range(cardinality - 1)]
    total = sum(amounts)

    # The last line always lifts the total above the reference amount. If the
    # earlier lines already exceed it, the range is shifted up to stay positive.
    low = max(1, base - total + 1)
    amounts.append(uniform(rng, low, low + OVER_ONE_TO_MANY_LAST_SPREAD - 1))
    return amounts


def _under_one_to_many(rng, reference_amount, cardinality):
    ceiling = math.ceil(reference_amount)
    if cardinality >= ceiling:
        raise InfeasibleAmountError(
            f"{cardinality} positive amounts cannot sum below {reference_amount}"
        )
    target = uniform(rng, 1, ceiling - 1)

    amounts = []
    total = 0
    for slot in range(cardinality - 1):
        slots_left = cardinality - slot
        high = max(1, (target - total) // slots_left)
        value = uniform(rng, 1, high)
        amounts.append(value)
        total += value

    amounts.append(max(1, target - total))
    return amounts


STRATEGY_TABLE: Dict[Tuple[Delivery, Scenario], Callable] = {
    (Delivery.UNDER, Scenario.ONE_TO_ONE): _under_one_to_one,
    (Delivery.OVER, Scenario.ONE_TO_ONE): _over_one_to_one,
    (Delivery.OVER, Scenario.ONE_TO_MANY): _over_one_to_many,
    (Delivery.UNDER, Scenario.ONE_TO_MANY): _under_one_to_many,
}


def generate_amounts(
    rng: random.Random,
    case: Case,
    scenario: Scenario,
    reference_amount,
    cardinality: Optional[int] = None,
) -> List[int]:
    """Generates the settlement amounts for one assigned record.

    Args:
        rng: The random source.
        case: The assigned Case; only its delivery direction matters here.
        scenario: The assigned Scenario.
        reference_amount: The record's billed amount (positive number).
        cardinality: Number of amounts for OneToMany (>= 2); ignored for OneToOne.

    Returns:
        list[int]: One amount for OneToOne, `cardinality` amounts for
        OneToMany. Pairs missing from STRATEGY_TABLE yield an empty list.

    Raises:
        ValueError: If OneToMany is requested without a cardinality >= 2.
        InfeasibleAmountError: If the reference amount leaves no valid range.
    """
    strategy = STRATEGY_TABLE.get((case.direction, scenario))
    if strategy is None:
        return []

    if scenario is Scenario.ONE_TO_MANY:
        if cardinality is None or cardinality < 2:
            raise ValueError(f"OneToMany requires a cardinality >= 2, got {cardinality!r}")

    return strategy(rng, reference_amount, cardinality)

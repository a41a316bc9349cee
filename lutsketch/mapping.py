#!/usr/bin/env python3
"""
Logical <-> physical bit mapping.

Generators think in logical bit positions (bit i of every logical input);
primitives are wired by physical position. A mapping strategy reorders the
per-position list of values on the way in (to_physical) and restores the
logical order on the way out (to_logical). Strategies must be bijective:
to_logical(to_physical(x)) == x, or wires get silently swapped.

Which strategy is active is left to the solver: HoleSelectedMapping builds
every candidate ordering and picks among them with Choose nodes driven by
fresh selector holes. The same selectors drive both directions, so whatever
the solver picks, the two halves stay inverse to each other.
"""

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .ir import Expression, Hole, Choose


@dataclass(frozen=True)
class MappingStrategy:
    name: str
    to_physical: Callable[[Sequence], List]
    to_logical: Callable[[Sequence], List]


IDENTITY = MappingStrategy("identity", list, list)

REVERSED = MappingStrategy(
    "reversed",
    lambda positions: list(reversed(positions)),
    lambda positions: list(reversed(positions)),
)

DEFAULT_STRATEGIES: Tuple[MappingStrategy, ...] = (IDENTITY, REVERSED)


def _select(options: Sequence, selectors: Sequence[Hole]):
    """Pick options[k] where the selector bits encode k (selectors[0] is LSB)."""
    level = 0
    options = list(options)
    while len(options) > 1:
        selector = selectors[level]
        paired = []
        for k in range(0, len(options) - 1, 2):
            a, b = options[k], options[k + 1]
            paired.append(a if a is b else Choose(a, b, selector))
        if len(options) % 2:
            paired.append(options[-1])
        options = paired
        level += 1
    return options[0]


def _select_elementwise(candidates: Sequence, selectors: Sequence[Hole]):
    first = candidates[0]
    if isinstance(first, Expression):
        return _select(candidates, selectors)
    lengths = {len(candidate) for candidate in candidates}
    if len(lengths) != 1:
        raise ValueError(f"Mapping strategies produced different shapes: {sorted(lengths)}")
    return [_select_elementwise([candidate[i] for candidate in candidates], selectors)
            for i in range(len(first))]


class HoleSelectedMapping:
    """
    Mapping picked by the solver among several strategies.

    Args:
        strategies: Candidate strategies (IDENTITY and REVERSED by default)

    The positions passed in are nested lists whose leaves are Expressions,
    typically positions x logical inputs.
    """

    def __init__(self, strategies: Sequence[MappingStrategy] = DEFAULT_STRATEGIES):
        if not strategies:
            raise ValueError("HoleSelectedMapping needs at least one strategy")
        self.strategies = tuple(strategies)
        self.selectors = tuple(Hole(1) for _ in range((len(self.strategies) - 1).bit_length()))

    def to_physical(self, positions: Sequence) -> List:
        return _select_elementwise(
            [strategy.to_physical(positions) for strategy in self.strategies], self.selectors)

    def to_logical(self, positions: Sequence) -> List:
        return _select_elementwise(
            [strategy.to_logical(positions) for strategy in self.strategies], self.selectors)

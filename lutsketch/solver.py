#!/usr/bin/env python3
"""
Exhaustive BDD-based solver for small sketches.

Finds values for the holes of a sketch such that, for every valuation of the
free variables, the sketch equals a specification expression:

    exists holes . forall vars . sketch(vars, holes) == spec(vars)

The free variables are enumerated explicitly (so this is only meant for
small widths); the hole bits are BDD variables. For each valuation the
specification is evaluated concretely and the sketch symbolically, and the
agreement condition is conjoined into one BDD over the hole bits. Any
satisfying assignment of that BDD is a solution.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dd.autoref import BDD as BDDManager

from .errors import ShapeError
from .interpreter import BoolAlgebra, Evaluator, bits_to_int
from .ir import Expression, Hole, holes, variables

logger = logging.getLogger(__name__)

SAT = "sat"
UNSAT = "unsat"
UNKNOWN = "unknown"


class BddAlgebra:
    """Bits are BDD nodes of one manager."""

    def __init__(self, manager: BDDManager):
        self.manager = manager
        self.true = manager.true
        self.false = manager.false

    def const(self, value: bool):
        return self.true if value else self.false

    def to_constant(self, x) -> Optional[bool]:
        if x == self.true:
            return True
        if x == self.false:
            return False
        return None

    def not_(self, a):
        return ~a

    def and_(self, a, b):
        return a & b

    def or_(self, a, b):
        return a | b

    def xor(self, a, b):
        return (a & ~b) | (~a & b)

    def ite(self, c, t, e):
        constant = self.to_constant(c)
        if constant is not None:
            return t if constant else e
        return (c & t) | (~c & e)


@dataclass
class SolverResult:
    """Outcome of solve(); ``assignment`` is filled only when status is sat."""
    status: str
    assignment: Dict[Hole, int] = field(default_factory=dict)
    valuations_checked: int = 0

    @property
    def sat(self) -> bool:
        return self.status == SAT


def _hole_variable(index: int, position: int) -> str:
    return f"h{index}_{position}"


def solve(specification: Expression, sketch: Expression,
          max_valuations: int = 1 << 16,
          module_semantics=None) -> SolverResult:
    """
    Fill the holes of ``sketch`` so it matches ``specification`` everywhere.

    Args:
        specification: Hole-free reference expression
        sketch: Expression with holes over (a subset of) the same variables
        max_valuations: Give up with status "unknown" beyond this many
            variable valuations
        module_semantics: Primitive semantics (default: MODULE_SEMANTICS)

    Returns:
        SolverResult with status "sat" (and a value for every hole of the
        sketch), "unsat" or "unknown"
    """
    if not specification.is_bitvector or not sketch.is_bitvector:
        raise ShapeError("solve() needs bit-vector expressions")
    if specification.width != sketch.width:
        raise ShapeError(
            f"Specification is {specification.width} bits, sketch is {sketch.width} bits")
    if holes(specification):
        raise ShapeError("Specification must not contain holes")

    free = dict(variables(specification))
    for name, width in variables(sketch).items():
        if free.setdefault(name, width) != width:
            raise ShapeError(f"Variable '{name}' has width {free[name]} in the specification, "
                             f"{width} in the sketch")

    names = sorted(free)
    total = 1
    for name in names:
        total *= 1 << free[name]
    if total > max_valuations:
        logger.info("solve: %d valuations exceed the limit of %d", total, max_valuations)
        return SolverResult(UNKNOWN)

    sketch_holes = holes(sketch)
    manager = BDDManager()
    hole_vars: Dict[Hole, List[str]] = {}
    for index, hole in enumerate(sketch_holes):
        hole_vars[hole] = [_hole_variable(index, i) for i in range(hole.width)]
    manager.declare(*[name for hole in sketch_holes for name in hole_vars[hole]])

    algebra = BddAlgebra(manager)
    concrete = BoolAlgebra()

    def hole_bits(hole: Hole):
        return [manager.var(name) for name in hole_vars[hole]]

    constraint = manager.true
    checked = 0
    for values in itertools.product(*[range(1 << free[name]) for name in names]):
        env = dict(zip(names, values))
        expected = bits_to_int(Evaluator(concrete, env, None, module_semantics).evaluate(specification))
        actual = Evaluator(algebra, env, hole_bits, module_semantics).evaluate(sketch)
        for i, b in enumerate(actual):
            constraint &= b if (expected >> i) & 1 else ~b
        checked += 1
        if constraint == manager.false:
            logger.info("solve: unsat after %d of %d valuations", checked, total)
            return SolverResult(UNSAT, valuations_checked=checked)

    model = manager.pick(constraint)
    assignment = {}
    for hole in sketch_holes:
        assignment[hole] = sum(1 << i for i, name in enumerate(hole_vars[hole]) if model.get(name))
    logger.info("solve: sat with %d holes over %d valuations", len(sketch_holes), checked)
    return SolverResult(SAT, assignment, checked)

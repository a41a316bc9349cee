"""Pytest-based tests for solving sketches against reference expressions."""

import itertools

import pytest

from lutsketch import (
    Var, Hole, Concat, BinOp, ShapeError,
    bitwise_sketch_generator, carry_sketch_generator, bitwise_with_carry_sketch_generator,
    comparison_sketch_generator, shallow_comparison_sketch_generator,
    multiplication_sketch_generator,
    solve, substitute, symbolics, variables, interpret,
)
from lutsketch.solver import SAT, UNSAT, UNKNOWN


def assert_equivalent(spec, circuit):
    """Exhaustively compare a hole-free circuit with its specification."""
    assert symbolics(circuit) == set()
    free = variables(spec)
    names = sorted(free)
    for values in itertools.product(*[range(1 << free[n]) for n in names]):
        env = dict(zip(names, values))
        assert interpret(circuit, env) == interpret(spec, env), env


def solve_and_check(spec, sketch):
    result = solve(spec, sketch)
    assert result.status == SAT
    assert result.sat
    assert set(result.assignment) == symbolics(sketch)
    circuit = substitute(sketch, result.assignment)
    assert_equivalent(spec, circuit)
    return circuit


# ============================================================================
# Round trips
# ============================================================================

def test_bitwise_and(generic):
    a, b = Var("a", 2), Var("b", 2)
    sketch, _ = bitwise_sketch_generator(generic, [a, b], 2, 2)
    circuit = solve_and_check(BinOp("and", a, b), sketch)
    assert interpret(circuit, {"a": 0b10, "b": 0b11}) == 0b10


def test_bitwise_xor_three_bits(xilinx):
    a, b = Var("a", 3), Var("b", 3)
    sketch, _ = bitwise_sketch_generator(xilinx, [a, b], 2, 3)
    solve_and_check(BinOp("xor", a, b), sketch)


def test_carry_addition(generic):
    a, b = Var("a", 2), Var("b", 2)
    sketch, _ = carry_sketch_generator(generic, [a, b], 2, 2)
    circuit = solve_and_check(BinOp("add", a, b), sketch)
    assert interpret(circuit, {"a": 1, "b": 1}) == 2


def test_subtraction(generic):
    a, b = Var("a", 3), Var("b", 3)
    sketch, _ = bitwise_with_carry_sketch_generator(generic, [a, b], 2, 3)
    solve_and_check(BinOp("sub", a, b), sketch)


def test_comparison_equality(generic):
    a, b = Var("a", 4), Var("b", 4)
    sketch, _ = comparison_sketch_generator(generic, [a, b], 2, 4)
    circuit = solve_and_check(BinOp("eq", a, b), sketch)
    assert interpret(circuit, {"a": 9, "b": 9}) == 1
    assert interpret(circuit, {"a": 9, "b": 8}) == 0


def test_comparison_equality_mux_xor_carry(xilinx):
    a, b = Var("a", 3), Var("b", 3)
    sketch, _ = comparison_sketch_generator(xilinx, [a, b], 2, 3)
    solve_and_check(BinOp("eq", a, b), sketch)


def test_shallow_comparison_equality(ecp5):
    a, b = Var("a", 4), Var("b", 4)
    sketch, state = shallow_comparison_sketch_generator(ecp5, [a, b], 2, 4)
    assert state.depth == 2
    solve_and_check(BinOp("eq", a, b), sketch)


def test_multiplication(generic):
    a, b = Var("a", 3), Var("b", 3)
    sketch, _ = multiplication_sketch_generator(generic, [a, b], 2, 3)
    circuit = solve_and_check(BinOp("mul", a, b), sketch)
    assert interpret(circuit, {"a": 3, "b": 3}) == 1


# ============================================================================
# Other outcomes
# ============================================================================

def test_carry_cannot_compute_and(generic):
    a, b = Var("a", 2), Var("b", 2)
    sketch, _ = carry_sketch_generator(generic, [a, b], 2, 2)
    result = solve(BinOp("and", a, b), sketch)
    assert result.status == UNSAT
    assert not result.sat
    assert result.assignment == {}


def test_too_many_valuations(generic):
    a, b = Var("a", 8), Var("b", 8)
    sketch, _ = bitwise_sketch_generator(generic, [a, b], 2, 8)
    result = solve(BinOp("and", a, b), sketch, max_valuations=1000)
    assert result.status == UNKNOWN
    assert result.valuations_checked == 0


def test_hole_only_sketch():
    h = Hole(3)
    result = solve(BinOp("add", Var("a", 3), Var("a", 3)), Concat((h,)), max_valuations=8)
    assert result.status == UNSAT

    x = Var("x", 2)
    g = Hole(2)
    result = solve(BinOp("xor", x, x), g)
    assert result.sat
    assert result.assignment[g] == 0


def test_shape_errors(generic):
    a, b = Var("a", 2), Var("b", 2)
    sketch, _ = bitwise_sketch_generator(generic, [a, b], 2, 2)
    with pytest.raises(ShapeError):
        solve(BinOp("eq", a, b), sketch)
    with pytest.raises(ShapeError):
        solve(Concat((a, Hole(1))), Concat((sketch, Hole(1))))
    with pytest.raises(ShapeError):
        solve(Var("a", 3), Concat((sketch, Hole(1))))

#!/usr/bin/env python3
"""
Sketch generators.

Every generator builds an architecture-independent template for a class of
bit-vector operations and returns it with the internal data that programs
its primitives:

    generator(arch, logical_inputs, num_logical_inputs, bitwidth,
              internal_data=None) -> (Expression, internal_data)

Passing a generator's internal data back in reuses the same holes, which is
how one template is instantiated several times with identical programming
(e.g. every partial-product AND of a multiplier).

Generators:
    bitwise                 one shared LUT per bit position
    carry                   one carry chain, DI = input 0, S = input 1
    bitwise_with_carry      bitwise feeding the S operand of a carry chain
    comparison              two bitwise sketches into a carry chain, carry out
    shallow_comparison      log-depth tree of densely packed LUTs
    multiplication          AND partial products + ripple accumulation
    shift                   staged barrel shifter of 2:1 muxes
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .architecture import (
    ArchitectureDescription, LutData, MuxData, CarryData,
    lut_interface, mux_interface, carry_interface,
)
from .errors import ArityError, ShapeError, InternalDataMismatch
from .ir import (
    Expression, Const, Hole, ZeroExtend, DupExtend,
    bit, bits, choose, concat_bits,
)
from .mapping import HoleSelectedMapping
from .packing import ReductionState, reduce_rows

logger = logging.getLogger(__name__)

Sketch = Tuple[Expression, object]


# ============================================================================
# Generator state
# ============================================================================

@dataclass(frozen=True)
class CarryState:
    carry: CarryData
    carry_in: Hole


@dataclass(frozen=True)
class BitwiseCarryState:
    bitwise: LutData
    carry: CarryState


@dataclass(frozen=True)
class ComparisonState:
    di: LutData
    s: LutData
    carry: CarryState


@dataclass(frozen=True)
class MultiplicationState:
    and_lut: LutData
    accumulate: Optional[BitwiseCarryState]


@dataclass(frozen=True)
class ShiftState:
    mux: MuxData
    saturate: Optional[ReductionState]
    num_stages: int


# ============================================================================
# Helpers
# ============================================================================

def _check_inputs(generator: str, logical_inputs: Sequence[Expression],
                  num_logical_inputs: int, bitwidth: int,
                  required: Optional[int] = None, exact_width: bool = False):
    if required is not None and num_logical_inputs != required:
        raise ArityError(
            f"{generator} sketch needs exactly {required} logical inputs, got {num_logical_inputs}")
    if num_logical_inputs < 1:
        raise ArityError(f"{generator} sketch needs at least one logical input")
    if len(logical_inputs) != num_logical_inputs:
        raise ArityError(
            f"{generator} sketch: {len(logical_inputs)} inputs given, "
            f"num_logical_inputs is {num_logical_inputs}")
    if not isinstance(bitwidth, int) or bitwidth < 1:
        raise ShapeError(f"{generator} sketch: bitwidth must be positive, got {bitwidth!r}")
    for i, expr in enumerate(logical_inputs):
        if not isinstance(expr, Expression) or not expr.is_bitvector:
            raise ShapeError(f"{generator} sketch: logical input {i} is not a bit-vector")
        if expr.width > bitwidth or (exact_width and expr.width != bitwidth):
            raise ShapeError(
                f"{generator} sketch: logical input {i} has width {expr.width}, bitwidth is {bitwidth}")


def _expect_state(generator: str, internal_data, cls):
    if internal_data is not None and not isinstance(internal_data, cls):
        raise InternalDataMismatch(
            f"{generator} sketch expects {cls.__name__}, got {type(internal_data).__name__}")
    return internal_data


def _widen(expr: Expression, bitwidth: int) -> Expression:
    return expr if expr.width == bitwidth else ZeroExtend(expr, bitwidth)


def _instantiate_carry(arch: ArchitectureDescription, di: Expression, s: Expression,
                       bitwidth: int, state: Optional[CarryState]):
    carry_in = state.carry_in if state is not None else Hole(1)
    outs, carry_data = arch.construct_interface(
        carry_interface(bitwidth),
        {"CI": carry_in, "DI": di, "S": s},
        state.carry if state is not None else None)
    if state is None or carry_data is not state.carry:
        state = CarryState(carry_data, carry_in)
    return outs, state


# ============================================================================
# Generators
# ============================================================================

def bitwise_sketch_generator(arch: ArchitectureDescription,
                             logical_inputs: Sequence[Expression],
                             num_logical_inputs: int,
                             bitwidth: int,
                             internal_data: Optional[LutData] = None) -> Tuple[Expression, LutData]:
    """
    Bitwise operation: the same n-input function at every bit position.

    Each input is zero- or duplicate-extended to ``bitwidth`` (a hole picks),
    the bit positions are routed through a solver-selected logical/physical
    mapping, and one LUT per position computes the function. All LUTs share
    one truth table. The single logical output is returned, ``bitwidth``
    bits wide.
    """
    _check_inputs("bitwise", logical_inputs, num_logical_inputs, bitwidth)
    lut_data = _expect_state("bitwise", internal_data, LutData)

    extended = [choose(ZeroExtend(x, bitwidth), DupExtend(x, bitwidth)) for x in logical_inputs]
    logical = [[bit(x, i) for x in extended] for i in range(bitwidth)]

    mapping = HoleSelectedMapping()
    physical = mapping.to_physical(logical)

    interface = lut_interface(num_logical_inputs)
    physical_outputs = []
    for position in physical:
        outs, lut_data = arch.construct_interface(
            interface, {f"I{j}": b for j, b in enumerate(position)}, lut_data)
        physical_outputs.append([outs["O"]])

    logical_outputs = mapping.to_logical(physical_outputs)
    logger.debug("bitwise sketch: %d inputs, %d bits on %s", num_logical_inputs, bitwidth, arch.name)
    return concat_bits([position[0] for position in logical_outputs]), lut_data


def carry_sketch_generator(arch: ArchitectureDescription,
                           logical_inputs: Sequence[Expression],
                           num_logical_inputs: int,
                           bitwidth: int,
                           internal_data: Optional[CarryState] = None) -> Tuple[Expression, CarryState]:
    """One carry chain with a hole carry-in; DI = input 0, S = input 1."""
    _check_inputs("carry", logical_inputs, num_logical_inputs, bitwidth, required=2)
    state = _expect_state("carry", internal_data, CarryState)
    outs, state = _instantiate_carry(
        arch, _widen(logical_inputs[0], bitwidth), _widen(logical_inputs[1], bitwidth), bitwidth, state)
    return outs["O"], state


def bitwise_with_carry_sketch_generator(arch: ArchitectureDescription,
                                        logical_inputs: Sequence[Expression],
                                        num_logical_inputs: int,
                                        bitwidth: int,
                                        internal_data: Optional[BitwiseCarryState] = None
                                        ) -> Tuple[Expression, BitwiseCarryState]:
    """Addition/subtraction class: bitwise(inputs) as S, input 0 as DI."""
    _check_inputs("bitwise_with_carry", logical_inputs, num_logical_inputs, bitwidth)
    state = _expect_state("bitwise_with_carry", internal_data, BitwiseCarryState)

    s, bitwise_data = bitwise_sketch_generator(
        arch, logical_inputs, num_logical_inputs, bitwidth,
        state.bitwise if state is not None else None)
    out, carry_state = carry_sketch_generator(
        arch, [_widen(logical_inputs[0], bitwidth), s], 2, bitwidth,
        state.carry if state is not None else None)
    return out, BitwiseCarryState(bitwise_data, carry_state)


def comparison_sketch_generator(arch: ArchitectureDescription,
                                logical_inputs: Sequence[Expression],
                                num_logical_inputs: int,
                                bitwidth: int,
                                internal_data: Optional[ComparisonState] = None
                                ) -> Tuple[Expression, ComparisonState]:
    """
    Comparison: two independent bitwise sketches drive DI and S of a carry
    chain and the 1-bit carry out is the result.
    """
    _check_inputs("comparison", logical_inputs, num_logical_inputs, bitwidth)
    state = _expect_state("comparison", internal_data, ComparisonState)

    di, di_data = bitwise_sketch_generator(
        arch, logical_inputs, num_logical_inputs, bitwidth,
        state.di if state is not None else None)
    s, s_data = bitwise_sketch_generator(
        arch, logical_inputs, num_logical_inputs, bitwidth,
        state.s if state is not None else None)
    outs, carry_state = _instantiate_carry(
        arch, di, s, bitwidth, state.carry if state is not None else None)
    return outs["CO"], ComparisonState(di_data, s_data, carry_state)


def shallow_comparison_sketch_generator(arch: ArchitectureDescription,
                                        logical_inputs: Sequence[Expression],
                                        num_logical_inputs: int,
                                        bitwidth: int,
                                        internal_data: Optional[ReductionState] = None,
                                        share_within_row: bool = True
                                        ) -> Tuple[Expression, ReductionState]:
    """
    Comparison as a log-depth LUT tree instead of a carry chain.

    The inputs' bits are densely packed into a first row of LUT outputs,
    which is packed again until one bit remains. Uses more LUTs than the
    carry-chain version but has depth O(log bitwidth).
    """
    _check_inputs("shallow_comparison", logical_inputs, num_logical_inputs, bitwidth,
                  exact_width=True)
    state = _expect_state("shallow_comparison", internal_data, ReductionState)
    rows = [bits(x) for x in logical_inputs]
    return reduce_rows(arch, rows, state, share_within_row)


def multiplication_sketch_generator(arch: ArchitectureDescription,
                                    logical_inputs: Sequence[Expression],
                                    num_logical_inputs: int,
                                    bitwidth: int,
                                    internal_data: Optional[MultiplicationState] = None
                                    ) -> Tuple[Expression, MultiplicationState]:
    """
    Truncated two's-complement multiplication (a * b mod 2^bitwidth).

    Row i of the partial-product matrix has a[j-i] AND b[i] in column j for
    j >= i and 0 below. Every AND is one 2-input LUT sharing a single truth
    table, so once one of them is an AND they all are. The rows are summed
    left to right with bitwise-with-carry sketches sharing one state.
    """
    _check_inputs("multiplication", logical_inputs, num_logical_inputs, bitwidth,
                  required=2, exact_width=True)
    state = _expect_state("multiplication", internal_data, MultiplicationState)
    a, b = logical_inputs

    and_lut = state.and_lut if state is not None else None
    zero = Const(1, 0)
    rows = []
    for i in range(bitwidth):
        row = []
        for j in range(bitwidth):
            if j >= i:
                outs, and_lut = arch.construct_interface(
                    lut_interface(2), {"I0": bit(a, j - i), "I1": bit(b, i)}, and_lut)
                row.append(outs["O"])
            else:
                row.append(zero)
        rows.append(concat_bits(row))

    accumulate = state.accumulate if state is not None else None
    total = rows[0]
    for row in rows[1:]:
        total, accumulate = bitwise_with_carry_sketch_generator(
            arch, [total, row], 2, bitwidth, accumulate)

    logger.debug("multiplication sketch: %d bits, %d partial products",
                 bitwidth, bitwidth * (bitwidth + 1) // 2)
    return total, MultiplicationState(and_lut, accumulate)


def shift_stage_count(bitwidth: int, logarithmic: bool = False) -> int:
    """
    Number of mux stages in a shift sketch.

    The default is one stage per bit. The logarithmic count is the smallest
    number of stages whose last shift distance, 2^(stages-1), reaches
    ``bitwidth`` so that the last stage can saturate.
    """
    if logarithmic:
        return (bitwidth - 1).bit_length() + 1
    return bitwidth


def shift_sketch_generator(arch: ArchitectureDescription,
                           logical_inputs: Sequence[Expression],
                           num_logical_inputs: int,
                           bitwidth: int,
                           internal_data: Optional[ShiftState] = None,
                           logarithmic_stages: bool = False,
                           fill: Optional[str] = None) -> Tuple[Expression, ShiftState]:
    """
    Shift of input 0 by input 1, direction and fill left to the solver.

    Stage i moves every bit by 2^i when shift-amount bit i is set: each
    output bit is a 2:1 mux (one shared mux state for the whole network)
    between its current value and a Choose of its left or right neighbour
    at distance 2^i. Positions whose neighbour lies past the edge take a
    fill bit, a Choose of 0 and the sign bit of input 0.

    The last stage is selected by the OR of every remaining high shift
    amount bit, so amounts of bitwidth or more shift in only fill bits.

    Args:
        logarithmic_stages: Use shift_stage_count(bitwidth, True) stages
            instead of one stage per bit
        fill: Force the fill bit to "zero" or "sign" instead of a hole
    """
    _check_inputs("shift", logical_inputs, num_logical_inputs, bitwidth,
                  required=2, exact_width=True)
    state = _expect_state("shift", internal_data, ShiftState)
    if fill not in (None, "zero", "sign"):
        raise ValueError(f"fill must be None, 'zero' or 'sign', got {fill!r}")

    a, amount = logical_inputs
    num_stages = shift_stage_count(bitwidth, logarithmic_stages)
    sign = bit(a, bitwidth - 1)
    zero = Const(1, 0)

    mux_data = state.mux if state is not None else None
    saturate = state.saturate if state is not None else None
    current = bits(a)

    for stage in range(num_stages):
        distance = 1 << stage
        if stage < num_stages - 1:
            select = bit(amount, stage)
        else:
            remaining = [bit(amount, i) for i in range(stage, bitwidth)]
            if len(remaining) == 1:
                select = remaining[0]
            else:
                select, saturate = reduce_rows(arch, [remaining], saturate)

        fills: Dict[int, Expression] = {}

        def fill_bit(position: int) -> Expression:
            if position not in fills:
                if fill == "sign":
                    fills[position] = sign
                elif fill == "zero":
                    fills[position] = zero
                else:
                    fills[position] = choose(zero, sign)
            return fills[position]

        shifted = []
        for position in range(bitwidth):
            left = position - distance
            right = position + distance
            from_left = current[left] if left >= 0 else fill_bit(position)
            from_right = current[right] if right < bitwidth else fill_bit(position)
            shifted.append(from_left if from_left is from_right else choose(from_left, from_right))

        next_bits = []
        for position in range(bitwidth):
            outs, mux_data = arch.construct_interface(
                mux_interface(2),
                {"I0": current[position], "I1": shifted[position], "S": select},
                mux_data)
            next_bits.append(outs["O"])
        current = next_bits

    logger.debug("shift sketch: %d bits, %d stages", bitwidth, num_stages)
    return concat_bits(current), ShiftState(mux_data, saturate, num_stages)


SKETCH_GENERATORS: Dict[str, Callable[..., Sketch]] = {
    "bitwise": bitwise_sketch_generator,
    "carry": carry_sketch_generator,
    "bitwise_with_carry": bitwise_with_carry_sketch_generator,
    "comparison": comparison_sketch_generator,
    "shallow_comparison": shallow_comparison_sketch_generator,
    "multiplication": multiplication_sketch_generator,
    "shift": shift_sketch_generator,
}


def get_sketch_generator(name: str) -> Callable[..., Sketch]:
    """Look up a sketch generator by name."""
    try:
        return SKETCH_GENERATORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown sketch generator '{name}' (known: {', '.join(SKETCH_GENERATORS)})") from None

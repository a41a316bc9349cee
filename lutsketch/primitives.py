#!/usr/bin/env python3
"""
Reference behavior of the platform primitives an architecture instantiates.

Each primitive is written once over a *bit algebra*: an object providing
``const``, ``not_``, ``and_``, ``or_``, ``xor`` and ``ite`` over opaque bit
values. The evaluator runs these with Python booleans; the solver runs the
very same functions with BDD nodes.

A semantics function takes the algebra and a dict of input ports (each an
LSB-first list of bits) and returns a dict of output ports in the same form.
"""

from typing import Callable, Dict, List

from .errors import EvaluationError

Bits = List
ModuleSemantics = Callable[[object, Dict[str, Bits]], Dict[str, Bits]]


def lut(algebra, ports: Dict[str, Bits]) -> Dict[str, Bits]:
    """
    k-input lookup table.

    ``INIT`` holds 2^k bits; bit ``i`` is the output when the inputs
    I0..I(k-1) encode ``i`` (I0 least significant).
    """
    init = ports['INIT']
    num_inputs = len(init).bit_length() - 1
    if len(init) != 1 << num_inputs:
        raise EvaluationError(f"LUT INIT must have a power-of-two width, got {len(init)}")

    values = list(init)
    for i in range(num_inputs):
        select = ports[f'I{i}'][0]
        values = [algebra.ite(select, values[m + 1], values[m])
                  for m in range(0, len(values), 2)]
    return {'O': values}


def carry_add(algebra, ports: Dict[str, Bits]) -> Dict[str, Bits]:
    """Adder-style carry block: O = DI + S + CI, CO = carry out."""
    carry = ports['CI'][0]
    out = []
    for d, s in zip(ports['DI'], ports['S']):
        propagate = algebra.xor(d, s)
        out.append(algebra.xor(propagate, carry))
        carry = algebra.or_(algebra.and_(d, s), algebra.and_(carry, propagate))
    return {'O': out, 'CO': [carry]}


def carry_mux_xor(algebra, ports: Dict[str, Bits]) -> Dict[str, Bits]:
    """
    Mux/xor carry chain (the CARRY4/CARRY8 structure).

    O[i] = S[i] ^ c[i];  c[i+1] = S[i] ? c[i] : DI[i];  c[0] = CI
    """
    carry = ports['CI'][0]
    out = []
    for d, s in zip(ports['DI'], ports['S']):
        out.append(algebra.xor(s, carry))
        carry = algebra.ite(s, carry, d)
    return {'O': out, 'CO': [carry]}


MAX_LUT_INPUTS = 8

MODULE_SEMANTICS: Dict[str, ModuleSemantics] = {
    'CARRY_ADD': carry_add,
    'CARRY_MUXXOR': carry_mux_xor,
}
MODULE_SEMANTICS.update({f'LUT{k}': lut for k in range(1, MAX_LUT_INPUTS + 1)})

#!/usr/bin/env python3
"""
Evaluator for sketch expressions.

The Evaluator walks an expression bit by bit over a pluggable bit algebra:
BoolAlgebra for concrete evaluation (``interpret``), or the BDD algebra used
by the solver. Primitive instances are evaluated through a module-semantics
table (see primitives.py).
"""

from typing import Callable, Dict, List, Optional, Union

from .errors import EvaluationError
from .ir import (
    Expression, Const, Var, Hole, Extract, Concat, ZeroExtend, DupExtend,
    ListLit, ListRef, MapLit, MapRef, Instance, Choose, BinOp, UnOp,
)
from .primitives import MODULE_SEMANTICS


class BoolAlgebra:
    """Bits are Python booleans."""

    true = True
    false = False

    def const(self, value: bool) -> bool:
        return bool(value)

    def to_constant(self, x) -> Optional[bool]:
        return x

    def not_(self, a):
        return not a

    def and_(self, a, b):
        return a and b

    def or_(self, a, b):
        return a or b

    def xor(self, a, b):
        return a != b

    def ite(self, c, t, e):
        return t if c else e


def int_to_bits(algebra, value: int, width: int) -> List:
    return [algebra.const((value >> i) & 1) for i in range(width)]


def bits_to_int(bit_values) -> int:
    return sum(1 << i for i, b in enumerate(bit_values) if b)


def _to_signed(value: int, width: int) -> int:
    return value - (1 << width) if value >> (width - 1) else value


def _apply_binary(op: str, a: int, b: int, width: int) -> int:
    mask = (1 << width) - 1
    if op == 'and':
        return a & b
    if op == 'or':
        return a | b
    if op == 'xor':
        return a ^ b
    if op == 'add':
        return (a + b) & mask
    if op == 'sub':
        return (a - b) & mask
    if op == 'mul':
        return (a * b) & mask
    if op == 'shl':
        return (a << b) & mask if b < width else 0
    if op == 'lshr':
        return a >> b if b < width else 0
    if op == 'ashr':
        return (_to_signed(a, width) >> min(b, width)) & mask
    if op == 'eq':
        return int(a == b)
    if op == 'ne':
        return int(a != b)
    if op == 'ult':
        return int(a < b)
    if op == 'slt':
        return int(_to_signed(a, width) < _to_signed(b, width))
    raise EvaluationError(f"Unknown operator '{op}'")


class Evaluator:
    """
    Evaluates expressions to LSB-first bit lists.

    Args:
        algebra: Bit algebra (BoolAlgebra or a BDD algebra)
        env: Variable name -> integer value
        hole_bits: Returns the bit list standing for a hole
        module_semantics: Primitive module name -> semantics function
    """

    def __init__(self, algebra, env: Optional[Dict[str, int]] = None,
                 hole_bits: Optional[Callable[[Hole], List]] = None,
                 module_semantics: Optional[Dict[str, Callable]] = None):
        self.algebra = algebra
        self.env = env or {}
        self.hole_bits = hole_bits
        self.module_semantics = MODULE_SEMANTICS if module_semantics is None else module_semantics
        self._memo: Dict[int, object] = {}

    def evaluate(self, expr: Expression):
        # Inputs are evaluated first over an explicit stack, so _evaluate
        # only ever reads memoized values
        stack = [expr]
        while stack:
            node = stack[-1]
            if id(node) in self._memo:
                stack.pop()
                continue
            pending = [dep for dep in self._inputs(node) if id(dep) not in self._memo]
            if pending:
                stack.extend(pending)
                continue
            stack.pop()
            self._memo[id(node)] = self._evaluate(node)
        return self._memo[id(expr)]

    def _inputs(self, expr: Expression):
        if isinstance(expr, Choose):
            select = self._memo.get(id(expr.selector))
            if select is None:
                return (expr.selector,)
            constant = self.algebra.to_constant(select[0])
            if constant is not None:
                return (expr.b if constant else expr.a,)
            return (expr.a, expr.b)
        return expr.children()

    def _evaluate(self, expr: Expression):
        alg = self.algebra

        if isinstance(expr, Const):
            return int_to_bits(alg, expr.value, expr.width)

        if isinstance(expr, Var):
            if expr.name not in self.env:
                raise EvaluationError(f"No value for variable '{expr.name}'")
            return int_to_bits(alg, self.env[expr.name] & ((1 << expr.width) - 1), expr.width)

        if isinstance(expr, Hole):
            if self.hole_bits is None:
                raise EvaluationError(f"Unresolved {expr!r}")
            return self.hole_bits(expr)

        if isinstance(expr, Extract):
            return self.evaluate(expr.expr)[expr.lo:expr.hi + 1]

        if isinstance(expr, Concat):
            result = []
            for part in reversed(expr.parts):
                result.extend(self.evaluate(part))
            return result

        if isinstance(expr, ZeroExtend):
            inner = self.evaluate(expr.expr)
            return inner + [alg.false] * (expr.width - len(inner))

        if isinstance(expr, DupExtend):
            inner = self.evaluate(expr.expr)
            return inner + [inner[-1]] * (expr.width - len(inner))

        if isinstance(expr, ListLit):
            return [self.evaluate(item) for item in expr.items]

        if isinstance(expr, ListRef):
            return self._list_ref(expr)

        if isinstance(expr, (MapLit, Instance)):
            return self._map(expr)

        if isinstance(expr, MapRef):
            return self.evaluate(expr.map)[expr.key]

        if isinstance(expr, Choose):
            select = self.evaluate(expr.selector)[0]
            constant = alg.to_constant(select)
            if constant is not None:
                return self.evaluate(expr.b if constant else expr.a)
            a = self.evaluate(expr.a)
            b = self.evaluate(expr.b)
            return [alg.ite(select, y, x) for x, y in zip(a, b)]

        if isinstance(expr, BinOp):
            a = self._constant_operand(expr.a, expr.op)
            b = self._constant_operand(expr.b, expr.op)
            return int_to_bits(alg, _apply_binary(expr.op, a, b, expr.a.width), expr.width)

        if isinstance(expr, UnOp):
            a = self._constant_operand(expr.a, expr.op)
            mask = (1 << expr.width) - 1
            value = (~a if expr.op == 'not' else -a) & mask
            return int_to_bits(alg, value, expr.width)

        raise EvaluationError(f"Cannot evaluate {type(expr).__name__}")

    def _list_ref(self, expr: ListRef):
        alg = self.algebra
        items = self.evaluate(expr.lst)
        if isinstance(expr.index, int):
            return items[expr.index]

        index_bits = self.evaluate(expr.index)
        constants = [alg.to_constant(b) for b in index_bits]
        if all(c is not None for c in constants):
            position = bits_to_int(constants)
            if position < len(items):
                return items[position]
            return [alg.false] * expr.width

        result = [alg.false] * expr.width
        for position, item in enumerate(items):
            matches = alg.true
            for i, b in enumerate(index_bits):
                matches = alg.and_(matches, b if (position >> i) & 1 else alg.not_(b))
            result = [alg.ite(matches, x, r) for x, r in zip(item, result)]
        return result

    def _map(self, expr: Union[MapLit, Instance]) -> Dict[str, List]:
        if isinstance(expr, MapLit):
            return {key: self.evaluate(value) for key, value in expr.entries}

        semantics = self.module_semantics.get(expr.module)
        if semantics is None:
            raise EvaluationError(f"No semantics for module '{expr.module}'")
        ports = {name: self.evaluate(value) for name, value in expr.ports}
        outputs = semantics(self.algebra, ports)
        for name, width in expr.outputs:
            if name not in outputs or len(outputs[name]) != width:
                raise EvaluationError(
                    f"Module '{expr.module}' did not produce {width}-bit output '{name}'")
        return outputs

    def _constant_operand(self, expr: Expression, op: str) -> int:
        values = [self.algebra.to_constant(b) for b in self.evaluate(expr)]
        if any(v is None for v in values):
            raise EvaluationError(f"Operator '{op}' needs concrete operands")
        return bits_to_int(values)


def interpret(expr: Expression,
              env: Optional[Dict[str, int]] = None,
              assignment: Optional[Dict[Hole, Union[int, Const]]] = None,
              module_semantics: Optional[Dict[str, Callable]] = None) -> int:
    """
    Evaluate a bit-vector expression to an unsigned integer.

    Args:
        expr: Expression to evaluate
        env: Values for free variables
        assignment: Values for holes (a sketch with unassigned holes fails)
        module_semantics: Primitive semantics (default: MODULE_SEMANTICS)

    Returns:
        Value of ``expr`` as an unsigned integer of ``expr.width`` bits
    """
    if not expr.is_bitvector:
        raise EvaluationError(f"interpret() needs a bit-vector, got {type(expr).__name__}")

    algebra = BoolAlgebra()
    assignment = assignment or {}

    def hole_bits(hole: Hole) -> List[bool]:
        if hole not in assignment:
            raise EvaluationError(f"Unresolved {hole!r}")
        value = assignment[hole]
        if isinstance(value, Const):
            value = value.value
        return int_to_bits(algebra, value, hole.width)

    evaluator = Evaluator(algebra, env, hole_bits, module_semantics)
    return bits_to_int(evaluator.evaluate(expr))

#!/usr/bin/env python3
"""
Expression IR for circuit sketches.

A sketch is a tree (in practice a DAG: sub-expressions are shared by
reference) of immutable nodes describing hardware-level values. Leaves are
constants, named variables and holes; inner nodes select, join and extend
bit-vectors, build lists and maps, instantiate platform primitives and choose
between two alternatives.

Width invariants are checked when a node is built, never at evaluation:

    Extract(lo, hi, e)   0 <= lo <= hi < width(e)
    Concat(parts)        width = sum of part widths (parts MSB first)
    Choose(a, b, sel)    width(a) == width(b), sel is a 1-bit Hole

Example:
    a = Var("a", 4)
    low = Extract(0, 1, a)          # a[1:0]
    both = Concat((low, Hole(2)))   # {a[1:0], ??}
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from .errors import ShapeError, SubstitutionError


class Expression:
    """Base class for IR nodes.

    Bit-vector valued nodes have an integer ``width``. Lists have the width
    of their items; maps and primitive instances are not bit-vectors.
    """

    is_bitvector = True

    def children(self) -> Tuple['Expression', ...]:
        return ()

    def with_children(self, children: Sequence['Expression']) -> 'Expression':
        return self


def _check_width(width, what: str):
    if not isinstance(width, int) or isinstance(width, bool) or width < 1:
        raise ShapeError(f"{what}: width must be a positive integer, got {width!r}")


def _check_bitvector(expr, what: str):
    if not isinstance(expr, Expression):
        raise ShapeError(f"{what}: expected an Expression, got {type(expr).__name__}")
    if not expr.is_bitvector:
        raise ShapeError(f"{what}: expected a bit-vector, got {type(expr).__name__}")


# ============================================================================
# Leaves
# ============================================================================

@dataclass(frozen=True)
class Const(Expression):
    """Constant bit-vector. Negative values are stored in two's complement."""
    width: int
    value: int

    def __post_init__(self):
        _check_width(self.width, "Const")
        if not -(1 << self.width) <= self.value < (1 << self.width):
            raise ShapeError(f"Const: value {self.value} does not fit in {self.width} bits")
        object.__setattr__(self, 'value', self.value & ((1 << self.width) - 1))


@dataclass(frozen=True)
class Var(Expression):
    """Free (universally quantified) bit-vector input."""
    name: str
    width: int

    def __post_init__(self):
        _check_width(self.width, f"Var {self.name}")


@dataclass(frozen=True, eq=False)
class Hole(Expression):
    """Decision point resolved by the solver.

    Holes compare and hash by identity: two holes of equal width are two
    different decisions. Sharing a decision means sharing the object.
    """
    width: int
    name: Optional[str] = None

    def __post_init__(self):
        _check_width(self.width, "Hole")

    def __repr__(self):
        label = self.name if self.name is not None else f"{id(self):x}"
        return f"Hole({self.width}, ?{label})"


# ============================================================================
# Bit-vector structure
# ============================================================================

@dataclass(frozen=True)
class Extract(Expression):
    """Bits ``hi`` down to ``lo`` (inclusive) of ``expr``."""
    lo: int
    hi: int
    expr: Expression
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        _check_bitvector(self.expr, "Extract")
        if not (0 <= self.lo <= self.hi < self.expr.width):
            raise ShapeError(
                f"Extract: need 0 <= lo <= hi < {self.expr.width}, got lo={self.lo} hi={self.hi}")
        object.__setattr__(self, 'width', self.hi - self.lo + 1)

    def children(self):
        return (self.expr,)

    def with_children(self, children):
        return Extract(self.lo, self.hi, children[0])


@dataclass(frozen=True)
class Concat(Expression):
    """Concatenation, most significant part first."""
    parts: Tuple[Expression, ...]
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        parts = tuple(self.parts)
        if not parts:
            raise ShapeError("Concat: needs at least one part")
        for part in parts:
            _check_bitvector(part, "Concat")
        object.__setattr__(self, 'parts', parts)
        object.__setattr__(self, 'width', sum(part.width for part in parts))

    def children(self):
        return self.parts

    def with_children(self, children):
        return Concat(tuple(children))


@dataclass(frozen=True)
class ZeroExtend(Expression):
    expr: Expression
    width: int

    def __post_init__(self):
        _check_bitvector(self.expr, "ZeroExtend")
        _check_width(self.width, "ZeroExtend")
        if self.width < self.expr.width:
            raise ShapeError(f"ZeroExtend: cannot narrow {self.expr.width} bits to {self.width}")

    def children(self):
        return (self.expr,)

    def with_children(self, children):
        return ZeroExtend(children[0], self.width)


@dataclass(frozen=True)
class DupExtend(Expression):
    """Extension that fills new high bits with copies of the top bit."""
    expr: Expression
    width: int

    def __post_init__(self):
        _check_bitvector(self.expr, "DupExtend")
        _check_width(self.width, "DupExtend")
        if self.width < self.expr.width:
            raise ShapeError(f"DupExtend: cannot narrow {self.expr.width} bits to {self.width}")

    def children(self):
        return (self.expr,)

    def with_children(self, children):
        return DupExtend(children[0], self.width)


# ============================================================================
# Lists and maps
# ============================================================================

@dataclass(frozen=True)
class ListLit(Expression):
    """List of equal-width bit-vectors."""
    items: Tuple[Expression, ...]
    width: int = field(init=False, compare=False, repr=False)

    is_bitvector = False

    def __post_init__(self):
        items = tuple(self.items)
        if not items:
            raise ShapeError("ListLit: needs at least one item")
        for item in items:
            _check_bitvector(item, "ListLit")
        widths = {item.width for item in items}
        if len(widths) != 1:
            raise ShapeError(f"ListLit: items must share one width, got {sorted(widths)}")
        object.__setattr__(self, 'items', items)
        object.__setattr__(self, 'width', items[0].width)

    def children(self):
        return self.items

    def with_children(self, children):
        return ListLit(tuple(children))


@dataclass(frozen=True)
class ListRef(Expression):
    """Item of a list, by static position or by a bit-vector index.

    A dynamic index that falls past the end of the list reads as zero.
    """
    lst: ListLit
    index: Union[int, Expression]
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.lst, ListLit):
            raise ShapeError(f"ListRef: expected a ListLit, got {type(self.lst).__name__}")
        if isinstance(self.index, int):
            if not 0 <= self.index < len(self.lst.items):
                raise ShapeError(
                    f"ListRef: index {self.index} out of range for {len(self.lst.items)} items")
        else:
            _check_bitvector(self.index, "ListRef index")
        object.__setattr__(self, 'width', self.lst.width)

    def children(self):
        if isinstance(self.index, int):
            return (self.lst,)
        return (self.lst, self.index)

    def with_children(self, children):
        index = self.index if isinstance(self.index, int) else children[1]
        return ListRef(children[0], index)


@dataclass(frozen=True)
class MapLit(Expression):
    """Ordered keyed collection; values may have different widths."""
    entries: Tuple[Tuple[str, Expression], ...]

    is_bitvector = False

    def __post_init__(self):
        entries = tuple((key, value) for key, value in self.entries)
        keys = [key for key, _ in entries]
        if len(set(keys)) != len(keys):
            raise ShapeError(f"MapLit: duplicate keys in {keys}")
        for key, value in entries:
            _check_bitvector(value, f"MapLit[{key}]")
        object.__setattr__(self, 'entries', entries)

    def output_widths(self) -> Dict[str, int]:
        return {key: value.width for key, value in self.entries}

    def children(self):
        return tuple(value for _, value in self.entries)

    def with_children(self, children):
        return MapLit(tuple((key, child) for (key, _), child in zip(self.entries, children)))


@dataclass(frozen=True)
class Instance(Expression):
    """Instantiation of a platform primitive.

    ``ports`` wires input ports (and parameters such as a LUT's INIT) to
    expressions; ``outputs`` declares the output ports and their widths.
    Outputs are read with ``MapRef(instance, port)``.
    """
    module: str
    ports: Tuple[Tuple[str, Expression], ...]
    outputs: Tuple[Tuple[str, int], ...]

    is_bitvector = False

    def __post_init__(self):
        ports = tuple((name, value) for name, value in self.ports)
        for name, value in ports:
            _check_bitvector(value, f"Instance {self.module} port {name}")
        outputs = tuple((name, width) for name, width in self.outputs)
        for name, width in outputs:
            _check_width(width, f"Instance {self.module} output {name}")
        object.__setattr__(self, 'ports', ports)
        object.__setattr__(self, 'outputs', outputs)

    def output_widths(self) -> Dict[str, int]:
        return dict(self.outputs)

    def port(self, name: str) -> Expression:
        for port_name, value in self.ports:
            if port_name == name:
                return value
        raise KeyError(name)

    def children(self):
        return tuple(value for _, value in self.ports)

    def with_children(self, children):
        ports = tuple((name, child) for (name, _), child in zip(self.ports, children))
        return Instance(self.module, ports, self.outputs)


@dataclass(frozen=True)
class MapRef(Expression):
    map: Union[MapLit, Instance]
    key: str
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.map, (MapLit, Instance)):
            raise ShapeError(f"MapRef: expected a map, got {type(self.map).__name__}")
        widths = self.map.output_widths()
        if self.key not in widths:
            raise ShapeError(f"MapRef: key '{self.key}' not in {sorted(widths)}")
        object.__setattr__(self, 'width', widths[self.key])

    def children(self):
        return (self.map,)

    def with_children(self, children):
        return MapRef(children[0], self.key)


# ============================================================================
# Choice
# ============================================================================

@dataclass(frozen=True)
class Choose(Expression):
    """``a`` when the selector hole is 0, ``b`` when it is 1."""
    a: Expression
    b: Expression
    selector: Hole
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        _check_bitvector(self.a, "Choose")
        _check_bitvector(self.b, "Choose")
        if self.a.width != self.b.width:
            raise ShapeError(f"Choose: operand widths differ ({self.a.width} vs {self.b.width})")
        if not isinstance(self.selector, Hole) or self.selector.width != 1:
            raise ShapeError("Choose: selector must be a 1-bit Hole")
        object.__setattr__(self, 'width', self.a.width)

    def children(self):
        return (self.a, self.b, self.selector)

    def with_children(self, children):
        return Choose(children[0], children[1], children[2])


# ============================================================================
# Reference operators (used to write specifications)
# ============================================================================

BINARY_OPS = ('and', 'or', 'xor', 'add', 'sub', 'mul', 'shl', 'lshr', 'ashr')
COMPARISON_OPS = ('eq', 'ne', 'ult', 'slt')
UNARY_OPS = ('not', 'neg')


@dataclass(frozen=True)
class BinOp(Expression):
    op: str
    a: Expression
    b: Expression
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if self.op not in BINARY_OPS and self.op not in COMPARISON_OPS:
            raise ShapeError(f"BinOp: unknown operator '{self.op}'")
        _check_bitvector(self.a, f"BinOp {self.op}")
        _check_bitvector(self.b, f"BinOp {self.op}")
        if self.a.width != self.b.width:
            raise ShapeError(f"BinOp {self.op}: operand widths differ ({self.a.width} vs {self.b.width})")
        object.__setattr__(self, 'width', 1 if self.op in COMPARISON_OPS else self.a.width)

    def children(self):
        return (self.a, self.b)

    def with_children(self, children):
        return BinOp(self.op, children[0], children[1])


@dataclass(frozen=True)
class UnOp(Expression):
    op: str
    a: Expression
    width: int = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if self.op not in UNARY_OPS:
            raise ShapeError(f"UnOp: unknown operator '{self.op}'")
        _check_bitvector(self.a, f"UnOp {self.op}")
        object.__setattr__(self, 'width', self.a.width)

    def children(self):
        return (self.a,)

    def with_children(self, children):
        return UnOp(self.op, children[0])


# ============================================================================
# Construction helpers
# ============================================================================

def choose(a: Expression, b: Expression) -> Choose:
    """Choice between ``a`` and ``b`` on a fresh selector hole."""
    return Choose(a, b, Hole(1))


def extract(expr: Expression, lo: int, hi: int) -> Expression:
    """Like Extract, but returns ``expr`` itself for the full range."""
    if lo == 0 and expr.is_bitvector and hi == expr.width - 1:
        return expr
    return Extract(lo, hi, expr)


def bit(expr: Expression, index: int) -> Expression:
    if expr.is_bitvector and expr.width == 1 and index == 0:
        return expr
    return Extract(index, index, expr)


def bits(expr: Expression) -> List[Expression]:
    """Single-bit expressions for every bit of ``expr``, LSB first."""
    _check_bitvector(expr, "bits")
    return [bit(expr, i) for i in range(expr.width)]


def concat_bits(bit_list: Sequence[Expression]) -> Expression:
    """Inverse of bits(): join an LSB-first list into one bit-vector."""
    if len(bit_list) == 1:
        return bit_list[0]
    return Concat(tuple(reversed(bit_list)))


# ============================================================================
# Traversal
# ============================================================================

def walk(expr: Expression) -> Iterator[Expression]:
    """Yield every distinct node of ``expr`` once (pre-order, by identity)."""
    seen: Set[int] = set()
    stack = [expr]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(reversed(node.children()))


def holes(expr: Expression) -> List[Hole]:
    """Holes of ``expr`` in first-occurrence order."""
    return [node for node in walk(expr) if isinstance(node, Hole)]


def symbolics(expr: Expression) -> Set[Hole]:
    """The holes a solver must resolve to make ``expr`` concrete."""
    return set(holes(expr))


def variables(expr: Expression) -> Dict[str, int]:
    """Free variables of ``expr`` mapped to their widths."""
    result: Dict[str, int] = {}
    for node in walk(expr):
        if isinstance(node, Var):
            if result.setdefault(node.name, node.width) != node.width:
                raise ShapeError(
                    f"Variable '{node.name}' used with widths {result[node.name]} and {node.width}")
    return result


def instances(expr: Expression, module: Optional[str] = None) -> List[Instance]:
    """Primitive instantiations in ``expr``, optionally of one module."""
    return [node for node in walk(expr)
            if isinstance(node, Instance) and (module is None or node.module == module)]


def substitute(expr: Expression,
               assignment: Dict[Hole, Union[int, Const]],
               strict: bool = True) -> Expression:
    """
    Replace holes with constants.

    A Choose whose selector is assigned is replaced by the chosen branch, so
    a complete assignment leaves no holes behind.

    Args:
        expr: Sketch to resolve
        assignment: Hole -> integer value (or Const of the hole's width)
        strict: Raise SubstitutionError if any hole has no value

    Returns:
        The substituted expression (shared sub-expressions stay shared)
    """
    memo: Dict[int, Expression] = {}

    def value_of(hole: Hole) -> Optional[Const]:
        if hole not in assignment:
            return None
        value = assignment[hole]
        if isinstance(value, Const):
            if value.width != hole.width:
                raise ShapeError(f"Value {value} has width {value.width}, hole has {hole.width}")
            return value
        return Const(hole.width, value)

    def inputs(node: Expression) -> Tuple[Expression, ...]:
        if isinstance(node, Choose) and node.selector in assignment:
            return (node.b if value_of(node.selector).value else node.a,)
        return node.children()

    # Post-order over an explicit stack: a node is rebuilt once all of its
    # inputs are in the memo
    stack = [expr]
    while stack:
        node = stack[-1]
        key = id(node)
        if key in memo:
            stack.pop()
            continue

        if isinstance(node, Hole):
            result = value_of(node)
            if result is None:
                if strict:
                    raise SubstitutionError(f"No value for {node!r}")
                result = node
            memo[key] = result
            stack.pop()
            continue

        children = inputs(node)
        pending = [child for child in children if id(child) not in memo]
        if pending:
            stack.extend(reversed(pending))
            continue

        stack.pop()
        if isinstance(node, Choose) and node.selector in assignment:
            memo[key] = memo[id(children[0])]
            continue
        new_children = [memo[id(child)] for child in children]
        if all(new is old for new, old in zip(new_children, children)):
            memo[key] = node
        else:
            memo[key] = node.with_children(new_children)

    return memo[id(expr)]

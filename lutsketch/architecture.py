#!/usr/bin/env python3
"""
Architecture descriptions: resolving abstract primitive requests.

An architecture description answers one question,

    construct_interface(interface_id, port_map, internal_data=None)
        -> (output_port_map, internal_data)

turning an abstract request ("a 4-input LUT over these bits", "an 8-bit
carry chain") into a platform-specific instantiation expression.

Internal data is the opaque per-kind state holding the holes that program a
primitive. Passing the same internal data into two calls with the same
interface identifier makes both instantiations share those holes, so both
primitives are programmed identically. Passing None allocates fresh holes.

Interface kinds:
    LUT{num_inputs}   I0..I(n-1) -> O
    MUX{num_inputs}   I0..I(n-1), S -> O
    carry{width}      CI, DI, S -> O, CO
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Optional, Sequence, Tuple

from .config import ArchitectureConfig, load_config
from .errors import (
    UnsupportedInterface, PortMismatch, WidthMismatch, InternalDataMismatch,
)
from .ir import (
    Expression, Const, Hole, ListLit, ListRef, MapRef, Instance,
    bits, concat_bits, extract,
)

logger = logging.getLogger(__name__)

PortMap = Dict[str, Expression]


# ============================================================================
# Interface identifiers
# ============================================================================

@dataclass(frozen=True)
class InterfaceId:
    """Abstract primitive request: a kind plus ordered parameters."""
    kind: str
    parameters: Tuple[Tuple[str, Any], ...] = ()

    def param(self, name: str) -> Any:
        for key, value in self.parameters:
            if key == name:
                return value
        raise UnsupportedInterface(f"{self} is missing parameter '{name}'")

    def __str__(self):
        params = ", ".join(f"{key}={value}" for key, value in self.parameters)
        return f"{self.kind}({params})"


def lut_interface(num_inputs: int) -> InterfaceId:
    return InterfaceId("LUT", (("num_inputs", num_inputs),))


def mux_interface(num_inputs: int) -> InterfaceId:
    return InterfaceId("MUX", (("num_inputs", num_inputs),))


def carry_interface(width: int) -> InterfaceId:
    return InterfaceId("carry", (("width", width),))


# ============================================================================
# Internal data (one variant per interface kind)
# ============================================================================

@dataclass(frozen=True)
class InternalData:
    """Opaque, kind-tagged primitive state returned by construct_interface."""
    kind: ClassVar[str] = ""


@dataclass(frozen=True)
class LutData(InternalData):
    """Truth table holes of a LUT; bit i is the output for input index i."""
    kind: ClassVar[str] = "LUT"
    num_inputs: int
    truth_table: Tuple[Hole, ...]


@dataclass(frozen=True)
class MuxData(InternalData):
    """Mux state; ``lut`` is None when the mux is a hard primitive."""
    kind: ClassVar[str] = "MUX"
    num_inputs: int
    lut: Optional[LutData] = None


@dataclass(frozen=True)
class CarryData(InternalData):
    kind: ClassVar[str] = "carry"
    width: int


def program_lut(lut_data: LutData, function: Callable[..., Any]) -> Dict[Hole, int]:
    """
    Hole assignment that makes a LUT state compute ``function``.

    Args:
        lut_data: LUT state whose truth table to program
        function: Called with one 0/1 argument per LUT input (I0 first)

    Returns:
        Hole -> 0/1 for every truth table bit
    """
    assignment = {}
    for index, hole in enumerate(lut_data.truth_table):
        inputs = [(index >> i) & 1 for i in range(lut_data.num_inputs)]
        assignment[hole] = int(bool(function(*inputs)))
    return assignment


# ============================================================================
# Architecture description
# ============================================================================

def _positive_int(interface_id: InterfaceId, name: str) -> int:
    value = interface_id.param(name)
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise UnsupportedInterface(f"{interface_id}: '{name}' must be a positive integer")
    return value


def _check_ports(interface_id: InterfaceId, port_map: PortMap, expected: Dict[str, int]):
    missing = sorted(set(expected) - set(port_map))
    extra = sorted(set(port_map) - set(expected))
    if missing or extra:
        raise PortMismatch(
            f"{interface_id}: missing ports {missing}, unexpected ports {extra}")
    for name, width in expected.items():
        expr = port_map[name]
        if not isinstance(expr, Expression) or not expr.is_bitvector or expr.width != width:
            actual = getattr(expr, 'width', None) if isinstance(expr, Expression) else None
            raise WidthMismatch(
                f"{interface_id}: port {name} must be {width} bits, got {actual}")


class ArchitectureDescription:
    """
    Capability registry for one target architecture.

    Example:
        arch = ArchitectureDescription(load_config(target="generic"))
        outs, data = arch.construct_interface(
            lut_interface(2), {"I0": a0, "I1": b0})
        outs2, _ = arch.construct_interface(
            lut_interface(2), {"I0": a1, "I1": b1}, data)   # same truth table
    """

    def __init__(self, config: Optional[ArchitectureConfig] = None):
        self.config = config or ArchitectureConfig.default_generic()
        self._constructors = {
            "LUT": self._construct_lut,
            "MUX": self._construct_mux,
            "carry": self._construct_carry,
        }

    def __repr__(self):
        return f"ArchitectureDescription({self.config.name!r})"

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def max_lut_inputs(self) -> int:
        return self.config.max_lut_inputs

    def supports(self, kind: str) -> bool:
        if kind == "LUT":
            return True
        if kind == "MUX":
            return self.config.mux is not None
        if kind == "carry":
            return self.config.carry is not None
        return False

    def construct_interface(self, interface_id: InterfaceId, port_map: PortMap,
                            internal_data: Optional[InternalData] = None
                            ) -> Tuple[PortMap, InternalData]:
        """
        Instantiate an abstract interface on this architecture.

        Args:
            interface_id: Kind and parameters of the requested primitive
            port_map: Input port name -> expression
            internal_data: State from an earlier call of the same interface
                to share its holes, or None to allocate fresh ones

        Returns:
            (output port map, internal data)

        Raises:
            UnsupportedInterface: Kind or parameters not available here
            PortMismatch: Missing or unexpected port names
            WidthMismatch: Port expression of the wrong width
            InternalDataMismatch: Internal data of another kind or shape
        """
        constructor = self._constructors.get(interface_id.kind)
        if constructor is None or not self.supports(interface_id.kind):
            raise UnsupportedInterface(f"{self.name} does not provide {interface_id}")
        if internal_data is not None:
            if not isinstance(internal_data, InternalData) or internal_data.kind != interface_id.kind:
                raise InternalDataMismatch(
                    f"{interface_id}: got internal data of kind "
                    f"'{getattr(internal_data, 'kind', type(internal_data).__name__)}'")
        return constructor(interface_id, dict(port_map), internal_data)

    # ------------------------------------------------------------------------
    # LUT
    # ------------------------------------------------------------------------

    def _physical_lut_size(self, interface_id: InterfaceId, num_inputs: int) -> int:
        sizes = [size for size in self.config.lut_sizes if size >= num_inputs]
        if not sizes:
            raise UnsupportedInterface(
                f"{self.name}: no LUT with {num_inputs} inputs (largest is {self.max_lut_inputs})"
                f" for {interface_id}")
        return min(sizes)

    def _lut_instance(self, interface_id: InterfaceId, inputs: Sequence[Expression],
                      truth_table: Sequence[Expression]) -> Expression:
        size = self._physical_lut_size(interface_id, len(inputs))
        zero = Const(1, 0)
        ports = [(f"I{i}", inputs[i] if i < len(inputs) else zero) for i in range(size)]
        # Unused inputs are tied low, so only the first 2^n INIT bits matter
        init = list(truth_table) + [zero] * ((1 << size) - len(truth_table))
        ports.append(("INIT", concat_bits(init)))
        return MapRef(Instance(f"LUT{size}", tuple(ports), (("O", 1),)), "O")

    def _construct_lut(self, interface_id, port_map, internal_data):
        num_inputs = _positive_int(interface_id, "num_inputs")
        self._physical_lut_size(interface_id, num_inputs)
        _check_ports(interface_id, port_map, {f"I{i}": 1 for i in range(num_inputs)})

        if internal_data is None:
            internal_data = LutData(num_inputs, tuple(Hole(1) for _ in range(1 << num_inputs)))
            logger.debug("%s: allocated %s with %d truth table holes",
                         self.name, interface_id, 1 << num_inputs)
        elif internal_data.num_inputs != num_inputs:
            raise InternalDataMismatch(
                f"{interface_id}: internal data is for a {internal_data.num_inputs}-input LUT")

        inputs = [port_map[f"I{i}"] for i in range(num_inputs)]
        return {"O": self._lut_instance(interface_id, inputs, internal_data.truth_table)}, internal_data

    # ------------------------------------------------------------------------
    # MUX
    # ------------------------------------------------------------------------

    def _construct_mux(self, interface_id, port_map, internal_data):
        num_inputs = _positive_int(interface_id, "num_inputs")
        if num_inputs < 2:
            raise UnsupportedInterface(f"{interface_id}: a mux needs at least 2 inputs")
        select_width = (num_inputs - 1).bit_length()
        expected = {f"I{i}": 1 for i in range(num_inputs)}
        expected["S"] = select_width
        _check_ports(interface_id, port_map, expected)

        if internal_data is not None and internal_data.num_inputs != num_inputs:
            raise InternalDataMismatch(
                f"{interface_id}: internal data is for a {internal_data.num_inputs}-input mux")

        data_inputs = [port_map[f"I{i}"] for i in range(num_inputs)]
        select = port_map["S"]

        if self.config.mux.style == "native":
            if internal_data is None:
                internal_data = MuxData(num_inputs)
            return {"O": ListRef(ListLit(tuple(data_inputs)), select)}, internal_data

        lut_inputs = data_inputs + bits(select)
        lut_id = lut_interface(len(lut_inputs))
        if internal_data is None:
            outs, lut_data = self._construct_lut(
                lut_id, {f"I{i}": b for i, b in enumerate(lut_inputs)}, None)
            internal_data = MuxData(num_inputs, lut_data)
        elif internal_data.lut is None:
            raise InternalDataMismatch(f"{interface_id}: internal data belongs to a hard mux")
        else:
            outs, _ = self._construct_lut(
                lut_id, {f"I{i}": b for i, b in enumerate(lut_inputs)}, internal_data.lut)
        return {"O": outs["O"]}, internal_data

    # ------------------------------------------------------------------------
    # Carry chain
    # ------------------------------------------------------------------------

    def _construct_carry(self, interface_id, port_map, internal_data):
        width = _positive_int(interface_id, "width")
        _check_ports(interface_id, port_map, {"CI": 1, "DI": width, "S": width})

        if internal_data is None:
            internal_data = CarryData(width)
        elif internal_data.width != width:
            raise InternalDataMismatch(
                f"{interface_id}: internal data is for a {internal_data.width}-bit carry")

        carry = self.config.carry
        carry_in = port_map["CI"]
        outputs = []
        for lo in range(0, width, carry.chunk_width):
            hi = min(lo + carry.chunk_width, width) - 1
            chunk = Instance(
                carry.module,
                (("CI", carry_in),
                 ("DI", extract(port_map["DI"], lo, hi)),
                 ("S", extract(port_map["S"], lo, hi))),
                (("O", hi - lo + 1), ("CO", 1)))
            outputs.append(MapRef(chunk, "O"))
            carry_in = MapRef(chunk, "CO")

        out = outputs[0] if len(outputs) == 1 else concat_bits(outputs)
        return {"O": out, "CO": carry_in}, internal_data


def load_architecture(config_path: Optional[Path] = None,
                      target: Optional[str] = None) -> ArchitectureDescription:
    """Architecture description from a YAML file or builtin target name."""
    return ArchitectureDescription(load_config(config_path, target))

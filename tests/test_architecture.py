"""Pytest-based tests for resolving abstract primitives on an architecture."""

import pytest

from lutsketch import (
    Var, Const, BinOp, Instance, CarryData, LutData, MuxData, InterfaceId,
    UnsupportedInterface, PortMismatch, WidthMismatch, InternalDataMismatch,
    lut_interface, mux_interface, carry_interface, program_lut, load_architecture,
    instances, symbolics, interpret,
)


def lut_ports(*names):
    return {f"I{i}": Var(name, 1) for i, name in enumerate(names)}


# ============================================================================
# LUT
# ============================================================================

def test_fresh_lut_allocates_truth_table(generic):
    outs, data = generic.construct_interface(lut_interface(3), lut_ports("a", "b", "c"))
    assert isinstance(data, LutData)
    assert data.num_inputs == 3
    assert len(data.truth_table) == 8
    assert len(set(data.truth_table)) == 8
    assert symbolics(outs["O"]) == set(data.truth_table)


def test_lut_sharing(generic):
    outs1, data = generic.construct_interface(lut_interface(2), lut_ports("a", "b"))
    outs2, data2 = generic.construct_interface(lut_interface(2), lut_ports("c", "d"), data)
    outs3, data3 = generic.construct_interface(lut_interface(2), lut_ports("c", "d"))
    assert data2 is data
    assert symbolics(outs1["O"]) == symbolics(outs2["O"])
    assert not symbolics(outs1["O"]) & symbolics(outs3["O"])


def test_lut_programmed_function(generic):
    outs, data = generic.construct_interface(lut_interface(3), lut_ports("a", "b", "c"))
    assignment = program_lut(data, lambda a, b, c: (a and not b) or c)
    for a in (0, 1):
        for b in (0, 1):
            for c in (0, 1):
                expected = int(bool((a and not b) or c))
                assert interpret(outs["O"], {"a": a, "b": b, "c": c}, assignment) == expected


def test_small_lut_uses_smallest_physical_lut(ecp5, xilinx):
    outs, data = ecp5.construct_interface(lut_interface(2), lut_ports("a", "b"))
    [inst] = instances(outs["O"])
    assert inst.module == "LUT4"
    assert inst.port("I2") == Const(1, 0)
    assert inst.port("INIT").width == 16

    assignment = program_lut(data, lambda a, b: a ^ b)
    for a in (0, 1):
        for b in (0, 1):
            assert interpret(outs["O"], {"a": a, "b": b}, assignment) == a ^ b

    outs, _ = xilinx.construct_interface(lut_interface(1), lut_ports("a"))
    assert instances(outs["O"])[0].module == "LUT1"


def test_program_lut_assigns_every_bit(generic):
    _, data = generic.construct_interface(lut_interface(2), lut_ports("a", "b"))
    assignment = program_lut(data, lambda a, b: a and b)
    assert [assignment[h] for h in data.truth_table] == [0, 0, 0, 1]


# ============================================================================
# MUX
# ============================================================================

def test_lut_mux(generic):
    ports = {"I0": Var("x", 1), "I1": Var("y", 1), "S": Var("s", 1)}
    outs, data = generic.construct_interface(mux_interface(2), ports)
    assert isinstance(data, MuxData)
    assert data.lut.num_inputs == 3
    assert instances(outs["O"])[0].module == "LUT3"

    assignment = program_lut(data.lut, lambda i0, i1, s: i1 if s else i0)
    for x in (0, 1):
        for y in (0, 1):
            for s in (0, 1):
                assert interpret(outs["O"], {"x": x, "y": y, "s": s}, assignment) == (y if s else x)


def test_lut_mux_sharing(generic):
    ports = {"I0": Var("x", 1), "I1": Var("y", 1), "S": Var("s", 1)}
    outs1, data = generic.construct_interface(mux_interface(2), ports)
    outs2, data2 = generic.construct_interface(mux_interface(2), ports, data)
    assert data2 is data
    assert symbolics(outs1["O"]) == symbolics(outs2["O"]) == set(data.lut.truth_table)


def test_native_mux_has_no_holes(xilinx):
    ports = {f"I{i}": Var(f"x{i}", 1) for i in range(4)}
    ports["S"] = Var("s", 2)
    outs, data = xilinx.construct_interface(mux_interface(4), ports)
    assert data.lut is None
    assert symbolics(outs["O"]) == set()
    for s in range(4):
        env = {f"x{i}": int(i == s) for i in range(4)}
        env["s"] = s
        assert interpret(outs["O"], env) == 1


def test_hard_mux_data_rejected_by_lut_mux(generic, xilinx):
    ports = {"I0": Var("x", 1), "I1": Var("y", 1), "S": Var("s", 1)}
    _, native = xilinx.construct_interface(mux_interface(2), ports)
    with pytest.raises(InternalDataMismatch):
        generic.construct_interface(mux_interface(2), ports, native)


# ============================================================================
# Carry
# ============================================================================

def test_carry_chunks(ecp5):
    di, s, ci = Var("a", 5), Var("b", 5), Var("c", 1)
    outs, data = ecp5.construct_interface(carry_interface(5), {"CI": ci, "DI": di, "S": s})
    assert data == CarryData(5)
    assert len(instances(outs["O"], "CARRY_ADD")) == 3
    assert outs["O"].width == 5
    for a in range(32):
        for b in range(32):
            for c in (0, 1):
                env = {"a": a, "b": b, "c": c}
                total = a + b + c
                assert interpret(outs["O"], env) == total & 31
                assert interpret(outs["CO"], env) == total >> 5


def test_mux_xor_carry(xilinx):
    a, b = Var("a", 4), Var("b", 4)
    ports = {"CI": Const(1, 0), "DI": a, "S": BinOp("xor", a, b)}
    outs, _ = xilinx.construct_interface(carry_interface(4), ports)
    assert [inst.module for inst in instances(outs["O"])] == ["CARRY_MUXXOR"]
    for x in range(16):
        for y in range(16):
            env = {"a": x, "b": y}
            assert interpret(outs["O"], env) == (x + y) & 15
            assert interpret(outs["CO"], env) == (x + y) >> 4


def test_carry_data_width_checked(generic):
    ports = {"CI": Const(1, 0), "DI": Var("a", 4), "S": Var("b", 4)}
    with pytest.raises(InternalDataMismatch):
        generic.construct_interface(carry_interface(4), ports, CarryData(8))


# ============================================================================
# Errors
# ============================================================================

def test_unknown_kind(generic):
    with pytest.raises(UnsupportedInterface):
        generic.construct_interface(InterfaceId("DSP", (("width", 18),)), {})


def test_lut_too_large(generic, ecp5):
    with pytest.raises(UnsupportedInterface):
        generic.construct_interface(lut_interface(7), lut_ports(*"abcdefg"))
    with pytest.raises(UnsupportedInterface):
        ecp5.construct_interface(lut_interface(5), lut_ports(*"abcde"))


def test_bad_parameters(generic):
    with pytest.raises(UnsupportedInterface):
        generic.construct_interface(lut_interface(0), {})
    with pytest.raises(UnsupportedInterface):
        generic.construct_interface(InterfaceId("LUT"), {})
    with pytest.raises(UnsupportedInterface):
        generic.construct_interface(mux_interface(1), {"I0": Var("x", 1), "S": Var("s", 1)})


def test_disabled_primitive(tmp_path):
    path = tmp_path / "no_carry.yaml"
    path.write_text("name: no_carry\nlut_sizes: [4]\ncarry: null\n")
    arch = load_architecture(config_path=path)
    with pytest.raises(UnsupportedInterface):
        arch.construct_interface(carry_interface(2), {"CI": Const(1, 0), "DI": Var("a", 2), "S": Var("b", 2)})


def test_port_mismatch(generic):
    with pytest.raises(PortMismatch):
        generic.construct_interface(lut_interface(2), lut_ports("a"))
    with pytest.raises(PortMismatch):
        generic.construct_interface(lut_interface(1), lut_ports("a", "b"))
    with pytest.raises(PortMismatch):
        generic.construct_interface(carry_interface(2), {"DI": Var("a", 2), "S": Var("b", 2)})


def test_width_mismatch(generic):
    with pytest.raises(WidthMismatch):
        generic.construct_interface(lut_interface(2), {"I0": Var("a", 2), "I1": Var("b", 1)})
    with pytest.raises(WidthMismatch):
        generic.construct_interface(
            carry_interface(4), {"CI": Const(1, 0), "DI": Var("a", 3), "S": Var("b", 4)})
    with pytest.raises(WidthMismatch):
        generic.construct_interface(
            mux_interface(4), {"I0": Var("a", 1), "I1": Var("b", 1), "I2": Var("c", 1),
                               "I3": Var("d", 1), "S": Var("s", 1)})


def test_internal_data_kind_checked(generic):
    _, lut_data = generic.construct_interface(lut_interface(2), lut_ports("a", "b"))
    with pytest.raises(InternalDataMismatch):
        generic.construct_interface(
            carry_interface(2), {"CI": Const(1, 0), "DI": Var("a", 2), "S": Var("b", 2)}, lut_data)
    with pytest.raises(InternalDataMismatch):
        generic.construct_interface(lut_interface(3), lut_ports("a", "b", "c"), lut_data)


def test_instances_are_plain_ir(generic):
    outs, _ = generic.construct_interface(lut_interface(2), lut_ports("a", "b"))
    assert isinstance(outs["O"].map, Instance)

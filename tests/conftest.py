"""Pytest configuration for the lutsketch test suite."""

import pytest

from lutsketch import load_architecture


@pytest.fixture
def generic():
    """LUT2-LUT6, LUT-built muxes, adder carry chunks of 8."""
    return load_architecture(target="generic")


@pytest.fixture
def ecp5():
    """LUT4 only, LUT-built muxes, adder carry chunks of 2."""
    return load_architecture(target="lattice_ecp5")


@pytest.fixture
def xilinx():
    """LUT1-LUT6, hard muxes, mux/xor carry chunks of 8."""
    return load_architecture(target="xilinx_ultrascale")


def to_signed(value: int, width: int) -> int:
    return value - (1 << width) if value >> (width - 1) else value

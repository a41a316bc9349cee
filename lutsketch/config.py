#!/usr/bin/env python3
"""
Architecture configuration management for lutsketch.

This module handles loading and validating YAML configuration files that
describe which primitives a target FPGA family offers: the available LUT
sizes, how 2:1 multiplexers are built, and the style and chunk width of the
carry chain. This allows the sketch generators to target different
architectures (a generic LUT6 fabric, Xilinx UltraScale, Lattice ECP5, ...)
without code changes.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)

BUILTIN_CONFIG_DIR = Path(__file__).parent / "configs"

# JSON Schema for validating architecture configuration YAML files
ARCHITECTURE_CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "lutsketch Architecture Configuration",
    "description": "Primitive capabilities of a target FPGA architecture",
    "type": "object",
    "required": ["name", "lut_sizes"],
    "properties": {
        "name": {
            "type": "string",
            "description": "Name of the architecture (e.g., generic, xilinx_ultrascale)"
        },
        "description": {
            "type": "string"
        },
        "lut_sizes": {
            "type": "array",
            "description": "Input counts of the physical LUT primitives",
            "items": {"type": "integer", "minimum": 1, "maximum": 8},
            "minItems": 1,
            "uniqueItems": True
        },
        "mux": {
            "type": ["object", "null"],
            "description": "How MUX interfaces are realized (null: unsupported)",
            "properties": {
                "style": {"type": "string", "enum": ["lut", "native"]}
            },
            "additionalProperties": False
        },
        "carry": {
            "type": ["object", "null"],
            "description": "Carry chain primitive (null: unsupported)",
            "properties": {
                "style": {"type": "string", "enum": ["adder", "mux_xor"]},
                "chunk_width": {"type": "integer", "minimum": 1}
            },
            "additionalProperties": False
        }
    },
    "additionalProperties": False
}


@dataclass
class MuxConfig:
    """Multiplexer realization."""
    # "lut": a LUT programmed by the solver; "native": a hard mux, no holes
    style: str = "lut"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'MuxConfig':
        mux = cls()
        if 'style' in d:
            mux.style = d['style']
        return mux


@dataclass
class CarryConfig:
    """Carry chain primitive configuration."""
    # "adder": O = DI + S + CI (Lattice CCU2 / Intel ALM style)
    # "mux_xor": O = S ^ c, c' = S ? c : DI (Xilinx CARRY4/CARRY8 style)
    style: str = "adder"
    chunk_width: int = 8

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'CarryConfig':
        carry = cls()
        if 'style' in d:
            carry.style = d['style']
        if 'chunk_width' in d:
            carry.chunk_width = d['chunk_width']
        return carry

    @property
    def module(self) -> str:
        """Primitive module name instantiated for one chunk."""
        return "CARRY_ADD" if self.style == "adder" else "CARRY_MUXXOR"


@dataclass
class ArchitectureConfig:
    """Complete configuration for an architecture target."""
    name: str = "generic"
    lut_sizes: List[int] = field(default_factory=lambda: [2, 3, 4, 5, 6])
    mux: Optional[MuxConfig] = field(default_factory=MuxConfig)
    carry: Optional[CarryConfig] = field(default_factory=CarryConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<dict>") -> 'ArchitectureConfig':
        """Create and validate an ArchitectureConfig from a dictionary.

        Raises:
            ValueError: If the dictionary doesn't match the schema
        """
        try:
            jsonschema.validate(instance=data, schema=ARCHITECTURE_CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Invalid config file {source}: {e.message}") from e

        config = cls()
        config.name = data['name']
        config.lut_sizes = sorted(data['lut_sizes'])

        # Absent section: keep the default; explicit null: unsupported
        if 'mux' in data:
            config.mux = MuxConfig.from_dict(data['mux']) if data['mux'] is not None else None
        if 'carry' in data:
            config.carry = CarryConfig.from_dict(data['carry']) if data['carry'] is not None else None

        return config

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> 'ArchitectureConfig':
        """Load and validate configuration from YAML file.

        Raises:
            ValueError: If config doesn't match schema
            yaml.YAMLError: If YAML is malformed
            FileNotFoundError: If file doesn't exist
        """
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data, source=str(yaml_path))

    @classmethod
    def default_generic(cls) -> 'ArchitectureConfig':
        """Return the default generic LUT6 configuration."""
        return cls(
            name="generic",
            lut_sizes=[2, 3, 4, 5, 6],
            mux=MuxConfig(),
            carry=CarryConfig()
        )

    @property
    def max_lut_inputs(self) -> int:
        return max(self.lut_sizes)


def builtin_targets() -> List[str]:
    """Names of the architecture configs shipped with the package."""
    return sorted(path.stem for path in BUILTIN_CONFIG_DIR.glob("*.yaml"))


def load_config(config_path: Optional[Path] = None, target: Optional[str] = None) -> ArchitectureConfig:
    """
    Load architecture configuration from file or use builtin config.

    Args:
        config_path: Path to YAML config file
        target: Shortcut name for builtin configs ('generic', 'xilinx_ultrascale', 'lattice_ecp5')

    Returns:
        ArchitectureConfig object

    Priority:
        1. config_path if provided
        2. builtin config matching target name
        3. default generic config
    """
    if config_path and Path(config_path).exists():
        return ArchitectureConfig.from_yaml(Path(config_path))

    if target:
        builtin_path = BUILTIN_CONFIG_DIR / f"{target}.yaml"
        if builtin_path.exists():
            return ArchitectureConfig.from_yaml(builtin_path)
        logger.warning("No builtin architecture '%s' (known: %s), using generic",
                       target, ", ".join(builtin_targets()))

    return ArchitectureConfig.default_generic()

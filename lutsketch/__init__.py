"""
lutsketch - architecture-independent circuit sketches for FPGA synthesis.

This package provides tools for:
- Building sketches: expression trees with holes that a solver fills in
- Resolving abstract primitives (LUT, MUX, carry) on a target architecture
- Sharing primitive programming between instantiations via internal data
- Checking and solving small sketches against a reference expression

Example:
    from lutsketch import (
        load_architecture, bitwise_sketch_generator, solve, substitute, Var, BinOp)

    arch = load_architecture(target="generic")
    a, b = Var("a", 2), Var("b", 2)
    sketch, _ = bitwise_sketch_generator(arch, [a, b], 2, 2)
    result = solve(BinOp("and", a, b), sketch)
    circuit = substitute(sketch, result.assignment)
"""

__version__ = "0.1.0"

from .errors import (
    ShapeError,
    ArchitectureError,
    UnsupportedInterface,
    PortMismatch,
    WidthMismatch,
    InternalDataMismatch,
    ArityError,
    EvaluationError,
    SubstitutionError,
)

from .ir import (
    Expression,
    Const,
    Var,
    Hole,
    Extract,
    Concat,
    ZeroExtend,
    DupExtend,
    ListLit,
    ListRef,
    MapLit,
    MapRef,
    Instance,
    Choose,
    BinOp,
    UnOp,
    choose,
    bit,
    bits,
    concat_bits,
    walk,
    holes,
    symbolics,
    variables,
    instances,
    substitute,
)

from .config import (
    ArchitectureConfig,
    load_config,
    builtin_targets,
)

from .architecture import (
    ArchitectureDescription,
    InterfaceId,
    InternalData,
    LutData,
    MuxData,
    CarryData,
    lut_interface,
    mux_interface,
    carry_interface,
    program_lut,
    load_architecture,
)

from .mapping import (
    MappingStrategy,
    IDENTITY,
    REVERSED,
    HoleSelectedMapping,
)

from .packing import (
    PackData,
    ReductionState,
    densely_pack,
    reduce_rows,
)

from .sketches import (
    bitwise_sketch_generator,
    carry_sketch_generator,
    bitwise_with_carry_sketch_generator,
    comparison_sketch_generator,
    shallow_comparison_sketch_generator,
    multiplication_sketch_generator,
    shift_sketch_generator,
    shift_stage_count,
    get_sketch_generator,
    SKETCH_GENERATORS,
)

from .interpreter import interpret
from .primitives import MODULE_SEMANTICS
from .solver import solve, SolverResult

__all__ = [
    # Errors
    "ShapeError",
    "ArchitectureError",
    "UnsupportedInterface",
    "PortMismatch",
    "WidthMismatch",
    "InternalDataMismatch",
    "ArityError",
    "EvaluationError",
    "SubstitutionError",
    # IR
    "Expression",
    "Const",
    "Var",
    "Hole",
    "Extract",
    "Concat",
    "ZeroExtend",
    "DupExtend",
    "ListLit",
    "ListRef",
    "MapLit",
    "MapRef",
    "Instance",
    "Choose",
    "BinOp",
    "UnOp",
    "choose",
    "bit",
    "bits",
    "concat_bits",
    "walk",
    "holes",
    "symbolics",
    "variables",
    "instances",
    "substitute",
    # Architecture
    "ArchitectureConfig",
    "load_config",
    "builtin_targets",
    "ArchitectureDescription",
    "InterfaceId",
    "InternalData",
    "LutData",
    "MuxData",
    "CarryData",
    "lut_interface",
    "mux_interface",
    "carry_interface",
    "program_lut",
    "load_architecture",
    # Mapping and packing
    "MappingStrategy",
    "IDENTITY",
    "REVERSED",
    "HoleSelectedMapping",
    "PackData",
    "ReductionState",
    "densely_pack",
    "reduce_rows",
    # Sketch generators
    "bitwise_sketch_generator",
    "carry_sketch_generator",
    "bitwise_with_carry_sketch_generator",
    "comparison_sketch_generator",
    "shallow_comparison_sketch_generator",
    "multiplication_sketch_generator",
    "shift_sketch_generator",
    "shift_stage_count",
    "get_sketch_generator",
    "SKETCH_GENERATORS",
    # Evaluation and solving
    "interpret",
    "MODULE_SEMANTICS",
    "solve",
    "SolverResult",
]

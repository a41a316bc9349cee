#!/usr/bin/env python3
"""
Dense packing of bit rows into LUTs.

densely_pack() takes one or more rows of single-bit expressions (typically
one row per logical input), cuts every row into windows of the same size and
feeds each window, across all rows, into one LUT sized to fill the largest
LUT the architecture has. One output bit comes back per window.

reduce_rows() repeats this on its own output until a single bit is left,
giving a reduction tree of depth O(log n) rather than a chain of depth O(n).

Example (4-bit equality on a LUT4 fabric):
    level 0: rows [a0..a3], [b0..b3], window 2 -> 2 LUT4s -> [x0, x1]
    level 1: row  [x0, x1],           window 4 -> 1 LUT4  -> [y]
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .architecture import ArchitectureDescription, LutData, lut_interface
from .errors import ArityError, ShapeError, UnsupportedInterface, InternalDataMismatch
from .ir import Expression, Hole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackData:
    """
    State of one packed row.

    Attributes:
        luts: One LutData shared by every window, or one per window
        pad: Hole filling the unused inputs of a partial last window
    """
    luts: Tuple[LutData, ...]
    pad: Optional[Hole] = None


@dataclass(frozen=True)
class ReductionState:
    """One PackData per level of a reduction tree, first level first."""
    levels: Tuple[PackData, ...]

    @property
    def depth(self) -> int:
        return len(self.levels)


def window_size(arch: ArchitectureDescription, num_rows: int, even: bool = False) -> int:
    """Bits taken from each row per LUT so that num_rows windows fill the largest LUT."""
    size = arch.max_lut_inputs // num_rows
    if even and size > 1 and size % 2:
        size -= 1
    if size < 1:
        raise UnsupportedInterface(
            f"{arch.name}: largest LUT has {arch.max_lut_inputs} inputs, cannot pack {num_rows} rows")
    return size


def densely_pack(arch: ArchitectureDescription,
                 rows: Sequence[Sequence[Expression]],
                 internal_data: Optional[PackData] = None,
                 share_within_row: bool = True,
                 even_window: bool = False) -> Tuple[List[Expression], PackData]:
    """
    Pack equal-length rows of bits into one row of LUT outputs.

    Args:
        arch: Architecture description
        rows: Rows of 1-bit expressions, all the same length
        internal_data: PackData from an earlier call to reprogram identically
        share_within_row: Program every window's LUT the same (one shared
            truth table) instead of giving each window its own
        even_window: Round the window size down to an even number

    Returns:
        (one output bit per window, PackData)
    """
    if not rows:
        raise ArityError("densely_pack needs at least one row")
    length = len(rows[0])
    if length == 0 or any(len(row) != length for row in rows):
        raise ShapeError(f"densely_pack: rows must be non-empty and equally long, "
                         f"got lengths {[len(row) for row in rows]}")
    for row in rows:
        for b in row:
            if not isinstance(b, Expression) or not b.is_bitvector or b.width != 1:
                raise ShapeError("densely_pack: rows must hold 1-bit expressions")

    window = window_size(arch, len(rows), even_window)
    if len(rows) == 1 and window < 2 and length > 1:
        raise UnsupportedInterface(f"{arch.name}: a {window}-bit window cannot reduce a row")
    num_windows = -(-length // window)
    interface = lut_interface(window * len(rows))

    luts: Tuple[LutData, ...] = internal_data.luts if internal_data is not None else ()
    pad = internal_data.pad if internal_data is not None else None
    if luts and not share_within_row and len(luts) != num_windows:
        raise InternalDataMismatch(
            f"densely_pack: internal data has {len(luts)} windows, row needs {num_windows}")

    shared = luts[0] if share_within_row and luts else None
    per_window: List[LutData] = []
    outputs: List[Expression] = []
    for index in range(num_windows):
        lo = index * window
        ports = {}
        for r, row in enumerate(rows):
            chunk = list(row[lo:lo + window])
            if len(chunk) < window:
                if pad is None:
                    pad = Hole(1)
                chunk += [pad] * (window - len(chunk))
            for offset, b in enumerate(chunk):
                ports[f"I{r * window + offset}"] = b

        if share_within_row:
            outs, shared = arch.construct_interface(interface, ports, shared)
        else:
            outs, data = arch.construct_interface(interface, ports, luts[index] if luts else None)
            per_window.append(data)
        outputs.append(outs["O"])

    logger.debug("densely_pack: %d rows x %d bits -> %d %s (window %d)",
                 len(rows), length, num_windows, interface, window)
    new_luts = (shared,) if share_within_row else tuple(per_window)
    if internal_data is not None and new_luts == internal_data.luts and pad is internal_data.pad:
        return outputs, internal_data
    return outputs, PackData(new_luts, pad)


def reduce_rows(arch: ArchitectureDescription,
                rows: Sequence[Sequence[Expression]],
                internal_data: Optional[ReductionState] = None,
                share_within_row: bool = True) -> Tuple[Expression, ReductionState]:
    """
    Reduce rows of bits to a single bit with a tree of densely packed LUTs.

    The rows are packed once; the resulting row is then packed again and
    again until one bit remains. Level i reuses level i of ``internal_data``
    when given.

    Returns:
        (result bit, ReductionState with one PackData per level)
    """
    previous = internal_data.levels if internal_data is not None else ()
    levels: List[PackData] = []
    worklist = [list(row) for row in rows]
    while True:
        reuse = previous[len(levels)] if len(levels) < len(previous) else None
        row, data = densely_pack(arch, worklist, reuse, share_within_row)
        levels.append(data)
        if len(row) == 1:
            break
        worklist = [row]

    logger.debug("reduce_rows: %d rows reduced in %d levels", len(rows), len(levels))
    return row[0], ReductionState(tuple(levels))

# unit_manager/frames.py
from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from unit_manager.converter import UnitConverter

TABLE_COLUMNS = ["Unit", "Display Key", "Factor", "Value", "Rounded", "Base"]
UNIT_COLUMNS = ["Unit", "Display Key", "Factor"]


def units_frame(converter: UnitConverter) -> pd.DataFrame:
    """Current unit table, ascending by factor."""
    rows = [
        {"Unit": u.id, "Display Key": u.display_key, "Factor": u.factor}
        for u in converter.units
    ]
    return pd.DataFrame(rows, columns=UNIT_COLUMNS)


def conversion_table(
    converter: UnitConverter,
    value: float,
    from_unit: Optional[str] = None,
    round_by: int = 1,
) -> pd.DataFrame:
    """
    ``value`` (given in ``from_unit``, default: base unit) expressed in every unit.
    One row per unit, ascending by factor.
    """
    source = converter.base_unit if from_unit is None else from_unit
    rows = []
    for u in converter.units:
        res = converter.convert(value, source, u.id, round_by)
        rows.append(
            {
                "Unit": res.id,
                "Display Key": res.display_key,
                "Factor": u.factor,
                "Value": res.value,
                "Rounded": res.rounded_value,
                "Base": res.is_base_unit,
            }
        )
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


def convert_array(
    converter: UnitConverter,
    values: Union[Sequence[float], np.ndarray, pd.Series],
    from_unit: str,
    to_unit: str,
) -> np.ndarray:
    """Elementwise conversion of ``values`` from ``from_unit`` to ``to_unit``."""
    relation = converter.convert(1.0, from_unit, to_unit, round_by=0).value
    return np.asarray(values, dtype=float) * relation

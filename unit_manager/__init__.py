# unit_manager/__init__.py

from .units import UnitDefinition, ConversionResult, ConstructionError, UnknownUnitError
from .converter import UnitConverter
from .tables import (
    full_number_converter,
    number_converter,
    number_converter_lite,
    time_converter,
)
from .manager import get_converter, register_converter, set_base_unit

__all__ = [
    "UnitDefinition",
    "ConversionResult",
    "ConstructionError",
    "UnknownUnitError",
    "UnitConverter",
    "full_number_converter",
    "number_converter",
    "number_converter_lite",
    "time_converter",
    "get_converter",
    "register_converter",
    "set_base_unit",
]

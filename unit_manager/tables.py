# unit_manager/tables.py
"""
Ready-made unit tables.

    number_converter().convert_to_shortened(15349)
        -> value 15.349, rounded_value 15.3, display_key "KILO"
    number_converter().convert_to_shortened(0.000006785)
        -> value 6.785, rounded_value 6.8, display_key "MICRO"
    number_converter().convert(5.5, KILO, MILLI)
        -> value 5500000, rounded_value 5500000, display_key "MILLI"

Factories return a fresh converter each call; re-basing one never leaks into another.
"""
from __future__ import annotations

from typing import Callable, Dict, Tuple

from unit_manager.converter import UnitConverter
from unit_manager.units import UnitDefinition

# --------------------------- Number prefixes ---------------------------

GIGA = "giga"
MEGA = "mega"
KILO = "kilo"
NUMBER = "number"
MILLI = "milli"
MICRO = "micro"
NANO = "nano"

NUMBER_UNITS: Tuple[UnitDefinition, ...] = (
    UnitDefinition(GIGA, "GIGA", 1_000_000_000),
    UnitDefinition(MEGA, "MEGA", 1_000_000),
    UnitDefinition(KILO, "KILO", 1_000),
    UnitDefinition(NUMBER, "", 1),
    UnitDefinition(MILLI, "MILLI", 0.001),
    UnitDefinition(MICRO, "MICRO", 0.000001),
    UnitDefinition(NANO, "NANO", 0.000000001),
)

# --------------------------- Time (millisecond based) ---------------------------

NANOSECOND = "nanosecond"
MICROSECOND = "microsecond"
MILLISECOND = "millisecond"
SECOND = "second"
MINUTE = "minute"
HOUR = "hour"
DAY = "day"

TIME_UNITS: Tuple[UnitDefinition, ...] = (
    UnitDefinition(NANOSECOND, "NS", 0.000001),
    UnitDefinition(MICROSECOND, "MICRS", 0.001),
    UnitDefinition(MILLISECOND, "MILLS", 1),
    UnitDefinition(SECOND, "SEC", 1000),
    UnitDefinition(MINUTE, "MIN", 60 * 1000),
    UnitDefinition(HOUR, "HOUR", 60 * 60 * 1000),
    UnitDefinition(DAY, "DAY", 24 * 60 * 60 * 1000),
)


def full_number_converter() -> UnitConverter:
    """giga down to nano."""
    return UnitConverter(NUMBER_UNITS)


def number_converter() -> UnitConverter:
    """kilo down to nano."""
    return UnitConverter(NUMBER_UNITS[2:])


def number_converter_lite() -> UnitConverter:
    """kilo and plain number only."""
    return UnitConverter(NUMBER_UNITS[2:4])


def time_converter() -> UnitConverter:
    # time values are usually reported in nanoseconds
    converter = UnitConverter(TIME_UNITS)
    converter.set_base_unit(NANOSECOND)
    return converter


NAMED_TABLES: Dict[str, Callable[[], UnitConverter]] = {
    "full_number": full_number_converter,
    "number": number_converter,
    "number_lite": number_converter_lite,
    "time": time_converter,
}

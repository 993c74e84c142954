# unit_manager/manager.py
import logging
import threading
from typing import Dict, List, Mapping

from core.app_bus import get_app_bus
from unit_manager.converter import UnitConverter
from unit_manager.tables import NAMED_TABLES
from unit_manager.units import UnknownUnitError

log = logging.getLogger(__name__)

# Named converters, created on first use
__CONVERTERS: Dict[str, UnitConverter] = {}
__LOCK = threading.RLock()


def get_converter(name: str) -> UnitConverter:
    """Return the global converter called ``name`` (built from NAMED_TABLES on first use)."""
    with __LOCK:
        conv = __CONVERTERS.get(name)
        if conv is None:
            factory = NAMED_TABLES.get(name)
            if factory is None:
                raise UnknownUnitError(
                    f"Unknown converter '{name}'. Options: {sorted(set(NAMED_TABLES) | set(__CONVERTERS))}",
                    missing=(name,),
                )
            conv = factory()
            __CONVERTERS[name] = conv
        return conv


def register_converter(name: str, converter: UnitConverter) -> UnitConverter:
    with __LOCK:
        __CONVERTERS[name] = converter
    log.info("Registered converter '%s' (base=%s, %d units)", name, converter.base_unit, len(converter))
    return converter


def register_converters(converters: Mapping[str, UnitConverter]) -> List[str]:
    """Install several converters at once; emits tablesLoaded with their names."""
    names = []
    for name, conv in converters.items():
        register_converter(name, conv)
        names.append(name)
    get_app_bus().tablesLoaded.emit(names)
    return names


def converter_names() -> List[str]:
    with __LOCK:
        return sorted(set(NAMED_TABLES) | set(__CONVERTERS))


def set_base_unit(name: str, unit_id: str) -> UnitConverter:
    """Programmatic re-base; emits baseUnitChanged exactly like UI would."""
    with __LOCK:
        conv = get_converter(name)
        if conv.base_unit == unit_id:
            return conv
        conv.set_base_unit(unit_id)
    get_app_bus().baseUnitChanged.emit(name, unit_id)
    return conv


def reset_converters() -> None:
    with __LOCK:
        __CONVERTERS.clear()

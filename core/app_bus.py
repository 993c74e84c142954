# core/app_bus.py
from PySide6.QtCore import QObject, Signal

class AppBus(QObject):
    """
    Centralized signal hub for unit converters.
    Any widget or controller can subscribe or emit.
    """

    # ---- Unit tables ----
    baseUnitChanged = Signal(str, str)  # (converter name, new base unit id)
    tablesLoaded = Signal(object)       # list[str] of converter names


# Singleton pattern
_app_bus: AppBus | None = None

def get_app_bus() -> AppBus:
    global _app_bus
    if _app_bus is None:
        _app_bus = AppBus()
    return _app_bus

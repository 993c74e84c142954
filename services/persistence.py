# services/persistence.py
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import jsonschema

from unit_manager.converter import UnitConverter
from unit_manager.units import ConstructionError, UnitDefinition, UnknownUnitError

log = logging.getLogger(__name__)

UNIT_TABLES_FILE = "unit_tables.json"
UNIT_TABLES_VERSION = 2

UNIT_TABLES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["version", "tables"],
    "properties": {
        "version": {"type": "integer"},
        "tables": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["units"],
                "properties": {
                    "base": {"type": ["string", "null"]},
                    "units": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["id", "factor"],
                            "properties": {
                                "id": {"type": "string", "minLength": 1},
                                "display_key": {"type": "string"},
                                "factor": {"type": "number", "exclusiveMinimum": 0},
                            },
                        },
                    },
                },
            },
        },
    },
}


def _expand(path: Union[str, Path]) -> Path:
    return Path(os.path.expanduser(str(path))).resolve()


class ConfigError(RuntimeError):
    pass


class ConfigManager:
    """
    JSON persistence for unit tables with:
    - Atomic writes (tempfile + os.replace)
    - Schema validation (jsonschema)
    - Versioning + simple migration hooks
    - Thread-safety across calls
    - Automatic backup (.bak) on write

    Typical use:
        cfg = ConfigManager(app_name="unit_converter")
        tables = cfg.load_unit_tables()
        converters = cfg.build_converters(tables)
    """

    def __init__(
        self,
        app_name: str = "unit_converter",
        base_dir: Optional[Union[str, Path]] = None,
    ):
        self._lock = threading.RLock()
        self.app_name = app_name
        self.base_dir = _expand(base_dir or Path.home() / f".{app_name}")
        self.base_dir.mkdir(parents=True, exist_ok=True)
        (self.base_dir / "logs").mkdir(exist_ok=True)

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    # ------------- unit tables -------------

    def load_unit_tables(self, *, on_corruption: str = "backup_then_reset") -> Dict[str, Any]:
        """
        Load ``unit_tables.json``. A missing file is created empty.
        Returns the ``tables`` mapping: name -> {"base": id|None, "units": [...]}.
        """
        default = {"version": UNIT_TABLES_VERSION, "tables": {}}
        data = self.load(
            UNIT_TABLES_FILE,
            default=default,
            version=UNIT_TABLES_VERSION,
            schema=UNIT_TABLES_SCHEMA,
            migrate=self._migrate_unit_tables,
            on_corruption=on_corruption,
        )
        tables = data.get("tables", {})
        log.info("Loaded %d unit table(s) from %s", len(tables), self._path(UNIT_TABLES_FILE))
        return tables

    def save_unit_tables(self, tables: Mapping[str, Any]) -> None:
        """
        Persist unit tables. Values may be UnitConverter instances (their current
        table and base are stored) or plain {"base", "units"} dicts.
        """
        payload_tables: Dict[str, Any] = {}
        for name, table in tables.items():
            if isinstance(table, UnitConverter):
                payload_tables[name] = {
                    "base": table.base_unit,
                    "units": [u.to_dict() for u in table.units],
                }
            elif isinstance(table, Mapping):
                try:
                    units = [
                        u.to_dict() if isinstance(u, UnitDefinition) else UnitDefinition.from_dict(u).to_dict()
                        for u in table.get("units", [])
                    ]
                except (ConstructionError, TypeError) as e:
                    raise ConfigError(f"Invalid unit table '{name}': {e}") from e
                payload_tables[name] = {"base": table.get("base"), "units": units}
            else:
                raise ConfigError(f"Table '{name}' must be a UnitConverter or a dict.")

        payload = {"version": UNIT_TABLES_VERSION, "tables": payload_tables}
        self._validate(payload, UNIT_TABLES_SCHEMA, UNIT_TABLES_FILE)
        self.save(UNIT_TABLES_FILE, payload)
        log.info("Saved %d unit table(s) to %s", len(payload_tables), self._path(UNIT_TABLES_FILE))

    @staticmethod
    def build_converters(tables: Mapping[str, Any]) -> Dict[str, UnitConverter]:
        """Turn loaded tables into converters, re-basing where a table names a base."""
        out: Dict[str, UnitConverter] = {}
        for name, table in tables.items():
            try:
                conv = UnitConverter(table.get("units", []))
                base = table.get("base")
                if base and base != conv.base_unit:
                    conv.set_base_unit(base)
            except (ConstructionError, UnknownUnitError) as e:
                raise ConfigError(f"Invalid unit table '{name}': {e}") from e
            out[name] = conv
        return out

    # ------------- generic API -------------

    def load(
        self,
        filename: str,
        *,
        default: Any,
        version: int,
        migrate: Optional[Callable[[dict, int, int], dict]] = None,
        schema: Optional[Mapping[str, Any]] = None,
        on_corruption: str = "backup_then_reset",  # or "raise"
    ) -> Any:
        """
        Load a JSON file with optional migration & schema validation.
        - default: returned if missing/corrupt (and written to disk)
        - version: current schema version
        - migrate: fn(old_data, old_version, new_version) -> new_data
        - schema: jsonschema dict; violations raise ConfigError
        - on_corruption: "backup_then_reset" | "raise"
        """
        path = self._path(filename)
        with self._lock:
            if not path.exists():
                self._atomic_write(path, default)
                return default

            try:
                data = self._read_json(path)
                # a null or non-numeric version counts as corrupt
                old_version = int(data.get("version", 0)) if isinstance(data, dict) else 0
            except (OSError, TypeError, ValueError) as e:
                if on_corruption == "raise":
                    raise ConfigError(f"Failed to read {path}: {e}") from e
                log.warning("Corrupt config %s (%s); backing up and resetting", path, e)
                self._backup_corrupt(path)
                self._atomic_write(path, default)
                return default

            if old_version != version:
                if migrate:
                    data = migrate(data if isinstance(data, dict) else {}, old_version, version)
                else:
                    # No migration provided: assume breaking change -> reset to default
                    log.warning("%s is version %s, expected %s; resetting", path, old_version, version)
                    self._backup_corrupt(path, suffix=f".v{old_version}.bak")
                    data = default
                if isinstance(data, dict):
                    data["version"] = version
                if schema is not None:
                    self._validate(data, schema, filename)
                self._atomic_write(path, data)
            elif schema is not None:
                self._validate(data, schema, filename)

            return data

    def save(self, filename: str, data: Any) -> None:
        """
        Save JSON with atomic replace and backup of previous file.
        Accepts dicts or dataclasses.
        """
        payload = asdict(data) if is_dataclass(data) else data
        if not isinstance(payload, (dict, list)):
            raise ConfigError("Only dict or list (or dataclass) can be saved as JSON.")
        path = self._path(filename)
        with self._lock:
            self._atomic_write(path, payload, make_backup=True)

    # ------------- internal utils -------------

    def _path(self, filename: str) -> Path:
        return self.base_dir / filename

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _validate(data: Any, schema: Mapping[str, Any], filename: str) -> None:
        try:
            jsonschema.validate(instance=data, schema=schema)
        except jsonschema.ValidationError as e:
            raise ConfigError(f"Schema validation failed for {filename}: {e.message}") from e

    def _atomic_write(self, path: Path, data: Any, make_backup: bool = False) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write to temp file first
        fd, tmp = tempfile.mkstemp(prefix=path.stem + ".", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            if path.exists() and make_backup:
                shutil.copy2(path, path.with_suffix(path.suffix + ".bak"))
            os.replace(tmp, path)  # atomic on POSIX/NTFS
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    def _backup_corrupt(self, path: Path, *, suffix: str = ".bak") -> None:
        target = path.with_suffix(path.suffix + suffix)
        try:
            shutil.copy2(path, target)
        except OSError as e:
            log.warning("Could not back up %s to %s: %s", path, target, e)

    # ------------- migrations -------------

    def _migrate_unit_tables(self, old: dict, old_v: int, new_v: int) -> dict:
        """
        v0/v1 stored tables as bare unit lists using ``translate_key``/``value``.
        v2 wraps each table as {"base": ..., "units": [{"id", "display_key", "factor"}]}.
        """
        data = dict(old) if isinstance(old, dict) else {}
        tables_in = data.get("tables")
        if not isinstance(tables_in, dict):
            tables_in = {}

        tables: Dict[str, Any] = {}
        for name, table in tables_in.items():
            if isinstance(table, list):
                table = {"base": None, "units": table}
            elif not isinstance(table, dict):
                log.warning("Dropping malformed unit table '%s' during migration", name)
                continue

            units = []
            for u in table.get("units", []):
                if not isinstance(u, dict):
                    continue
                units.append(
                    {
                        "id": str(u.get("id", "")),
                        "display_key": str(u.get("display_key", u.get("translate_key", "")) or ""),
                        "factor": u.get("factor", u.get("value")),
                    }
                )
            tables[name] = {"base": table.get("base"), "units": units}

        log.info("Migrated unit tables v%s -> v%s (%d table(s))", old_v, new_v, len(tables))
        return {"version": new_v, "tables": tables}

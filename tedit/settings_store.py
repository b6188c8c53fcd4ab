from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Literal, Mapping

SettingsScope = Literal["project", "user"]
SCOPE_PRECEDENCE: tuple[SettingsScope, ...] = ("project", "user")


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be loaded or saved."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        current = merged.get(key)
        if key not in merged:
            merged[key] = deepcopy(default_value)
        elif isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    if not key:
        raise ValueError("Key cannot be empty.")
    *parents, leaf = key.split(".")
    current = data
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


class JsonSettingsStore:
    """JSON-backed mutable store with defaults and dot-key helpers."""

    def __init__(self, path: Path, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path)
        self.defaults: dict[str, Any] = deepcopy(dict(defaults or {}))
        self.data: dict[str, Any] = {}
        self.explicit: dict[str, Any] = {}
        self.dirty = False

    def load(self) -> dict[str, Any]:
        loaded: dict[str, Any] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise SettingsStoreError(f"Could not read settings file '{self.path}': {exc}") from exc
            if not isinstance(raw, dict):
                raise SettingsStoreError(
                    f"Settings root in '{self.path}' must be a JSON object, found {type(raw).__name__}."
                )
            loaded = raw
        self.explicit = deepcopy(loaded)
        self.data = deep_merge_defaults(loaded, self.defaults)
        self.dirty = False
        return self.data

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def has_explicit(self, key: str) -> bool:
        marker = object()
        return dot_get(self.explicit, key, marker) is not marker

    def set(self, key: str, value: Any) -> bool:
        if self.get(key) == value:
            return False
        dot_set(self.data, key, value)
        dot_set(self.explicit, key, value)
        self.dirty = True
        return True


class ScopedSettingsStores:
    """Project and user stores; explicit project values win."""

    def __init__(self, stores: Mapping[SettingsScope, JsonSettingsStore]) -> None:
        self._stores: dict[SettingsScope, JsonSettingsStore] = dict(stores)
        missing = set(SCOPE_PRECEDENCE) - set(self._stores)
        if missing:
            raise ValueError(f"Missing stores for scopes: {', '.join(sorted(missing))}")

    def store_for(self, scope: SettingsScope) -> JsonSettingsStore:
        return self._stores[scope]

    def get(self, key: str, default: Any = None) -> Any:
        for scope in SCOPE_PRECEDENCE:
            store = self._stores[scope]
            if store.has_explicit(key):
                return store.get(key, default)
        return self._stores["user"].get(key, default)

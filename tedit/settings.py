"""Settings locations, defaults and environment overrides."""

from __future__ import annotations

import os
from copy import deepcopy
from pathlib import Path
from typing import Any

from loguru import logger

from tedit.settings_store import (
    JsonSettingsStore,
    ScopedSettingsStores,
    SettingsStoreError,
    deep_merge_defaults,
)

SETTINGS_FILENAME = "settings.json"
PROJECT_SETTINGS_DIR = ".tedit"
PROGRAM_ENV = "TEDIT_LSP_PROGRAM"

DEFAULT_SETTINGS: dict[str, Any] = {
    "lsp": {
        "program": "rust-analyzer",
        "args": [],
        "language_id": "rust",
        "log_traffic": False,
        "shutdown_grace_ms": 1200,
        "spawn_timeout_ms": 5000,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}


def user_settings_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME", "").strip()
    base = Path(config_home).expanduser() if config_home else Path.home() / ".config"
    return base / "tedit" / SETTINGS_FILENAME


def project_settings_path(project_root: Path) -> Path:
    return Path(project_root) / PROJECT_SETTINGS_DIR / SETTINGS_FILENAME


class EditorSettings:
    """Read-only view over the scoped stores with environment overrides applied."""

    def __init__(self, stores: ScopedSettingsStores) -> None:
        self._stores = stores

    @property
    def stores(self) -> ScopedSettingsStores:
        return self._stores

    def get(self, key: str, default: Any = None) -> Any:
        if key == "lsp.program":
            override = os.environ.get(PROGRAM_ENV, "").strip()
            if override:
                return override
        return self._stores.get(key, default)

    def lsp_args(self) -> list[str]:
        raw = self.get("lsp.args", [])
        if isinstance(raw, str):
            return raw.split()
        if isinstance(raw, list):
            return [str(item) for item in raw]
        return []


def load_settings(project_root: Path | None = None) -> EditorSettings:
    root = Path(project_root) if project_root is not None else Path.cwd()
    stores = ScopedSettingsStores(
        {
            "project": JsonSettingsStore(project_settings_path(root), DEFAULT_SETTINGS),
            "user": JsonSettingsStore(user_settings_path(), DEFAULT_SETTINGS),
        }
    )
    for scope in ("project", "user"):
        store = stores.store_for(scope)
        try:
            store.load()
        except SettingsStoreError as exc:
            # Keep the editor usable without touching the broken file.
            logger.warning("Ignoring {} settings: {}", scope, exc)
            store.data = deep_merge_defaults({}, deepcopy(DEFAULT_SETTINGS))
            store.explicit = {}
    return EditorSettings(stores)

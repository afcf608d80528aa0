"""
Process-wide persisted client preferences.

Backed by one JSON file holding a flat key -> value map. ``load()`` reads it
(falling back to defaults on a missing or corrupt file) and every change is
written back immediately with ``save()``.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dispatch.client.events import SETTINGS_CHANGED, EventBus
from dispatch.config import Settings, get_settings

logger = logging.getLogger(__name__)

SIDEBAR_SECTIONS_KEY = "sidebar-sections-open"
THEME_KEY = "theme"

DEFAULT_SECTIONS: Dict[str, bool] = {
    "main": True,
    "workspace": True,
    "projects": True,
    "account": True,
}
THEMES = ("light", "dark")
DEFAULT_THEME = "light"


class SettingsStore:
    def __init__(self, path: Path, bus: Optional[EventBus] = None) -> None:
        self.path = Path(path)
        self.bus = bus
        self.sections: Dict[str, bool] = dict(DEFAULT_SECTIONS)
        self.theme: str = DEFAULT_THEME

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, bus: Optional[EventBus] = None) -> "SettingsStore":
        settings = settings or get_settings()
        return cls(settings.client_state_path, bus).load()

    # ---------- lifecycle ----------
    def load(self) -> "SettingsStore":
        raw = self._read()
        sections = raw.get(SIDEBAR_SECTIONS_KEY)
        if isinstance(sections, dict) and all(isinstance(v, bool) for v in sections.values()):
            self.sections = {**DEFAULT_SECTIONS, **sections}
        else:
            if sections is not None:
                logger.warning("Ignoring malformed %s value", SIDEBAR_SECTIONS_KEY)
            self.sections = dict(DEFAULT_SECTIONS)
        theme = raw.get(THEME_KEY)
        self.theme = theme if theme in THEMES else DEFAULT_THEME
        return self

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Settings file %s unreadable, using defaults: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        payload = {SIDEBAR_SECTIONS_KEY: self.sections, THEME_KEY: self.theme}
        tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def _changed(self, key: str) -> None:
        self.save()
        if self.bus is not None:
            self.bus.publish(SETTINGS_CHANGED, {"key": key})

    # ---------- sidebar ----------
    def is_section_open(self, key: str) -> bool:
        return self.sections.get(key, True)

    def toggle_section(self, key: str, *, collapsed: bool = False) -> bool:
        """Flip one section; a collapsed sidebar ignores toggles."""
        if collapsed:
            return self.is_section_open(key)
        self.sections[key] = not self.is_section_open(key)
        self._changed(SIDEBAR_SECTIONS_KEY)
        return self.sections[key]

    # ---------- theme ----------
    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"unknown theme {theme!r}")
        if theme != self.theme:
            self.theme = theme
            self._changed(THEME_KEY)

    def toggle_theme(self) -> str:
        self.set_theme("light" if self.theme == "dark" else "dark")
        return self.theme

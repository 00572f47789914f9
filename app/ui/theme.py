"""Theme configuration — Fluent Design tokens."""

from __future__ import annotations

from qfluentwidgets import Theme, setTheme, setThemeColor

_THEMES = {"light": Theme.LIGHT, "dark": Theme.DARK, "auto": Theme.AUTO}


def apply_theme(name: str = "auto", accent_color: str = "#2563EB") -> None:
    """Apply the configured theme ("light", "dark" or "auto")."""
    setTheme(_THEMES.get(name, Theme.AUTO))
    setThemeColor(accent_color)

"""Persistence layer for settings and run logs."""

from .store import SettingsStore, SETTINGS_KEY

__all__ = ['SettingsStore', 'SETTINGS_KEY']

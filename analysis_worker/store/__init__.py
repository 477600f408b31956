"""Store-facing protocols."""

from analysis_worker.store.base import CallStore, SettingsStore

__all__ = ["CallStore", "SettingsStore"]

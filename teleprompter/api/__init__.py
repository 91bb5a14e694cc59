"""Settings source package — where viewer settings are read from.

RULES:
- All settings reads go through a SettingsSource
- Failures surface as SettingsFetchError, never as raw httpx errors
"""

from teleprompter.api.settings_client import (
    HttpSettingsSource,
    InMemorySettingsSource,
    SettingsFetchError,
    SettingsSource,
)

__all__ = [
    "HttpSettingsSource",
    "InMemorySettingsSource",
    "SettingsFetchError",
    "SettingsSource",
]

"""
Save system configuration.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)


class SaveConfig:
    """Configuration for the save system."""

    def __init__(
        self,
        format_version: str = "2.0.0",
        manual_slots: int = 3,
        save_key_prefix: str = "dungeon_crawler_save_",
        auto_save_key: str = "dungeon_crawler_autosave",
        inventory_slots: int = 40,
        max_party_size: int = 4,
        auto_save_enabled: bool = True,
        auto_save_interval: float = 300.0,
        min_auto_save_interval: float = 60.0,
        trigger_cooldown: float = 10.0,
        backup_count: int = 3,
        validation_enabled: bool = True,
    ):
        self.format_version = format_version
        self.manual_slots = manual_slots
        self.save_key_prefix = save_key_prefix
        self.auto_save_key = auto_save_key
        self.inventory_slots = inventory_slots
        self.max_party_size = max_party_size
        self.auto_save_enabled = auto_save_enabled
        self.min_auto_save_interval = min_auto_save_interval
        self.auto_save_interval = max(min_auto_save_interval, auto_save_interval)
        self.trigger_cooldown = trigger_cooldown
        self.backup_count = backup_count
        self.validation_enabled = validation_enabled

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SaveConfig:
        """
        Build a config from a settings mapping.

        Unknown keys are ignored with a warning.
        """
        known = set(cls().__dict__)
        kwargs = {}
        for key, value in data.items():
            if key in known:
                kwargs[key] = value
            else:
                logger.warning(f"Ignoring unknown save config key: {key}")
        return cls(**kwargs)

    def save_key(self, slot: Any) -> str:
        """Storage key of a manual slot number or the "auto" slot."""
        if slot == "auto":
            return self.auto_save_key
        return f"{self.save_key_prefix}{slot}"

    def backup_key(self, index: int) -> str:
        """Storage key of auto-save backup ``index`` (1 = most recent)."""
        return f"{self.auto_save_key}_backup_{index}"

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"SaveConfig({fields})"

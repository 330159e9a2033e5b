"""
SaveRecord - the unit of persistence.

A SaveRecord is assembled fresh from the live game collaborators at the
moment of saving, serialized once by the codec, and reconstructed from
scratch on every load. Sections are Pydantic models so reconstruction is
driven by an explicit schema rather than by merging whatever keys the blob
happens to contain.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from crawlsave.config import SaveConfig
    from crawlsave.core.clock import Clock
    from crawlsave.save.interfaces import GameState

logger = logging.getLogger(__name__)

FORMAT_VERSION = "2.0.0"
INVENTORY_SLOTS = 40
REQUIRED_SECTIONS = ("metadata", "party", "inventory", "world", "progress")


class SaveSection(BaseModel):
    """Base for record sections: unknown fields are rejected."""

    model_config = ConfigDict(extra='forbid')


class Metadata(SaveSection):
    """Slot display data and format version."""
    version: Optional[str] = None
    timestamp: Optional[Any] = None
    playtime: Any = 0.0
    location: str = ""
    party_level: Any = 1
    preview: Optional[str] = None  # base64 PNG


class Formation(SaveSection):
    """Character ids per combat row."""
    front_row: Any = Field(default_factory=list)
    back_row: Any = Field(default_factory=list)


class Party(SaveSection):
    """Character snapshots are opaque dicts owned by the party system."""
    characters: list[Any] = Field(default_factory=list)
    formation: Formation = Field(default_factory=Formation)
    gold: Any = 0

    @property
    def members(self) -> list[dict[str, Any]]:
        """Non-empty character slots."""
        return [c for c in self.characters if c is not None]


class InventoryState(SaveSection):
    slots: list[Any] = Field(
        default_factory=lambda: [None] * INVENTORY_SLOTS
    )
    gold: Any = 0


class WorldState(SaveSection):
    current_dungeon: str = ""
    current_floor: Any = 0
    player_position: Optional[Any] = None
    player_direction: Any = 0
    cleared_encounters: Any = Field(default_factory=list)
    opened_doors: Any = Field(default_factory=list)
    discovered_areas: Any = Field(default_factory=list)
    visited_locations: Any = Field(default_factory=list)


class Progress(SaveSection):
    completed_quests: Any = Field(default_factory=list)
    unlocked_areas: Any = Field(default_factory=list)
    defeated_bosses: Any = Field(default_factory=list)
    game_start_time: Optional[Any] = None
    last_save_time: Optional[Any] = None


class Settings(SaveSection):
    """Player preferences; not gameplay-critical."""
    difficulty: str = "normal"
    auto_save_enabled: bool = True
    auto_save_interval: float = 300.0


SECTION_MODELS: dict[str, type[SaveSection]] = {
    "metadata": Metadata,
    "party": Party,
    "inventory": InventoryState,
    "world": WorldState,
    "progress": Progress,
    "settings": Settings,
}


def section_from_dict(model: type[SaveSection], data: Mapping[str, Any], path: str) -> SaveSection:
    """
    Build a section model from plain data.

    Unknown keys are dropped with a warning, nested sections are handled
    recursively, and missing keys fall back to the model defaults.
    Structural mismatches (a list field given a string) raise
    pydantic.ValidationError.
    """
    known: dict[str, Any] = {}
    for key, value in data.items():
        field_info = model.model_fields.get(key)
        if field_info is None:
            logger.warning(f"Dropping unknown field {path}.{key}")
            continue
        annotation = field_info.annotation
        if isinstance(annotation, type) and issubclass(annotation, SaveSection) and isinstance(value, Mapping):
            value = section_from_dict(annotation, value, f"{path}.{key}")
        known[key] = value

    missing = [name for name in model.model_fields if name not in data]
    if missing:
        logger.debug(f"{path}: using defaults for {', '.join(missing)}")

    return model.model_validate(known)


def format_playtime(seconds: Any) -> str:
    """Playtime as HH:MM:SS; anything non-numeric shows as zero."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        seconds = 0
    elif not math.isfinite(seconds) or seconds < 0:
        seconds = 0
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _level_of(character: Any) -> int:
    if not isinstance(character, Mapping):
        return 1
    level = character.get("level")
    if isinstance(level, (int, float)) and not isinstance(level, bool) and level:
        return int(level)
    return 1


@dataclass
class DisplayMetadata:
    """What a save-slot menu shows for one slot."""
    timestamp: Optional[Any]
    playtime: Any
    location: str
    party_level: Any
    party_size: int
    gold: Any
    version: Optional[str]
    preview: Optional[str] = None

    @property
    def playtime_formatted(self) -> str:
        return format_playtime(self.playtime)


class SaveRecord(BaseModel):
    """
    Complete game save.

    Usage:
        record = SaveRecord.from_game_state(game_state, clock=clock)
        blob = codec.serialize(record)
        restored = codec.deserialize(blob)
    """

    model_config = ConfigDict(extra='forbid')

    metadata: Metadata = Field(default_factory=lambda: Metadata(version=FORMAT_VERSION))
    party: Party = Field(default_factory=Party)
    inventory: InventoryState = Field(default_factory=InventoryState)
    world: WorldState = Field(default_factory=WorldState)
    progress: Progress = Field(default_factory=Progress)
    settings: Settings = Field(default_factory=Settings)

    @classmethod
    def from_game_state(
        cls,
        state: GameState,
        clock: Optional[Clock] = None,
        config: Optional[SaveConfig] = None,
    ) -> SaveRecord:
        """
        Assemble a record from the live collaborators.

        Args:
            state: Game collaborators to snapshot
            clock: Time source for timestamps (wall clock if omitted)
            config: Supplies format version and auto-save preferences

        Returns:
            A fresh SaveRecord
        """
        now = clock.now() if clock else time.time()
        version = config.format_version if config else FORMAT_VERSION

        record = cls(
            metadata=Metadata(
                version=version,
                timestamp=now,
                playtime=state.playtime,
                location=state.current_location or "Unknown",
            ),
        )

        if state.party:
            record.party = section_from_dict(Party, state.party.snapshot(), "party")
            members = record.party.members
            total = sum(_level_of(c) for c in members)
            record.metadata.party_level = total // max(len(members), 1)

        if state.inventory:
            record.inventory = section_from_dict(InventoryState, state.inventory.snapshot(), "inventory")
        elif config:
            record.inventory = InventoryState(slots=[None] * config.inventory_slots)
        # Inventory gold mirrors the party purse
        record.inventory.gold = record.party.gold

        world: dict[str, Any] = {"player_position": {"x": 0.0, "z": 0.0}}
        if state.movement:
            world.update(state.movement.snapshot())
        if state.dungeon:
            world.update(state.dungeon.snapshot())
        if state.world_state:
            world.update(state.world_state.snapshot())
        record.world = section_from_dict(WorldState, world, "world")

        progress: dict[str, Any] = {}
        if state.progress:
            progress.update(state.progress.snapshot())
        progress.setdefault("game_start_time", now)
        progress["last_save_time"] = now
        record.progress = section_from_dict(Progress, progress, "progress")

        if config:
            record.settings = Settings(
                auto_save_enabled=config.auto_save_enabled,
                auto_save_interval=config.auto_save_interval,
            )

        return record

    def apply_to_game_state(self, state: GameState) -> None:
        """Push every section back into the collaborators' restore operations."""
        if state.party:
            state.party.restore(self.party.model_dump(mode="json"))
        if state.inventory:
            state.inventory.restore(self.inventory.model_dump(mode="json"))
        if state.movement:
            state.movement.restore({
                "player_position": self.world.player_position,
                "player_direction": self.world.player_direction,
            })
        if state.dungeon:
            state.dungeon.restore({
                "current_dungeon": self.world.current_dungeon,
                "current_floor": self.world.current_floor,
            })
        if state.world_state:
            state.world_state.restore({
                "cleared_encounters": self.world.cleared_encounters,
                "opened_doors": self.world.opened_doors,
                "discovered_areas": self.world.discovered_areas,
                "visited_locations": self.world.visited_locations,
            })
        if state.progress:
            state.progress.restore(self.progress.model_dump(mode="json"))

        state.playtime = self.metadata.playtime
        state.current_location = self.metadata.location

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible data."""
        return self.model_dump(mode="json")

    def display_metadata(self) -> DisplayMetadata:
        return DisplayMetadata(
            timestamp=self.metadata.timestamp,
            playtime=self.metadata.playtime,
            location=self.metadata.location,
            party_level=self.metadata.party_level,
            party_size=len(self.party.members),
            gold=self.party.gold,
            version=self.metadata.version,
            preview=self.metadata.preview,
        )

    def is_compatible(self, required_version: str = FORMAT_VERSION) -> bool:
        """Only an exact version match counts as fully compatible."""
        return self.metadata.version == required_version

    def set_preview(self, preview: Optional[str]) -> None:
        self.metadata.preview = preview

    def clone(self) -> SaveRecord:
        """Deep copy of this record."""
        return self.model_copy(deep=True)

    def size(self) -> int:
        """Serialized size in bytes."""
        from crawlsave.save.codec import serialize
        return len(serialize(self))

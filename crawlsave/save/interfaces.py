"""
Game-state provider interfaces consumed by the save system.

Each gameplay collaborator exposes a pure ``snapshot()`` returning a plain
structured value for its SaveRecord section, and ``restore()`` taking the
same shape back. The save system never looks past these methods.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class PartyProvider(Protocol):
    """
    Party roster.

    snapshot() -> {"characters": [...], "formation": {"front_row": [...],
    "back_row": [...]}, "gold": int}
    """

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...

    def party_size(self) -> int: ...

    def is_party_dead(self) -> bool: ...


@runtime_checkable
class InventoryProvider(Protocol):
    """snapshot() -> {"slots": [...], "gold": int}"""

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...


@runtime_checkable
class MovementProvider(Protocol):
    """snapshot() -> {"player_position": {"x": float, "z": float}, "player_direction": int}"""

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...

    def is_animating(self) -> bool: ...


@runtime_checkable
class DungeonProvider(Protocol):
    """snapshot() -> {"current_dungeon": str, "current_floor": int}"""

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...


@runtime_checkable
class WorldStateProvider(Protocol):
    """
    snapshot() -> {"cleared_encounters": [...], "opened_doors": [...],
    "discovered_areas": [...], "visited_locations": [...]}
    """

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...


@runtime_checkable
class ProgressProvider(Protocol):
    """
    snapshot() -> {"completed_quests": [...], "unlocked_areas": [...],
    "defeated_bosses": [...], "game_start_time": float}
    """

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...


@runtime_checkable
class CombatProvider(Protocol):
    def is_in_combat(self) -> bool: ...


@runtime_checkable
class PreviewCapture(Protocol):
    """Renders the current frame and returns it as a base64 image string."""

    def capture(self) -> str: ...


@dataclass
class GameState:
    """
    Live game collaborators the save system reads from and restores into.

    Every collaborator is optional; absent sections keep their defaults.

    Attributes:
        party: Party roster
        inventory: Shared inventory
        movement: Player position/facing
        dungeon: Current dungeon and floor
        world_state: Cleared/opened/discovered/visited ids
        progress: Quest and boss progress
        combat: Combat status (auto-save gate)
        preview: Save-slot preview renderer
        playtime: Accumulated playtime in seconds
        current_location: Display label for the save slot
    """
    party: Optional[PartyProvider] = None
    inventory: Optional[InventoryProvider] = None
    movement: Optional[MovementProvider] = None
    dungeon: Optional[DungeonProvider] = None
    world_state: Optional[WorldStateProvider] = None
    progress: Optional[ProgressProvider] = None
    combat: Optional[CombatProvider] = None
    preview: Optional[PreviewCapture] = None
    playtime: float = 0.0
    current_location: str = ""

    def update_playtime(self, dt: float) -> None:
        """Add frame time to the playtime counter."""
        self.playtime += dt

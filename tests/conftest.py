import copy
import os
import sys
import pytest
from unittest.mock import MagicMock

# Ensure crawlsave can be imported without installing
sys.path.append(os.getcwd())


def make_character(char_id="hero_1", name="Aldric", char_class="warrior", level=5):
    return {
        "id": char_id,
        "name": name,
        "class": char_class,
        "level": level,
        "stats": {"HP": {"current": 40, "max": 50}, "ATK": 12, "DEF": 8, "SPD": 6},
        "equipment": {
            "weapon": {"id": "iron_sword", "name": "Iron Sword", "type": "weapon"},
            "armor": None,
            "accessory": None,
        },
    }


class FakeParty:
    def __init__(self, characters=None, gold=150):
        if characters is None:
            characters = [
                make_character("hero_1", "Aldric", "warrior", 5),
                make_character("hero_2", "Mira", "mage", 3),
            ]
        self.characters = characters
        self.gold = gold
        self.dead = False
        self.restored = None

    def snapshot(self):
        ids = [c["id"] for c in self.characters]
        return {
            "characters": copy.deepcopy(self.characters),
            "formation": {"front_row": ids[:1], "back_row": ids[1:]},
            "gold": self.gold,
        }

    def restore(self, snapshot):
        self.restored = snapshot
        self.characters = [c for c in snapshot["characters"] if c is not None]
        self.gold = snapshot["gold"]

    def party_size(self):
        return len(self.characters)

    def is_party_dead(self):
        return self.dead


class FakeInventory:
    def __init__(self):
        self.slots = [None] * 40
        self.slots[0] = {"item": {"id": "potion", "name": "Potion", "type": "consumable"}, "quantity": 3}
        self.restored = None

    def snapshot(self):
        return {"slots": copy.deepcopy(self.slots), "gold": 0}

    def restore(self, snapshot):
        self.restored = snapshot
        self.slots = list(snapshot["slots"])


class FakeMovement:
    def __init__(self):
        self.position = {"x": 2.0, "z": 5.0}
        self.direction = 1
        self.animating = False
        self.restored = None

    def snapshot(self):
        return {"player_position": dict(self.position), "player_direction": self.direction}

    def restore(self, snapshot):
        self.restored = snapshot
        self.position = dict(snapshot["player_position"])
        self.direction = snapshot["player_direction"]

    def is_animating(self):
        return self.animating


class FakeSection:
    """Provider whose snapshot is a fixed dict."""

    def __init__(self, data):
        self.data = data
        self.restored = None

    def snapshot(self):
        return copy.deepcopy(self.data)

    def restore(self, snapshot):
        self.restored = snapshot


class FakeCombat:
    def __init__(self):
        self.in_combat = False

    def is_in_combat(self):
        return self.in_combat


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from crawlsave.core.events import EventBus
    return EventBus()


@pytest.fixture
def clock():
    from crawlsave.core.clock import ManualClock
    return ManualClock()


@pytest.fixture
def storage():
    from crawlsave.core.storage import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def config():
    from crawlsave.config import SaveConfig
    return SaveConfig()


@pytest.fixture
def character_factory():
    return make_character


@pytest.fixture
def party():
    return FakeParty()


@pytest.fixture
def movement():
    return FakeMovement()


@pytest.fixture
def combat():
    return FakeCombat()


@pytest.fixture
def game_state(clock, party, movement, combat):
    """GameState with a two-character party standing in the crypt."""
    from crawlsave.save.interfaces import GameState
    return GameState(
        party=party,
        inventory=FakeInventory(),
        movement=movement,
        dungeon=FakeSection({"current_dungeon": "crypt", "current_floor": 2}),
        world_state=FakeSection({
            "cleared_encounters": ["skeleton_pack_1"],
            "opened_doors": ["door_3_4"],
            "discovered_areas": ["crypt_entrance"],
            "visited_locations": ["town"],
        }),
        progress=FakeSection({
            "completed_quests": ["lost_ring"],
            "unlocked_areas": ["crypt"],
            "defeated_bosses": [],
            "game_start_time": clock.now() - 3600,
        }),
        combat=combat,
        playtime=3725.0,
        current_location="Crypt B2",
    )


@pytest.fixture
def preview():
    capture = MagicMock()
    capture.capture.return_value = "iVBORw0KGgo="
    return capture


@pytest.fixture
def manager(storage, config, clock, event_bus, game_state):
    from crawlsave.save.manager import SaveManager
    return SaveManager(storage, config=config, clock=clock, event_bus=event_bus, game_state=game_state)


@pytest.fixture
def auto_saver(manager):
    from crawlsave.save.autosave import AutoSaveManager
    return AutoSaveManager(manager)


@pytest.fixture
def valid_record(game_state, clock, config):
    from crawlsave.save.record import SaveRecord
    return SaveRecord.from_game_state(game_state, clock=clock, config=config)

"""
Save validation - structural and semantic integrity checks.

Two tiers:
- quick_validate(): cheap boolean gate on gross structure. Never accepts
  data that validate() would reject as structurally broken.
- validate(): section-by-section checks producing blocking errors and
  advisory warnings.

Both accept a SaveRecord or raw decoded save data (a dict).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

import jsonschema

from crawlsave.save.record import FORMAT_VERSION, INVENTORY_SLOTS, SaveRecord

logger = logging.getLogger(__name__)

SAVE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["metadata", "party", "inventory", "world", "progress"],
    "properties": {
        "metadata": {"type": "object"},
        "party": {"type": "object"},
        "inventory": {"type": "object"},
        "world": {"type": "object"},
        "progress": {"type": "object"},
        "settings": {"type": "object"},
    },
}

_SCHEMA_VALIDATOR = jsonschema.Draft7Validator(SAVE_SCHEMA)


@dataclass
class ValidationRules:
    """Limits used by the validator."""
    max_characters: int = 4
    max_level: int = 100
    inventory_slots: int = INVENTORY_SLOTS
    valid_classes: tuple[str, ...] = ("warrior", "rogue", "mage", "cleric")
    valid_directions: tuple[int, ...] = (0, 1, 2, 3)
    required_stats: tuple[str, ...] = ("HP", "ATK", "DEF", "SPD")
    equipment_slots: tuple[str, ...] = ("weapon", "armor", "accessory")


@dataclass(frozen=True)
class ValidationIssue:
    """One error or warning, tagged with the record section it concerns."""
    section: str
    message: str

    def __str__(self) -> str:
        return f"{self.section}: {self.message}"


@dataclass
class ValidationResult:
    """
    Outcome of a full validation.

    Attributes:
        is_valid: False as soon as any error is recorded
        errors: Blocking problems
        warnings: Advisory problems
        details: Per-section summaries
    """
    is_valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def error(self, section: str, message: str) -> None:
        self.errors.append(ValidationIssue(section, message))
        self.is_valid = False

    def warn(self, section: str, message: str) -> None:
        self.warnings.append(ValidationIssue(section, message))

    def errors_in(self, section: str) -> list[ValidationIssue]:
        return [e for e in self.errors if e.section == section]

    def summary(self) -> str:
        """Comma-separated error messages."""
        return ", ".join(e.message for e in self.errors)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_data(save: Union[SaveRecord, Mapping[str, Any], None]) -> Any:
    if isinstance(save, SaveRecord):
        return save.to_dict()
    return save


class SaveValidator:
    """
    Validates save records.

    Usage:
        validator = SaveValidator()
        result = validator.validate(record)
        if not result.is_valid:
            print(result.summary())
    """

    def __init__(self, required_version: str = FORMAT_VERSION, rules: ValidationRules | None = None):
        self.required_version = required_version
        self.rules = rules or ValidationRules()

    def quick_validate(self, save: Union[SaveRecord, Mapping[str, Any], None]) -> bool:
        """Cheap structural gate."""
        try:
            data = _as_data(save)
            if not isinstance(data, Mapping):
                return False
            metadata, party, inventory = data.get("metadata"), data.get("party"), data.get("inventory")
            if not all(isinstance(s, Mapping) for s in (metadata, party, inventory)):
                return False
            if not metadata.get("version"):
                return False
            characters = party.get("characters")
            if not isinstance(characters, list) or not [c for c in characters if c is not None]:
                return False
            slots = inventory.get("slots")
            if not isinstance(slots, list) or len(slots) != self.rules.inventory_slots:
                return False
            return True
        except Exception:
            return False

    def validate(self, save: Union[SaveRecord, Mapping[str, Any], None]) -> ValidationResult:
        """Run every section check."""
        result = ValidationResult()
        try:
            data = _as_data(save)
            if not isinstance(data, Mapping):
                result.error("structure", "Save data is missing or not an object")
                return result

            self._validate_structure(data, result)
            self._validate_metadata(data.get("metadata"), result)
            self._validate_party(data.get("party"), result)
            self._validate_inventory(data.get("inventory"), result)
            self._validate_world(data.get("world"), result)
            self._validate_progress(data.get("progress"), result)
            self._validate_cross_references(data, result)
            self._validate_compatibility(data, result)
        except Exception as e:
            logger.exception("Unexpected error during save validation")
            result.error("structure", f"Validation error: {e}")

        return result

    def validate_schema(self, data: Any) -> ValidationResult:
        """Check the top-level sections exist and are objects."""
        result = ValidationResult()
        for err in sorted(_SCHEMA_VALIDATOR.iter_errors(data), key=lambda e: list(e.path)):
            if err.validator == "required":
                missing = err.message.split("'")[1]
                result.error(missing, f"Missing required property: {missing}")
            elif err.path:
                section = str(err.path[0])
                result.error(section, f"{section} must be an object")
            else:
                result.error("structure", "Save data must be an object")
        return result

    # Section checks

    def _validate_structure(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        schema_result = self.validate_schema(dict(data))
        for issue in schema_result.errors:
            result.error(issue.section, issue.message)

    def _validate_metadata(self, metadata: Any, result: ValidationResult) -> None:
        if not isinstance(metadata, Mapping):
            return

        version = metadata.get("version")
        if not version:
            result.error("metadata", "Missing save version")
        elif not isinstance(version, str):
            result.error("metadata", "Save version must be a string")

        timestamp = metadata.get("timestamp")
        if timestamp is None:
            result.error("metadata", "Missing timestamp")
        elif not _is_number(timestamp) or timestamp <= 0:
            result.error("metadata", "Invalid timestamp")

        playtime = metadata.get("playtime")
        if playtime is not None and (not _is_number(playtime) or playtime < 0):
            result.warn("metadata", "Invalid playtime value")

        party_level = metadata.get("party_level")
        if party_level is not None and (not _is_number(party_level) or party_level < 0):
            result.warn("metadata", "Invalid party level")

        result.details["metadata"] = {
            "version": version,
            "timestamp": timestamp,
            "playtime": playtime or 0,
        }

    def _validate_party(self, party: Any, result: ValidationResult) -> None:
        if not isinstance(party, Mapping):
            return

        characters = party.get("characters")
        if not isinstance(characters, list):
            result.error("party", "Party characters must be a list")
            return

        members = [c for c in characters if c is not None]
        if not members:
            result.error("party", "Party has no characters")
        elif len(members) > self.rules.max_characters:
            result.error("party", f"Party has too many characters (max {self.rules.max_characters})")

        for index, character in enumerate(members):
            self._validate_character(character, index, result)

        formation = party.get("formation")
        if formation is not None:
            if (
                not isinstance(formation, Mapping)
                or not isinstance(formation.get("front_row"), list)
                or not isinstance(formation.get("back_row"), list)
            ):
                result.warn("party", "Invalid formation structure")

        gold = party.get("gold")
        if not _is_number(gold) or gold < 0:
            result.warn("party", "Invalid gold amount")

        result.details["party"] = {
            "character_count": len(members),
            "gold": gold if _is_number(gold) else 0,
        }

    def _validate_character(self, character: Any, index: int, result: ValidationResult) -> None:
        if not isinstance(character, Mapping):
            result.error("party", f"Character {index} is invalid")
            return

        for prop in ("id", "name", "class", "level"):
            if prop not in character:
                result.error("party", f"Character {index} missing {prop}")

        char_class = character.get("class")
        if char_class and char_class not in self.rules.valid_classes:
            result.error("party", f"Character {index} has invalid class: {char_class}")

        level = character.get("level")
        if not _is_number(level) or not 1 <= level <= self.rules.max_level:
            result.error("party", f"Character {index} has invalid level: {level}")

        stats = character.get("stats")
        if stats:
            self._validate_character_stats(stats, index, result)

        equipment = character.get("equipment")
        if equipment:
            self._validate_character_equipment(equipment, index, result)

    def _validate_character_stats(self, stats: Any, index: int, result: ValidationResult) -> None:
        if not isinstance(stats, Mapping):
            result.warn("party", f"Character {index} has invalid stats")
            return

        for stat in self.rules.required_stats:
            if stat not in stats:
                result.warn("party", f"Character {index} missing {stat} stat")
                continue
            value = stats[stat]
            # HP may be a {current, max} pair
            if stat == "HP" and isinstance(value, Mapping):
                continue
            if not _is_number(value) or value < 0:
                result.warn("party", f"Character {index} has invalid {stat} stat")

        hp = stats.get("HP")
        if isinstance(hp, Mapping):
            current, maximum = hp.get("current"), hp.get("max")
            if not _is_number(current) or not _is_number(maximum):
                result.warn("party", f"Character {index} has invalid HP structure")
            elif current > maximum or current < 0 or maximum < 0:
                result.warn("party", f"Character {index} has invalid HP values")

    def _validate_character_equipment(self, equipment: Any, index: int, result: ValidationResult) -> None:
        if not isinstance(equipment, Mapping):
            result.warn("party", f"Character {index} has invalid equipment")
            return
        for slot in self.rules.equipment_slots:
            item = equipment.get(slot)
            if item and not isinstance(item, Mapping):
                result.warn("party", f"Character {index} has invalid {slot} equipment")

    def _validate_inventory(self, inventory: Any, result: ValidationResult) -> None:
        if not isinstance(inventory, Mapping):
            return

        expected = self.rules.inventory_slots
        slots = inventory.get("slots")
        used = 0
        if not isinstance(slots, list):
            result.error("inventory", "Inventory slots must be a list")
        elif len(slots) != expected:
            result.error("inventory", f"Inventory must have {expected} slots, found {len(slots)}")
        else:
            for index, slot in enumerate(slots):
                if slot is not None:
                    used += 1
                    self._validate_inventory_slot(slot, index, result)

        gold = inventory.get("gold")
        if not _is_number(gold) or gold < 0:
            result.warn("inventory", "Invalid inventory gold amount")

        result.details["inventory"] = {
            "used_slots": used,
            "total_slots": expected,
            "gold": gold if _is_number(gold) else 0,
        }

    def _validate_inventory_slot(self, slot: Any, index: int, result: ValidationResult) -> None:
        if not isinstance(slot, Mapping):
            result.warn("inventory", f"Inventory slot {index} is invalid")
            return

        item = slot.get("item")
        if not item:
            result.warn("inventory", f"Inventory slot {index} missing item")
            return

        quantity = slot.get("quantity")
        if not _is_number(quantity) or quantity <= 0:
            result.warn("inventory", f"Inventory slot {index} has invalid quantity")

        if not isinstance(item, Mapping) or not all(item.get(k) for k in ("id", "name", "type")):
            result.warn("inventory", f"Inventory slot {index} has incomplete item data")

    def _validate_world(self, world: Any, result: ValidationResult) -> None:
        if not isinstance(world, Mapping):
            return

        position = world.get("player_position")
        if not isinstance(position, Mapping):
            result.error("world", "Missing or invalid player position")
        elif not _is_number(position.get("x")) or not _is_number(position.get("z")):
            result.error("world", "Invalid player position coordinates")

        direction = world.get("player_direction")
        if direction not in self.rules.valid_directions or not _is_number(direction):
            result.warn("world", "Invalid player direction")

        floor = world.get("current_floor")
        if not _is_number(floor) or floor < 0:
            result.warn("world", "Invalid current floor")

        result.details["world"] = {
            "position": position,
            "direction": direction,
            "floor": floor if _is_number(floor) else 0,
        }

    def _validate_progress(self, progress: Any, result: ValidationResult) -> None:
        if not isinstance(progress, Mapping):
            return

        counts = {}
        for prop in ("completed_quests", "unlocked_areas", "defeated_bosses"):
            value = progress.get(prop)
            if value is not None and not isinstance(value, list):
                result.warn("progress", f"Progress {prop} should be a list")
            counts[prop] = len(value) if isinstance(value, list) else 0

        for prop, label in (("game_start_time", "game start time"), ("last_save_time", "last save time")):
            value = progress.get(prop)
            if value is not None and (not _is_number(value) or value <= 0):
                result.warn("progress", f"Invalid {label}")

        result.details["progress"] = counts

    def _validate_cross_references(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        party, inventory = data.get("party"), data.get("inventory")
        if not isinstance(party, Mapping):
            return

        if isinstance(inventory, Mapping) and party.get("gold") != inventory.get("gold"):
            result.warn("cross_reference", "Gold mismatch between party and inventory")

        formation = party.get("formation")
        characters = party.get("characters")
        if not isinstance(formation, Mapping) or not isinstance(characters, list):
            return

        character_ids = [c.get("id") for c in characters if isinstance(c, Mapping)]
        for row in ("front_row", "back_row"):
            ids = formation.get(row)
            if not isinstance(ids, list):
                continue
            for char_id in ids:
                if char_id not in character_ids:
                    result.warn("cross_reference", f"Formation references non-existent character: {char_id}")

    def _validate_compatibility(self, data: Mapping[str, Any], result: ValidationResult) -> None:
        metadata = data.get("metadata")
        version = metadata.get("version") if isinstance(metadata, Mapping) else None
        if not version:
            result.error("compatibility", "Cannot determine save version")
            return

        compatible = version == self.required_version
        if not compatible:
            result.warn(
                "compatibility",
                f"Save version {version} may not be fully compatible with current version {self.required_version}",
            )

        result.details["compatibility"] = {
            "save_version": version,
            "required_version": self.required_version,
            "is_compatible": compatible,
        }

"""
Command-line save inspection.

Usage:
    python -m crawlsave saves/ list
    python -m crawlsave saves/ validate [slot]
    python -m crawlsave saves/ recover <slot>
    python -m crawlsave saves/ delete <slot>
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Union

from crawlsave import __version__
from crawlsave.core.storage import FileStorage
from crawlsave.log import configure_logging
from crawlsave.save.autosave import AutoSaveManager
from crawlsave.save.manager import AUTO_SLOT, CorruptSlot, SaveManager

logger = logging.getLogger(__name__)


def parse_slot(value: str) -> Union[int, str]:
    if value == AUTO_SLOT:
        return AUTO_SLOT
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"slot must be a number or '{AUTO_SLOT}', got {value!r}") from None


def _describe(meta) -> str:
    if meta is None:
        return "empty"
    if isinstance(meta, CorruptSlot):
        return f"CORRUPTED ({meta.error})"
    return (
        f"{meta.location} | Lv {meta.party_level} | party {meta.party_size} | "
        f"{meta.gold}g | {meta.playtime_formatted} | v{meta.version}"
    )


def cmd_list(manager: SaveManager, args: argparse.Namespace) -> int:
    slots = manager.get_all_save_metadata()
    for slot, meta in slots["manual"].items():
        print(f"Slot {slot}: {_describe(meta)}")
    print(f"Auto:   {_describe(slots['auto'])}")
    stats = manager.get_storage_stats()
    print(f"Total:  {stats['total_size_formatted']}")
    return 0


def cmd_validate(manager: SaveManager, args: argparse.Namespace) -> int:
    auto = AutoSaveManager(manager)
    if args.slot is not None:
        slots = [args.slot]
    else:
        slots = [s for s in [*manager.manual_slots, AUTO_SLOT] if manager.has_save(s)]

    ok = True
    for slot in slots:
        check = auto.validate_save(slot)
        if check.is_valid:
            print(f"{slot}: valid ({len(check.warnings)} warning(s))")
        else:
            ok = False
            hint = " - recoverable" if check.can_recover else ""
            print(f"{slot}: INVALID: {check.error}{hint}")
            for error in check.errors:
                print(f"    error: {error}")
        for warning in check.warnings:
            print(f"    warning: {warning}")
    return 0 if ok else 1


def cmd_recover(manager: SaveManager, args: argparse.Namespace) -> int:
    result = manager.recovery.recover_save(args.slot)
    print(f"{args.slot}: {result.message}")
    return 0 if result.success else 1


def cmd_delete(manager: SaveManager, args: argparse.Namespace) -> int:
    if not manager.delete_save(args.slot):
        print(f"{args.slot}: delete failed")
        return 1
    print(f"{args.slot}: deleted")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crawlsave", description="Inspect and repair dungeon crawler saves")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("save_dir", help="Directory holding the save files")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="Show every slot")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("validate", help="Fully validate saves")
    p.add_argument("slot", nargs="?", type=parse_slot, default=None)
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("recover", help="Restore a slot from the auto-save or its backups")
    p.add_argument("slot", type=parse_slot)
    p.set_defaults(func=cmd_recover)

    p = sub.add_parser("delete", help="Delete a slot")
    p.add_argument("slot", type=parse_slot)
    p.set_defaults(func=cmd_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    manager = SaveManager(FileStorage(args.save_dir))
    slot = getattr(args, "slot", None)
    if slot is not None and not manager.is_valid_slot(slot):
        logger.error(f"Invalid slot: {slot}")
        return 1

    return args.func(manager, args)


if __name__ == "__main__":
    sys.exit(main())

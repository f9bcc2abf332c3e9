from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config import EngineConfig
from .core.modifiers import default_modifier_catalog
from .core.stats import Attributes, StatDeltas, compute_stats
from .errors import EngineError
from .logging_config import configure_logging
from .replay import RecordedAction, autoplay, fingerprint, verify
from .run.engine import RunEngine
from .run.models import HealingPotion, PlayerProfile, Run

logger = logging.getLogger(__name__)


def _level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def profile_to_dict(profile: PlayerProfile) -> Dict[str, Any]:
    return {
        "attributes": asdict(profile.attributes),
        "equipment": asdict(profile.equipment),
        "characterLevel": profile.character_level,
        "potion": profile.potion.to_document() if profile.potion else None,
    }


def profile_from_dict(data: Dict[str, Any]) -> PlayerProfile:
    potion = data.get("potion")
    return PlayerProfile(
        attributes=Attributes.from_dict(data.get("attributes", {})),
        equipment=StatDeltas(**data.get("equipment", {})),
        character_level=int(data.get("characterLevel", 1)),
        potion=HealingPotion.from_document(potion) if potion else None,
    )


def _profile_from_args(args: argparse.Namespace) -> PlayerProfile:
    return PlayerProfile(
        attributes=Attributes(STR=args.str, AGI=args.agi, CON=args.con, LUCK=args.luck),
        character_level=args.level,
        potion=HealingPotion(level=args.potion_level) if args.level >= 5 else None,
    )


def _add_attribute_args(p: argparse.ArgumentParser) -> None:
    for name in ("str", "agi", "con", "luck"):
        p.add_argument(f"--{name}", type=int, default=1, help=f"{name.upper()} attribute (default 1)")


def cmd_simulate(args: argparse.Namespace, engine: RunEngine) -> int:
    profile = _profile_from_args(args)
    initial = engine.create_run("cli-character", "cli-account", profile, seed=args.seed, run_id=args.run_id, now=0)
    final, actions, _ = autoplay(engine, initial, profile, max_steps=args.steps, now=0)
    if args.record:
        record = {
            "profile": profile_to_dict(profile),
            "initial": initial.to_document(),
            "actions": [a.to_dict() for a in actions],
            "final": final.to_document(),
        }
        args.record.write_text(json.dumps(record, indent=2), encoding="utf-8")
        logger.info("Wrote replay record to %s", args.record)
    if args.json:
        print(json.dumps(final.to_document(), indent=2))
    else:
        fp = fingerprint(final)
        print(f"seed={final.seed} steps={final.step} end={fp['end_reason']} "
              f"score={final.score} gold={final.gold_earned} gems={final.gems_earned} "
              f"kills={final.enemies_killed} items={len(final.run_inventory)} rng={final.rng_index}")
    return 0


def cmd_stats(args: argparse.Namespace, engine: RunEngine) -> int:
    attrs = Attributes(STR=args.str, AGI=args.agi, CON=args.con, LUCK=args.luck)
    catalog = default_modifier_catalog()
    try:
        mods = catalog.resolve(args.modifier or [])
    except KeyError as exc:
        print(f"error: {exc.args[0]}", file=sys.stderr)
        return 2
    stats = compute_stats(attrs, None, mods, engine.config)
    print(json.dumps(stats.to_dict(), indent=2))
    return 0


def cmd_replay(args: argparse.Namespace, engine: RunEngine) -> int:
    record = json.loads(args.record.read_text(encoding="utf-8"))
    report = verify(
        engine,
        Run.from_document(record["initial"]),
        profile_from_dict(record.get("profile", {})),
        [RecordedAction.from_dict(a) for a in record["actions"]],
        Run.from_document(record["final"]),
    )
    if report.ok:
        print(f"OK: {report.actions_applied} actions reproduce the recorded run")
        return 0
    if report.error:
        print(f"FAILED: {report.error}")
    for key, (want, got) in report.mismatches.items():
        print(f"MISMATCH {key}: expected={want!r} actual={got!r}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roguerun",
        description="roguerun - deterministic adventure run engine tools",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Engine config YAML overriding the defaults")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Auto-play a seeded run")
    sim.add_argument("--seed", default=None, help="Run seed (random when omitted)")
    sim.add_argument("--run-id", default=None)
    sim.add_argument("--steps", type=int, default=30, help="Quit after this many steps")
    sim.add_argument("--level", type=int, default=1, help="Character level")
    sim.add_argument("--potion-level", type=int, default=1)
    sim.add_argument("--record", type=Path, default=None, help="Write a replay record to this JSON file")
    sim.add_argument("--json", action="store_true", help="Print the final run document")
    _add_attribute_args(sim)
    sim.set_defaults(func=cmd_simulate)

    st = sub.add_parser("stats", help="Preview derived stats")
    _add_attribute_args(st)
    st.add_argument("--modifier", action="append", help="Blessing/curse id (repeatable)")
    st.set_defaults(func=cmd_stats)

    rp = sub.add_parser("replay", help="Verify a replay record")
    rp.add_argument("record", type=Path)
    rp.set_defaults(func=cmd_replay)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(_level(args.verbose))
    try:
        engine = RunEngine(EngineConfig.load(args.config))
        return args.func(args, engine)
    except EngineError as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

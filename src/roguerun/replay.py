from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import EngineError
from .run.engine import RunEngine
from .run.models import ActionResult, EndReason, HealingPotion, PlayerProfile, Run, RunStateType

logger = logging.getLogger(__name__)

# Run fields that must match for a replay to count as identical. Timestamps are
# excluded: they come from the caller, not from the seed.
FINGERPRINT_FIELDS = (
    "seed",
    "rng_index",
    "state",
    "step",
    "end_reason",
    "current_node_type",
    "player_hp",
    "player_hp_max",
    "blessings",
    "curses",
    "blessing_points",
    "score",
    "gold_earned",
    "gems_earned",
    "enemies_killed",
)


def fingerprint(run: Run) -> Dict[str, Any]:
    data = {name: getattr(run, name) for name in FINGERPRINT_FIELDS}
    for key, value in data.items():
        if hasattr(value, "value"):
            data[key] = value.value
    data["inventory"] = [i.item_id for i in run.run_inventory]
    return data


@dataclass
class RecordedAction:
    """One player action as recorded by the caller, e.g. ``{"action": "rest", "usePotion": true}``."""

    action: str
    args: Dict[str, Any] = field(default_factory=dict)
    at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action, **self.args}
        if self.at is not None:
            data["at"] = self.at
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RecordedAction":
        data = dict(data)
        try:
            action = str(data.pop("action"))
        except KeyError as exc:
            raise ValueError("recorded action is missing 'action'") from exc
        at = data.pop("at", None)
        return RecordedAction(action, data, int(at) if at is not None else None)


def apply_action(engine: RunEngine, run: Run, profile: PlayerProfile, rec: RecordedAction) -> ActionResult:
    """Dispatch a recorded action to the matching engine call."""
    a = rec.args
    now = rec.at if rec.at is not None else run.last_activity_at
    if rec.action == "start":
        return engine.start(run, now=now)
    if rec.action == "advance":
        return engine.advance(run, profile, now=now)
    if rec.action == "fight":
        return engine.fight(run, profile, now=now)
    if rec.action == "resolve_event":
        return engine.resolve_event(run, profile, a.get("choiceIndex"), now=now)
    if rec.action == "rest":
        return engine.rest(run, profile, bool(a.get("usePotion", False)), now=now)
    if rec.action == "continue":
        return engine.continue_run(run, profile, bool(a.get("end", False)), now=now)
    if rec.action == "select_blessing":
        return engine.select_blessing(run, profile, a["blessingId"], now=now)
    if rec.action == "end":
        return engine.end_run(run, EndReason(a.get("reason", EndReason.QUIT.value)), now=now)
    raise ValueError(f"Unknown recorded action: {rec.action}")


def _choose(run: Run, profile: PlayerProfile, engine: RunEngine, now: int) -> RecordedAction:
    """Simple autoplay policy: fight everything, take risks only when healthy."""
    state = run.state
    if state is RunStateType.INIT:
        return RecordedAction("start")
    if state is RunStateType.EXPLORING:
        return RecordedAction("advance")
    if state is RunStateType.COMBAT:
        return RecordedAction("fight")
    if state is RunStateType.EVENT:
        data = run.current_node_data or {}
        if "options" not in data:
            return RecordedAction("resolve_event")
        healthy = run.player_hp * 2 > run.player_hp_max
        return RecordedAction("resolve_event", {"choiceIndex": 0 if healthy else len(data["options"]) - 1})
    if state is RunStateType.REST:
        pc = engine.config.potion
        potion = profile.potion
        usable = (
            potion is not None
            and profile.character_level >= pc.unlock_level
            and potion.ready(now)
            and run.player_hp * 2 < run.player_hp_max
        )
        return RecordedAction("rest", {"usePotion": usable})
    if state is RunStateType.RESOLUTION:
        return RecordedAction("continue")
    if state is RunStateType.BLESSING_SELECT:
        return RecordedAction("select_blessing", {"blessingId": run.current_node_data["offer"][0]})
    raise ValueError(f"No autoplay action for state {state.value}")


def autoplay(
    engine: RunEngine,
    run: Run,
    profile: PlayerProfile,
    *,
    max_steps: int = 30,
    now: int = 0,
    tick_ms: int = 1000,
) -> Tuple[Run, List[RecordedAction], PlayerProfile]:
    """Play ``run`` until it ends or reaches ``max_steps``, recording every action.

    Timestamps advance by ``tick_ms`` per action so potion cooldowns behave.
    The potion cooldown returned by REST is folded back into the profile.
    """
    actions: List[RecordedAction] = []
    while not run.is_ended:
        if run.state is RunStateType.EXPLORING and run.step >= max_steps:
            actions.append(RecordedAction("end", {"reason": EndReason.QUIT.value}, now))
            run = engine.end_run(run, EndReason.QUIT, now=now).run
            break
        rec = _choose(run, profile, engine, now)
        rec.at = now
        result = apply_action(engine, run, profile, rec)
        actions.append(rec)
        if "potion" in result.outcome:
            profile = _with_potion(profile, result.outcome["potion"])
        run = result.run
        now += tick_ms
    logger.info("Autoplay finished run %s: %s", run.run_id, fingerprint(run))
    return run, actions, profile


def _with_potion(profile: PlayerProfile, doc: Dict[str, Any]) -> PlayerProfile:
    return PlayerProfile(
        attributes=profile.attributes,
        equipment=profile.equipment,
        character_level=profile.character_level,
        potion=HealingPotion.from_document(doc),
    )


@dataclass
class ReplayReport:
    ok: bool
    actions_applied: int
    expected: Dict[str, Any]
    actual: Dict[str, Any]
    error: Optional[str] = None

    @property
    def mismatches(self) -> Dict[str, Tuple[Any, Any]]:
        keys = set(self.expected) | set(self.actual)
        return {
            k: (self.expected.get(k), self.actual.get(k))
            for k in sorted(keys)
            if self.expected.get(k) != self.actual.get(k)
        }


def replay(
    engine: RunEngine,
    initial: Run,
    profile: PlayerProfile,
    actions: List[RecordedAction],
) -> Run:
    """Re-apply ``actions`` from an initial snapshot and return the final run."""
    run = initial
    for rec in actions:
        result = apply_action(engine, run, profile, rec)
        if "potion" in result.outcome:
            profile = _with_potion(profile, result.outcome["potion"])
        run = result.run
    return run


def verify(
    engine: RunEngine,
    initial: Run,
    profile: PlayerProfile,
    actions: List[RecordedAction],
    expected: Run,
) -> ReplayReport:
    """Replay ``actions`` and compare the outcome with a stored snapshot."""
    want = fingerprint(expected)
    try:
        got_run = replay(engine, initial, profile, actions)
    except EngineError as exc:
        logger.warning("Replay of run %s failed: %s", initial.run_id, exc)
        return ReplayReport(False, 0, want, {}, error=str(exc))
    got = fingerprint(got_run)
    report = ReplayReport(got == want, len(actions), want, got)
    if not report.ok:
        logger.warning("Replay of run %s diverged: %s", initial.run_id, report.mismatches)
    return report

from __future__ import annotations

import functools
import logging
import math
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..combat.log import CombatLogEntry
from ..combat.resolver import CombatResolver
from ..combat.rewards import CombatRewardCalculator, CombatRewards
from ..config import EngineConfig, default_config
from ..core.modifiers import ModifierCatalog, ModifierTotals, default_modifier_catalog
from ..core.rng import new_seed
from ..core.stats import Stats, compute_stats
from ..encounters.enemy_registry import EnemyRegistry
from ..encounters.events import EventContext, draw_blessing_offer, resolve_event
from ..encounters.nodes import COMBAT_NODE_TYPES, NodeType, next_node, waves_from_payload
from ..errors import ExhaustedResource, InternalInvariant, InvalidChoice, InvalidTransition
from ..items.catalog import ItemRegistry, default_item_registry
from ..items.models import ItemInstance
from ..utils.math import now_ms
from .models import (
    ActionResult,
    CombatSummary,
    EndReason,
    EnemySummary,
    HealingPotion,
    PlayerProfile,
    RewardDelta,
    Run,
    RunReport,
    RunStateType,
)
from .state_machine import can_transition, ensure_state, ensure_transition

logger = logging.getLogger(__name__)

S = RunStateType


def _atomic(method: Callable[..., ActionResult]) -> Callable[..., ActionResult]:
    """Log broken invariants before they propagate. The input run is never touched."""

    @functools.wraps(method)
    def wrapper(self: "RunEngine", run: Run, *args: Any, **kwargs: Any) -> ActionResult:
        try:
            return method(self, run, *args, **kwargs)
        except InternalInvariant:
            logger.error(
                "Invariant broken in %s for run %s at rng_index %d",
                method.__name__,
                run.run_id,
                run.rng_index,
                exc_info=True,
            )
            raise

    return wrapper


class RunEngine:
    """Drives one run through its state machine, one player action at a time.

    Every action takes the current snapshot and returns an ActionResult with a
    new snapshot; on any error the caller keeps its snapshot unchanged.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        modifiers: Optional[ModifierCatalog] = None,
        enemies: Optional[EnemyRegistry] = None,
        items: Optional[ItemRegistry] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config or default_config()
        self.modifiers = modifiers if modifiers is not None else default_modifier_catalog()
        self.enemies = enemies or EnemyRegistry()
        self.items = items or default_item_registry()
        self.clock = clock
        self.resolver = CombatResolver(self.config.combat)
        self.rewards = CombatRewardCalculator(self.config.rewards)

    # ------------------------------------------------------------------ helpers

    def effective_stats(self, run: Run, profile: PlayerProfile) -> Stats:
        mods = self.modifiers.resolve(run.blessings + run.curses)
        return compute_stats(profile.attributes, profile.equipment, mods, self.config)

    def _totals(self, run: Run) -> ModifierTotals:
        return ModifierTotals.from_modifiers(self.modifiers.resolve(run.blessings + run.curses))

    def _now(self, now: Optional[int]) -> int:
        return self.clock() if now is None else now

    @staticmethod
    def _transition(run: Run, target: RunStateType) -> None:
        ensure_transition(run.state, target)
        logger.debug("Run %s: %s -> %s", run.run_id, run.state.value, target.value)
        run.state = target

    @staticmethod
    def _clear_node(run: Run) -> None:
        run.current_node_type = None
        run.current_node_data = None

    def _end(self, run: Run, reason: EndReason, now: int) -> None:
        self._transition(run, S.ENDED)
        run.end_reason = reason
        run.ended_at = now
        self._clear_node(run)
        logger.info("Run %s ended (%s) at step %d, score %d", run.run_id, reason.value, run.step, run.score)

    def _refresh_hp_max(self, run: Run, profile: PlayerProfile) -> None:
        """Recompute max HP after a modifier change; gains raise current HP too.

        A player already at 0 HP stays there: a max HP gain never revives.
        """
        new_max = self.effective_stats(run, profile).hp_max
        delta = new_max - run.player_hp_max
        hp = run.player_hp + max(0, delta) if run.player_hp > 0 else 0
        run.player_hp_max = new_max
        run.player_hp = min(hp, new_max)

    def _add_items(self, run: Run, items: List[ItemInstance]) -> List[ItemInstance]:
        space = max(0, self.config.rewards.run_inventory_max - len(run.run_inventory))
        kept = items[:space]
        if len(items) > len(kept):
            logger.info("Run %s inventory full; %d item(s) discarded", run.run_id, len(items) - len(kept))
        run.run_inventory.extend(kept)
        return kept

    def _award_blessing_points(self, run: Run, points: int) -> None:
        run.blessing_points += points
        threshold = self.config.rewards.blessing_offer_threshold
        if run.blessing_points >= threshold and not run.blessing_offer_pending:
            run.blessing_points -= threshold
            run.blessing_offer_pending = True
            logger.debug("Run %s earned a blessing offer", run.run_id)

    def _finish(
        self,
        before: Run,
        after: Run,
        now: int,
        *,
        log: Optional[List[CombatLogEntry]] = None,
        rewards: Optional[RewardDelta] = None,
        outcome: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        after.last_activity_at = now
        after.updated_at = now
        self._check_invariants(before, after)
        report = RunReport.from_run(after) if after.is_ended and not before.is_ended else None
        outcome = dict(outcome or {})
        if report is not None:
            outcome["report"] = report.to_dict()
        return ActionResult(
            run=after,
            log=log or [],
            rewards=rewards or RewardDelta(),
            rng_consumed=after.rng_index - before.rng_index,
            outcome=outcome,
            report=report,
        )

    def _check_invariants(self, before: Run, after: Run) -> None:
        problems = []
        if not (0 <= after.player_hp <= after.player_hp_max) or after.player_hp_max < 1:
            problems.append(f"hp {after.player_hp}/{after.player_hp_max}")
        if after.rng_index < before.rng_index or after.seed != before.seed:
            problems.append("rng cursor moved backwards")
        if after.step < before.step:
            problems.append("step decreased")
        for name in ("score", "gold_earned", "gems_earned", "enemies_killed"):
            if getattr(after, name) < getattr(before, name):
                problems.append(f"{name} decreased")
        if len(after.run_inventory) > self.config.rewards.run_inventory_max:
            problems.append("run inventory over capacity")
        if after.is_ended and (after.end_reason is None or after.ended_at is None):
            problems.append("ended without reason")
        if problems:
            raise InternalInvariant(f"Run {after.run_id}: " + ", ".join(problems))

    # ------------------------------------------------------------------ actions

    def create_run(
        self,
        character_id: str,
        account_id: str,
        profile: PlayerProfile,
        *,
        seed: Optional[str] = None,
        run_id: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Run:
        """A fresh INIT snapshot at full HP."""
        ts = self._now(now)
        hp_max = compute_stats(profile.attributes, profile.equipment, (), self.config).hp_max
        run = Run(
            run_id=run_id or uuid.uuid4().hex,
            character_id=character_id,
            account_id=account_id,
            seed=seed or new_seed(),
            started_at=ts,
            player_hp=hp_max,
            player_hp_max=hp_max,
            last_activity_at=ts,
            updated_at=ts,
        )
        logger.info("Created run %s for character %s (seed %s)", run.run_id, character_id, run.seed)
        return run

    @_atomic
    def start(self, run: Run, *, now: Optional[int] = None) -> ActionResult:
        ts = self._now(now)
        work = run.model_copy(deep=True)
        self._transition(work, S.EXPLORING)
        logger.info("Run %s started", work.run_id)
        return self._finish(run, work, ts)

    @_atomic
    def advance(self, run: Run, profile: PlayerProfile, *, now: Optional[int] = None) -> ActionResult:
        """Move to the next step and generate its node."""
        ts = self._now(now)
        ensure_state(run.state, S.EXPLORING, "advance")
        work = run.model_copy(deep=True)
        if work.player_hp <= 0:
            self._end(work, EndReason.DEAD, ts)
            return self._finish(run, work, ts, outcome={"fatal": True})

        step = work.step + 1
        node = next_node(step, work.cursor, work.steps_since_rest, registry=self.enemies, config=self.config)
        if node.node_type in COMBAT_NODE_TYPES:
            target = S.COMBAT
        elif node.node_type is NodeType.REST:
            target = S.REST
        else:
            target = S.EVENT
        self._transition(work, target)
        work.step = step
        work.rng_index = node.cursor.index
        work.steps_since_rest = node.steps_since_rest
        work.current_node_type = node.node_type
        work.current_node_data = node.payload
        logger.info("Run %s step %d: %s", work.run_id, step, node.node_type.value)
        outcome = {"step": step, "nodeType": node.node_type.value, "node": node.payload}
        return self._finish(run, work, ts, outcome=outcome)

    @_atomic
    def fight(self, run: Run, profile: PlayerProfile, *, now: Optional[int] = None) -> ActionResult:
        """Auto-resolve the combat node: RESOLUTION on victory, ENDED/DEAD on defeat."""
        ts = self._now(now)
        ensure_state(run.state, S.COMBAT, "fight")
        work = run.model_copy(deep=True)
        waves = waves_from_payload(work.current_node_data or {})
        stats = self.effective_stats(work, profile)
        if work.player_hp > stats.hp_max:
            raise InternalInvariant(f"Player HP {work.player_hp} exceeds derived max {stats.hp_max}")

        result = self.resolver.resolve(stats, work.player_hp, waves, work.cursor)
        cursor = result.cursor
        work.player_hp = result.player_hp_remaining
        work.enemies_killed += len(result.enemies_defeated)

        gained = CombatRewards()
        kept: List[ItemInstance] = []
        if result.victory:
            gained, cursor = self.rewards.compute(
                result.enemies_defeated,
                cursor,
                enemy_registry=self.enemies,
                item_registry=self.items,
                totals=self._totals(work),
                luck=profile.attributes.LUCK,
                inventory_size=len(work.run_inventory),
                now=ts,
            )
            work.score += gained.score
            work.gold_earned += gained.gold
            work.gems_earned += gained.gems
            kept = self._add_items(work, gained.items)
            self._award_blessing_points(work, gained.blessing_points)
        work.rng_index = cursor.index

        work.last_combat_summary = CombatSummary(
            victory=result.victory,
            round_count=result.round_count,
            player_hp_remaining=result.player_hp_remaining,
            score_gained=gained.score,
            gold_dropped=gained.gold,
            gems_dropped=gained.gems,
            items_dropped=kept,
            blessing_points_gained=gained.blessing_points,
            enemies=[EnemySummary(enemy_id=e.id, name=e.name, level=e.level) for wave in waves for e in wave],
            completed_at=ts,
        )
        if result.victory:
            self._transition(work, S.RESOLUTION)
            self._clear_node(work)
        else:
            self._end(work, EndReason.DEAD, ts)

        rewards = RewardDelta(
            score=gained.score,
            gold=gained.gold,
            gems=gained.gems,
            blessing_points=gained.blessing_points,
            items=kept,
        )
        outcome = {
            "victory": result.victory,
            "combat": work.last_combat_summary.to_document(),
            "itemsDiscarded": gained.items_discarded,
        }
        return self._finish(run, work, ts, log=result.log, rewards=rewards, outcome=outcome)

    @_atomic
    def resolve_event(
        self,
        run: Run,
        profile: PlayerProfile,
        choice_index: Optional[int] = None,
        *,
        now: Optional[int] = None,
    ) -> ActionResult:
        ts = self._now(now)
        ensure_state(run.state, S.EVENT, "resolve_event")
        work = run.model_copy(deep=True)
        totals = self._totals(work)
        ctx = EventContext(
            step=work.step,
            player_hp=work.player_hp,
            player_hp_max=work.player_hp_max,
            blessings=tuple(work.blessings),
            curses=tuple(work.curses),
            gold_multiplier=totals.gold_multiplier,
            now=ts,
        )
        try:
            result, cursor = resolve_event(
                work.current_node_data or {},
                work.cursor,
                ctx,
                choice_index=choice_index,
                catalog=self.modifiers,
                items=self.items,
                config=self.config,
            )
        except KeyError as exc:
            raise InvalidChoice(str(exc)) from exc
        work.rng_index = cursor.index

        work.player_hp = min(work.player_hp_max, max(0, work.player_hp + result.hp_healed - result.hp_lost))
        if result.blessing_granted:
            work.blessings.append(result.blessing_granted)
        if result.curse_applied:
            work.curses.append(result.curse_applied)
        if result.blessing_granted or result.curse_applied:
            self._refresh_hp_max(work, profile)
        work.gold_earned += result.gold_gained
        work.gems_earned += result.gems_gained
        kept = self._add_items(work, result.items_gained)

        self._transition(work, S.RESOLUTION)
        self._clear_node(work)
        rewards = RewardDelta(gold=result.gold_gained, gems=result.gems_gained, items=kept)
        return self._finish(run, work, ts, rewards=rewards, outcome={"event": result.to_dict()})

    @_atomic
    def rest(
        self,
        run: Run,
        profile: PlayerProfile,
        use_potion: bool = False,
        *,
        now: Optional[int] = None,
    ) -> ActionResult:
        """Rest at a REST node, optionally drinking the healing potion."""
        ts = self._now(now)
        ensure_state(run.state, S.REST, "rest")
        work = run.model_copy(deep=True)
        outcome: Dict[str, Any] = {}

        heal = math.floor(work.player_hp_max * self.config.nodes.rest_heal_percent)
        if use_potion:
            potion, potion_heal = self._use_potion(profile, work.player_hp_max, ts)
            heal += potion_heal
            outcome["potion"] = potion.to_document()
        healed = min(heal, work.player_hp_max - work.player_hp)
        work.player_hp += healed
        outcome["hpHealed"] = healed

        self._transition(work, S.RESOLUTION)
        self._clear_node(work)
        return self._finish(run, work, ts, outcome=outcome)

    def _use_potion(self, profile: PlayerProfile, hp_max: int, now: int) -> Tuple[HealingPotion, int]:
        pc = self.config.potion
        potion = profile.potion
        if profile.character_level < pc.unlock_level or potion is None:
            raise ExhaustedResource(f"Healing potion unlocks at character level {pc.unlock_level}")
        if potion.level > pc.max_level:
            raise ExhaustedResource(f"Healing potion level {potion.level} is above max level {pc.max_level}")
        if not potion.ready(now):
            raise ExhaustedResource(f"Healing potion on cooldown until {potion.cooldown_until}")
        heal = math.floor(hp_max * pc.heal_percent(potion.level))
        used = potion.model_copy(update={"cooldown_until": now + pc.cooldown_ms})
        return used, heal

    @_atomic
    def continue_run(
        self,
        run: Run,
        profile: PlayerProfile,
        end: bool = False,
        *,
        now: Optional[int] = None,
    ) -> ActionResult:
        """Leave RESOLUTION: quit, die of delayed damage, take a blessing offer or explore on."""
        ts = self._now(now)
        ensure_state(run.state, S.RESOLUTION, "continue_run")
        work = run.model_copy(deep=True)
        if end:
            self._end(work, EndReason.QUIT, ts)
            return self._finish(run, work, ts)
        if work.player_hp <= 0:
            self._end(work, EndReason.DEAD, ts)
            return self._finish(run, work, ts, outcome={"fatal": True})

        outcome: Dict[str, Any] = {}
        if work.blessing_offer_pending:
            work.blessing_offer_pending = False
            offer, cursor = draw_blessing_offer(
                work.cursor, work.blessings, self.modifiers, self.config.rewards.blessing_offer_size
            )
            work.rng_index = cursor.index
            if offer:
                self._transition(work, S.BLESSING_SELECT)
                work.current_node_data = {"offer": offer}
                outcome["offer"] = offer
                return self._finish(run, work, ts, outcome=outcome)
            logger.info("Run %s owns every blessing; offer skipped", work.run_id)
        self._transition(work, S.EXPLORING)
        return self._finish(run, work, ts, outcome=outcome)

    @_atomic
    def select_blessing(
        self,
        run: Run,
        profile: PlayerProfile,
        blessing_id: str,
        *,
        now: Optional[int] = None,
    ) -> ActionResult:
        ts = self._now(now)
        ensure_state(run.state, S.BLESSING_SELECT, "select_blessing")
        offer = (run.current_node_data or {}).get("offer", [])
        if blessing_id not in offer:
            raise InvalidChoice(f"Blessing '{blessing_id}' is not on offer: {offer}")
        work = run.model_copy(deep=True)
        work.blessings.append(blessing_id)
        self._refresh_hp_max(work, profile)
        self._transition(work, S.EXPLORING)
        self._clear_node(work)
        logger.info("Run %s took blessing %s", work.run_id, blessing_id)
        return self._finish(run, work, ts, outcome={"blessingGranted": blessing_id})

    @_atomic
    def end_run(self, run: Run, reason: EndReason = EndReason.QUIT, *, now: Optional[int] = None) -> ActionResult:
        ts = self._now(now)
        work = run.model_copy(deep=True)
        self._end(work, reason, ts)
        return self._finish(run, work, ts)

    @_atomic
    def mark_disconnected(self, run: Run, *, now: Optional[int] = None) -> ActionResult:
        ts = self._now(now)
        if run.is_ended:
            raise InvalidTransition(run.state, action="mark_disconnected")
        work = run.model_copy(deep=True)
        if work.disconnected_at is None:
            work.disconnected_at = ts
            logger.info("Run %s disconnected in %s", work.run_id, work.state.value)
        return self._finish(run, work, ts)

    @_atomic
    def reconnect(self, run: Run, *, now: Optional[int] = None) -> ActionResult:
        """Resume a disconnected run, or end it when the reconnect window has passed.

        The timeout only ends runs sitting in a state that may move to ENDED;
        elsewhere the run simply resumes.
        """
        ts = self._now(now)
        if run.is_ended:
            raise InvalidTransition(run.state, action="reconnect")
        work = run.model_copy(deep=True)
        away = ts - work.disconnected_at if work.disconnected_at is not None else 0
        work.disconnected_at = None
        if away > self.config.nodes.reconnect_window_ms and can_transition(work.state, S.ENDED):
            logger.info("Run %s reconnect after %dms exceeds window", work.run_id, away)
            self._end(work, EndReason.DISCONNECT, ts)
            return self._finish(run, work, ts, outcome={"expired": True})
        return self._finish(run, work, ts, outcome={"expired": False})

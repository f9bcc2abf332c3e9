from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..config import DifficultyConfig, EngineConfig, NodeConfig, default_config
from ..core.rng import RngCursor, draw_chance, draw_int, draw_weighted
from ..errors import InternalInvariant
from ..utils.math import clamp
from .difficulty import EliteKind, Enemy, scale_enemy
from .enemy_registry import EnemyRegistry
from .events import CHOICE_TEMPLATES, RANDOM_EVENT_TYPES, EventType

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    COMBAT = "COMBAT"
    ELITE = "ELITE"
    STRONG_ELITE = "STRONG_ELITE"
    EVENT = "EVENT"
    REST = "REST"
    CHOICE = "CHOICE"


# Weighted draw order for unforced steps; part of the replay contract.
DRAWN_NODE_TYPES = (NodeType.COMBAT, NodeType.EVENT, NodeType.CHOICE)

COMBAT_NODE_TYPES = frozenset({NodeType.COMBAT, NodeType.ELITE, NodeType.STRONG_ELITE})

def max_draws_per_node(dc: DifficultyConfig) -> int:
    # Node type draw + wave-2 decision + per wave (enemy-2 and enemy-3 decisions
    # plus one template pick per enemy). Event and choice nodes use two draws,
    # elite nodes one, forced rests none.
    return 2 + dc.wave_count_max * (2 + dc.enemy_count_max)


MAX_DRAWS_PER_NODE = max_draws_per_node(DifficultyConfig())


@dataclass
class GeneratedNode:
    node_type: NodeType
    payload: Dict[str, Any]
    cursor: RngCursor
    steps_since_rest: int
    enemies: List[List[Enemy]] = field(default_factory=list)


def step_probability(step: int, base: float, per_step: float, cap: float) -> float:
    """clamp(base + per_step * step, 0, cap)"""
    return clamp(base + per_step * step, 0.0, cap)


def elite_kind_for_step(step: int, config: Optional[NodeConfig] = None) -> EliteKind:
    """Strong elites take precedence when a step matches both cadences."""
    nc = config or default_config().nodes
    if step <= 0:
        return EliteKind.NONE
    if step % nc.strong_elite_interval == 0:
        return EliteKind.STRONG_ELITE
    if step % nc.elite_interval == 0:
        return EliteKind.ELITE
    return EliteKind.NONE


def is_rest_forced(step: int, steps_since_rest: int, config: Optional[NodeConfig] = None) -> bool:
    """True when no later step of the current rest window can host a REST.

    ``steps_since_rest`` counts the non-rest steps since the last rest (the run
    start counts as one), so ``step`` is the window's ``steps_since_rest + 1``-th
    step and the window ends ``rest_guaranteed_interval`` steps after the rest.
    """
    nc = config or default_config().nodes
    window_end = step + nc.rest_guaranteed_interval - 1 - steps_since_rest
    return all(
        elite_kind_for_step(t, nc) is not EliteKind.NONE for t in range(step + 1, window_end + 1)
    )


def _draw_wave(
    step: int,
    wave: int,
    cursor: RngCursor,
    registry: EnemyRegistry,
    cfg: EngineConfig,
) -> Tuple[List[Enemy], RngCursor]:
    dc = cfg.difficulty
    second, cursor = draw_chance(
        cursor, step_probability(step, dc.enemy_2_base_chance, dc.enemy_2_per_step, dc.enemy_2_cap)
    )
    third, cursor = draw_chance(
        cursor, step_probability(step, dc.enemy_3_base_chance, dc.enemy_3_per_step, dc.enemy_3_cap)
    )
    count = 1 + int(second) + int(second and third)
    count = min(count, dc.enemy_count_max)

    pool = registry.normal_pool
    enemies: List[Enemy] = []
    for n in range(count):
        idx, cursor = draw_int(cursor, len(pool))
        template = pool[idx]
        enemies.append(
            scale_enemy(template, step, EliteKind.NONE, enemy_id=f"{template.id}_{wave + 1}_{n + 1}", config=cfg)
        )
    return enemies, cursor


def _combat_payload(waves: List[List[Enemy]]) -> Dict[str, Any]:
    return {"waves": [[e.to_dict() for e in wave] for wave in waves]}


def next_node(
    step: int,
    cursor: RngCursor,
    steps_since_rest: int,
    *,
    registry: Optional[EnemyRegistry] = None,
    config: Optional[EngineConfig] = None,
) -> GeneratedNode:
    """Generate the node for ``step``.

    Priority: forced REST, then STRONG_ELITE/ELITE cadence, then one weighted
    draw among COMBAT/EVENT/CHOICE. Consumes at most MAX_DRAWS_PER_NODE draws.
    """
    cfg = config or default_config()
    nc = cfg.nodes
    dc = cfg.difficulty
    registry = registry or EnemyRegistry()
    if step < 1:
        raise InternalInvariant(f"Node steps start at 1, got {step}")
    if steps_since_rest < 0 or steps_since_rest >= nc.rest_guaranteed_interval:
        raise InternalInvariant(f"steps_since_rest out of range: {steps_since_rest}")

    elite = elite_kind_for_step(step, nc)
    if elite is EliteKind.NONE and is_rest_forced(step, steps_since_rest, nc):
        logger.debug("Step %d: REST forced after %d steps", step, steps_since_rest)
        return GeneratedNode(NodeType.REST, {}, cursor, 0)
    if elite is not EliteKind.NONE and steps_since_rest == nc.rest_guaranteed_interval - 1:
        raise InternalInvariant(f"Rest window closes on elite step {step}")

    start = cursor
    nxt = steps_since_rest + 1
    if elite is not EliteKind.NONE:
        pool = registry.elite_pool
        idx, cursor = draw_int(cursor, len(pool))
        template = pool[idx]
        enemy = scale_enemy(template, step, elite, enemy_id=f"{template.id}_1_1", config=cfg)
        node_type = NodeType.STRONG_ELITE if elite is EliteKind.STRONG_ELITE else NodeType.ELITE
        waves = [[enemy]]
        node = GeneratedNode(node_type, _combat_payload(waves), cursor, nxt, waves)
    else:
        weights = [nc.node_weights.get(t.value, 0) for t in DRAWN_NODE_TYPES]
        idx, cursor = draw_weighted(cursor, weights)
        node_type = DRAWN_NODE_TYPES[idx]
        if node_type is NodeType.COMBAT:
            add_wave, cursor = draw_chance(
                cursor, step_probability(step, dc.wave_2_base_chance, dc.wave_2_per_step, dc.wave_2_cap)
            )
            wave_count = min(1 + int(add_wave), dc.wave_count_max)
            waves = []
            for w in range(wave_count):
                wave, cursor = _draw_wave(step, w, cursor, registry, cfg)
                waves.append(wave)
            node = GeneratedNode(node_type, _combat_payload(waves), cursor, nxt, waves)
        elif node_type is NodeType.EVENT:
            weights = [nc.event_weights.get(t.value, 0) for t in RANDOM_EVENT_TYPES]
            eidx, cursor = draw_weighted(cursor, weights)
            node = GeneratedNode(node_type, {"eventType": RANDOM_EVENT_TYPES[eidx].value}, cursor, nxt)
        else:
            cidx, cursor = draw_int(cursor, len(CHOICE_TEMPLATES))
            choice = CHOICE_TEMPLATES[cidx]
            payload = {
                "eventType": EventType.CHOICE.value,
                "choiceId": choice.id,
                "description": choice.description,
                "options": [o.label for o in choice.options],
            }
            node = GeneratedNode(node_type, payload, cursor, nxt)

    used = cursor.consumed_since(start)
    limit = max_draws_per_node(dc)
    if used > limit:
        raise InternalInvariant(f"Node generation used {used} draws (max {limit})")
    logger.debug("Step %d: %s (%d draws)", step, node.node_type.value, used)
    return node


def waves_from_payload(payload: Dict[str, Any]) -> List[List[Enemy]]:
    return [[Enemy.from_dict(e) for e in wave] for wave in payload.get("waves", [])]

from __future__ import annotations

import dataclasses
import functools
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Dict, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "ROGUERUN_CONFIG"


@dataclass
class StatsConfig:
    """Attribute to stat conversion coefficients (level 1, no equipment)."""

    base_atk: float = 10
    base_def: float = 5
    base_hp: float = 100
    base_action_interval_sec: float = 3.0
    str_to_atk: float = 2.5
    con_to_def: float = 1.5
    con_to_hp: float = 20
    agi_to_action_speed: float = 0.02
    action_interval_min: float = 0.5
    action_interval_max: float = 5.0


@dataclass
class CombatConfig:
    base_crit_chance: float = 0.05
    crit_per_agi: float = 0.003
    crit_cap: float = 0.35
    crit_multiplier: float = 1.5
    base_dodge_chance: float = 0.03
    dodge_per_agi: float = 0.002
    dodge_cap: float = 0.25
    min_damage: int = 1


@dataclass
class NodeConfig:
    """Node sequencing knobs.

    - rest_guaranteed_interval: every window of this many consecutive steps holds a REST.
    - rest_heal_percent: share of max HP a REST node restores before any potion.
    - node_weights: weighted draw for steps that are not forced (REST/elite).
    - event_weights: weighted draw of the event type on EVENT nodes.
    """

    rest_guaranteed_interval: int = 4
    elite_interval: int = 5
    strong_elite_interval: int = 9
    rest_heal_percent: float = 0.25
    reconnect_window_ms: int = 15 * 60 * 1000
    node_weights: Dict[str, float] = field(
        default_factory=lambda: {"COMBAT": 55, "EVENT": 30, "CHOICE": 15}
    )
    event_weights: Dict[str, float] = field(
        default_factory=lambda: {"HEAL": 30, "BLESSING": 15, "CURSE": 15, "WHEEL": 40}
    )


@dataclass
class DifficultyConfig:
    enemy_level_step_divisor: int = 2
    hp_mult_per_level: float = 0.08
    atk_mult_per_level: float = 0.07
    def_mult_per_level: float = 0.05
    elite_hp_mult: float = 1.8
    elite_atk_mult: float = 1.6
    elite_def_mult: float = 1.3
    strong_elite_hp_mult: float = 2.6
    strong_elite_atk_mult: float = 2.1
    strong_elite_def_mult: float = 1.6
    wave_count_max: int = 2
    enemy_count_max: int = 3
    # probability = clamp(base + per_step * step, 0, cap)
    wave_2_base_chance: float = 0.10
    wave_2_per_step: float = 0.01
    wave_2_cap: float = 0.60
    enemy_2_base_chance: float = 0.15
    enemy_2_per_step: float = 0.01
    enemy_2_cap: float = 0.70
    enemy_3_base_chance: float = 0.05
    enemy_3_per_step: float = 0.006
    enemy_3_cap: float = 0.45


@dataclass
class RewardConfig:
    score_per_enemy_level: int = 10
    gold_per_enemy_level: float = 0.10
    elite_score_mult: float = 2.0
    strong_elite_score_mult: float = 3.0
    elite_gold_mult: float = 2.0
    strong_elite_gold_mult: float = 3.0
    elite_gems: int = 1
    strong_elite_gems: int = 3
    normal_blessing_points: int = 1
    elite_blessing_points: int = 2
    strong_elite_blessing_points: int = 3
    blessing_offer_threshold: int = 3
    blessing_offer_size: int = 3
    luck_drop_bonus: float = 0.01
    run_inventory_max: int = 50


@dataclass
class EventConfig:
    heal_percent: float = 0.30
    wheel_gold_base: int = 20
    wheel_gold_per_step: int = 2
    wheel_gems: int = 1
    wheel_weights: Dict[str, float] = field(
        default_factory=lambda: {"GOLD": 50, "GEMS": 15, "ITEM": 20, "NOTHING": 15}
    )


@dataclass
class PotionConfig:
    max_level: int = 15
    unlock_level: int = 5
    cooldown_ms: int = 30 * 60 * 1000
    base_heal_percent: float = 0.20
    heal_percent_per_level: float = 0.02
    max_heal_percent: float = 0.50

    def heal_percent(self, level: int) -> float:
        return min(self.base_heal_percent + self.heal_percent_per_level * (level - 1), self.max_heal_percent)


@dataclass
class EngineConfig:
    stats: StatsConfig = field(default_factory=StatsConfig)
    combat: CombatConfig = field(default_factory=CombatConfig)
    nodes: NodeConfig = field(default_factory=NodeConfig)
    difficulty: DifficultyConfig = field(default_factory=DifficultyConfig)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    events: EventConfig = field(default_factory=EventConfig)
    potion: PotionConfig = field(default_factory=PotionConfig)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def _from_dict(cls, data: dict) -> "EngineConfig":
        sections = {f.name: f.default_factory for f in dataclasses.fields(cls)}
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigError(f"Unknown config sections: {sorted(unknown)}")
        kwargs = {}
        for name, factory in sections.items():
            try:
                kwargs[name] = factory(**(data.get(name) or {}))
            except TypeError as exc:
                raise ConfigError(f"Invalid '{name}' config section: {exc}") from exc
        return cls(**kwargs)

    @classmethod
    def load(cls, user_path: Optional[Path] = None, *, use_env: bool = True) -> "EngineConfig":
        """Load config from the packaged defaults and an optional user override file.

        When user_path is None and use_env is set, the ROGUERUN_CONFIG environment
        variable is consulted.
        """
        try:
            with resources.files("roguerun.data").joinpath("engine.yaml").open("r", encoding="utf-8") as f:
                default_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Default engine config not found; falling back to dataclass defaults.")
            default_data = dataclasses.asdict(EngineConfig())

        if user_path is None and use_env and os.getenv(ENV_CONFIG_PATH):
            user_path = Path(os.environ[ENV_CONFIG_PATH])

        user_data = {}
        if user_path is not None:
            if not user_path.exists():
                raise ConfigError(f"Config file not found: {user_path}")
            try:
                user_data = cls._load_yaml(user_path)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {user_path}: {exc}") from exc
            logger.info("Loaded engine config overrides from %s", user_path)

        return cls._from_dict(cls._deep_merge(default_data, user_data))


@functools.lru_cache(maxsize=1)
def default_config() -> EngineConfig:
    """Packaged defaults without user overrides; shared, treat as read-only."""
    return EngineConfig.load(use_env=False)

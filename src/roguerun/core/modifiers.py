from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigError

logger = logging.getLogger(__name__)

FLAT_STAT_KEYS = ("ATK", "DEF", "HP_MAX", "action_interval_sec", "crit_chance", "dodge_chance")
MULTIPLIER_STAT_KEYS = ("ATK", "DEF", "HP_MAX")


class RunModifier(BaseModel):
    """Static catalog entry for a blessing or curse.

    Never mutated; runs reference modifiers by id only.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable modifier id")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="Player-facing description")
    is_blessing: bool = Field(..., description="True for blessings, False for curses")
    stat_deltas: Dict[str, float] = Field(default_factory=dict, description="Flat stat deltas")
    stat_multipliers: Dict[str, float] = Field(default_factory=dict, description="Multiplicative stat factors")
    drop_rate_multiplier: float = Field(1.0, gt=0)
    gold_multiplier: float = Field(1.0, gt=0)
    other_effects: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("stat_deltas")
    @classmethod
    def known_delta_keys(cls, v: Dict[str, float]) -> Dict[str, float]:
        unknown = set(v) - set(FLAT_STAT_KEYS)
        if unknown:
            raise ValueError(f"Unknown stat delta keys: {sorted(unknown)}")
        return dict(v)

    @field_validator("stat_multipliers")
    @classmethod
    def known_multiplier_keys(cls, v: Dict[str, float]) -> Dict[str, float]:
        unknown = set(v) - set(MULTIPLIER_STAT_KEYS)
        if unknown:
            raise ValueError(f"Unknown stat multiplier keys: {sorted(unknown)}")
        if any(m <= 0 for m in v.values()):
            raise ValueError("Stat multipliers must be positive")
        return dict(v)


@dataclass
class ModifierTotals:
    """Aggregate of several run modifiers: deltas add, multipliers multiply."""

    stat_deltas: Dict[str, float] = field(default_factory=dict)
    stat_multipliers: Dict[str, float] = field(default_factory=dict)
    drop_rate_multiplier: float = 1.0
    gold_multiplier: float = 1.0

    def delta(self, key: str) -> float:
        return self.stat_deltas.get(key, 0.0)

    def multiplier(self, key: str) -> float:
        return self.stat_multipliers.get(key, 1.0)

    @classmethod
    def from_modifiers(cls, modifiers: Iterable[RunModifier]) -> "ModifierTotals":
        totals = cls()
        # Catalog order is irrelevant: sums and products commute
        for m in modifiers:
            for k, v in m.stat_deltas.items():
                totals.stat_deltas[k] = totals.stat_deltas.get(k, 0.0) + v
            for k, v in m.stat_multipliers.items():
                totals.stat_multipliers[k] = totals.stat_multipliers.get(k, 1.0) * v
            totals.drop_rate_multiplier *= m.drop_rate_multiplier
            totals.gold_multiplier *= m.gold_multiplier
        logger.debug("Aggregated modifiers => %s", totals)
        return totals


class ModifierCatalog:
    """In-memory catalog of known run modifiers, keyed by id."""

    def __init__(self, modifiers: Iterable[RunModifier]) -> None:
        self._modifiers: Dict[str, RunModifier] = {}
        for m in modifiers:
            if m.id in self._modifiers:
                raise ConfigError(f"Duplicate modifier id: {m.id}")
            self._modifiers[m.id] = m

    def get(self, modifier_id: str) -> RunModifier:
        try:
            return self._modifiers[modifier_id]
        except KeyError as e:
            raise KeyError(f"Unknown modifier id: {modifier_id}") from e

    def has(self, modifier_id: str) -> bool:
        return modifier_id in self._modifiers

    def resolve(self, modifier_ids: Iterable[str]) -> List[RunModifier]:
        return [self.get(mid) for mid in modifier_ids]

    def blessings(self) -> List[RunModifier]:
        return [m for m in self._modifiers.values() if m.is_blessing]

    def curses(self) -> List[RunModifier]:
        return [m for m in self._modifiers.values() if not m.is_blessing]

    def __len__(self) -> int:
        return len(self._modifiers)


def load_modifier_catalog(path: Optional[Path] = None) -> ModifierCatalog:
    """Load the modifier catalog from YAML.

    If path is None, loads the packaged resource roguerun/data/modifiers.yaml.
    Schema: {"modifiers": [{"id": ..., "name": ..., "is_blessing": ..., ...}, ...]}
    """
    if path is None:
        text = resources.files("roguerun.data").joinpath("modifiers.yaml").read_text(encoding="utf-8")
        logger.debug("Loaded embedded modifier catalog resource")
    else:
        text = Path(path).read_text(encoding="utf-8")
        logger.debug("Loaded modifier catalog from path: %s", path)

    raw = yaml.safe_load(text) or {}
    entries = raw.get("modifiers")
    if not isinstance(entries, list) or not entries:
        raise ConfigError("'modifiers' must be a non-empty list")
    try:
        catalog = ModifierCatalog(RunModifier(**entry) for entry in entries)
    except ValidationError as exc:
        raise ConfigError(f"Invalid modifier catalog: {exc}") from exc
    logger.info(
        "Modifier catalog: %d blessings, %d curses", len(catalog.blessings()), len(catalog.curses())
    )
    return catalog


@functools.lru_cache(maxsize=1)
def default_modifier_catalog() -> ModifierCatalog:
    return load_modifier_catalog()

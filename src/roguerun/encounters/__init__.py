from .difficulty import EliteKind, Enemy, enemy_level, scale_enemy
from .enemy_registry import EnemyRegistry, EnemyTemplate
from .events import EventOutcome, EventType, draw_blessing_offer, resolve_event
from .nodes import MAX_DRAWS_PER_NODE, GeneratedNode, NodeType, next_node

__all__ = [
    "EliteKind",
    "Enemy",
    "EnemyRegistry",
    "EnemyTemplate",
    "EventOutcome",
    "EventType",
    "GeneratedNode",
    "MAX_DRAWS_PER_NODE",
    "NodeType",
    "draw_blessing_offer",
    "enemy_level",
    "next_node",
    "resolve_event",
    "scale_enemy",
]

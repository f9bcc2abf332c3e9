from __future__ import annotations

import pytest

from roguerun.core.modifiers import default_modifier_catalog
from roguerun.core.rng import RngCursor
from roguerun.encounters.events import (
    CHOICE_TEMPLATES,
    WHEEL_SEGMENTS,
    EventContext,
    EventType,
    draw_blessing_offer,
    resolve_event,
)
from roguerun.encounters import events
from roguerun.errors import InternalInvariant, InvalidChoice
from roguerun.items.catalog import default_item_registry

CATALOG = default_modifier_catalog()
ITEMS = default_item_registry()


def _resolve(payload, ctx, cursor=None, **kw):
    return resolve_event(payload, cursor or RngCursor("ev"), ctx, catalog=CATALOG, items=ITEMS, **kw)


def test_heal_is_capped_by_missing_hp():
    out, c = _resolve({"eventType": "HEAL"}, EventContext(step=3, player_hp=50, player_hp_max=100))
    assert out.hp_healed == 30
    assert c.index == 0
    out, _ = _resolve({"eventType": "HEAL"}, EventContext(step=3, player_hp=90, player_hp_max=100))
    assert out.hp_healed == 10


def test_blessing_grants_unowned():
    owned = [b.id for b in CATALOG.blessings()][:-1]
    out, c = _resolve({"eventType": "BLESSING"}, EventContext(1, 10, 10, blessings=owned))
    assert out.blessing_granted == CATALOG.blessings()[-1].id
    assert c.index == 1


def test_blessing_with_everything_owned_pays_gold():
    owned = [b.id for b in CATALOG.blessings()]
    out, c = _resolve({"eventType": "BLESSING"}, EventContext(1, 10, 10, blessings=owned))
    assert out.blessing_granted is None
    assert out.gold_gained == 20
    assert c.index == 0


def test_curse_applies_catalog_curse():
    out, _ = _resolve({"eventType": "CURSE"}, EventContext(1, 10, 10))
    assert out.curse_applied in {m.id for m in CATALOG.curses()}
    assert out.to_dict()["curseApplied"] == out.curse_applied


def test_wheel_outcomes():
    cursor = RngCursor("wheel")
    seen = set()
    for i in range(60):
        out, nxt = _resolve({"eventType": "WHEEL"}, EventContext(4, 10, 10, now=i), cursor)
        assert 1 <= nxt.consumed_since(cursor) <= 6
        cursor = nxt
        seg = out.description.rsplit(" ", 1)[-1].rstrip(".")
        assert seg in WHEEL_SEGMENTS
        seen.add(seg)
        if seg == "GOLD":
            assert out.gold_gained == 20 + 2 * 4
        if seg == "ITEM":
            assert len(out.items_gained) == 1
    assert {"GOLD", "ITEM"} <= seen


def test_choice_requires_valid_index():
    tpl = CHOICE_TEMPLATES[0]
    payload = {"eventType": "CHOICE", "choiceId": tpl.id}
    ctx = EventContext(2, 100, 100)
    with pytest.raises(InvalidChoice):
        _resolve(payload, ctx)
    with pytest.raises(InvalidChoice):
        _resolve(payload, ctx, choice_index=len(tpl.options))
    with pytest.raises(InvalidChoice):
        _resolve({"eventType": "HEAL"}, ctx, choice_index=0)


def test_blood_altar_costs_hp_for_a_blessing():
    payload = {"eventType": "CHOICE", "choiceId": "blood_altar"}
    out, c = _resolve(payload, EventContext(2, 100, 100), choice_index=0)
    assert out.event_type is EventType.CHOICE
    assert out.hp_lost == 25
    assert out.blessing_granted is not None
    assert c.index == 1
    walk, c = _resolve(payload, EventContext(2, 100, 100), choice_index=1)
    assert walk.hp_lost == 0 and walk.blessing_granted is None
    assert c.index == 0


def test_choice_hp_cost_cannot_exceed_current_hp():
    payload = {"eventType": "CHOICE", "choiceId": "blood_altar"}
    out, _ = _resolve(payload, EventContext(2, 10, 100), choice_index=0)
    assert out.hp_lost == 10


def test_blessing_offer_is_distinct_and_unowned():
    offer, c = draw_blessing_offer(RngCursor("offer"), ["vigor"], CATALOG, 3)
    assert len(offer) == 3 == len(set(offer))
    assert "vigor" not in offer
    assert c.index == 3

    owned = [b.id for b in CATALOG.blessings()][1:]
    offer, c = draw_blessing_offer(RngCursor("offer"), owned, CATALOG, 3)
    assert offer == [CATALOG.blessings()[0].id]
    assert c.index == 1


def test_event_draw_budget_is_enforced(monkeypatch):
    # One draw for the wheel segment is over a zero budget
    monkeypatch.setattr(events, "MAX_DRAWS_PER_EVENT", 0)
    with pytest.raises(InternalInvariant, match="draws"):
        _resolve({"eventType": "WHEEL"}, EventContext(step=1, player_hp=10, player_hp_max=10))
    out, c = _resolve({"eventType": "HEAL"}, EventContext(step=1, player_hp=5, player_hp_max=10))
    assert c.index == 0 and out.hp_healed == 3

from __future__ import annotations

import pytest
from pydantic import ValidationError

from roguerun.run.models import CombatSummary, EndReason, HealingPotion, Run, RunReport, RunStateType


def _doc(**over):
    doc = {
        "runId": "r",
        "characterId": "c",
        "accountId": "a",
        "seed": "s",
        "rngIndex": 3,
        "state": "EXPLORING",
        "step": 2,
        "startedAt": 0,
        "playerHp": 80,
        "playerHpMax": 120,
        "blessings": ["vigor"],
        "curses": [],
        "blessingPoints": 1,
        "runInventory": [],
        "score": 40,
        "goldEarned": 9,
        "gemsEarned": 0,
        "lastActivityAt": 5,
        "updatedAt": 5,
    }
    doc.update(over)
    return doc


def test_document_round_trip():
    run = Run.from_document(_doc())
    assert run.state is RunStateType.EXPLORING
    assert run.cursor.index == 3
    again = Run.from_document(run.to_document())
    assert again == run
    assert "rngIndex" in run.to_document()


@pytest.mark.parametrize(
    "over",
    [
        {"playerHp": 121},
        {"playerHp": -1},
        {"playerHpMax": 0},
        {"rngIndex": -1},
        {"score": -5},
        {"blessings": ["vigor", "vigor"]},
        {"state": "ENDED"},
        {"unexpected": True},
        {"seed": ""},
    ],
)
def test_invalid_documents_rejected(over):
    with pytest.raises(ValidationError):
        Run.from_document(_doc(**over))


def test_document_accepts_any_inventory_size():
    item = {
        "itemId": "i",
        "templateId": "sword_basic",
        "type": "EQUIPMENT",
        "rarity": "N",
        "stats": {"ATK": 5},
        "source": "DROP",
        "createdAt": 0,
    }
    # The cap is a config value, checked by the engine
    run = Run.from_document(_doc(runInventory=[dict(item, itemId=f"i{n}") for n in range(51)]))
    assert len(run.run_inventory) == 51


def test_combat_summary_document():
    summary = CombatSummary(
        victory=True,
        round_count=7,
        player_hp_remaining=30,
        enemies=[{"enemyId": "slime_1_1", "name": "Slime", "level": 1}],
        completed_at=99,
    )
    doc = summary.to_document()
    assert doc["roundCount"] == 7
    assert doc["enemies"][0]["enemyId"] == "slime_1_1"


def test_potion_readiness():
    assert HealingPotion().ready(0)
    assert not HealingPotion(cooldown_until=10).ready(9)
    assert HealingPotion(cooldown_until=10).ready(10)
    with pytest.raises(ValidationError):
        HealingPotion(level=0)


def test_report_needs_ended_run():
    run = Run.from_document(_doc())
    with pytest.raises(ValueError):
        RunReport.from_run(run)
    ended = Run.from_document(_doc(state="ENDED", endReason="QUIT", endedAt=50))
    report = RunReport.from_run(ended)
    assert report.end_reason is EndReason.QUIT
    assert report.to_dict()["finalScore"] == 40

from __future__ import annotations

import json

from roguerun.cli import main, profile_from_dict, profile_to_dict
from roguerun.core.stats import Attributes
from roguerun.run.models import HealingPotion, PlayerProfile


def test_stats_command(capsys):
    assert main(["stats"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["ATK"] == 12
    assert out["HP_MAX"] == 120


def test_stats_with_modifier_and_unknown(capsys):
    assert main(["stats", "--modifier", "vigor"]) == 0
    assert json.loads(capsys.readouterr().out)["HP_MAX"] == 150
    assert main(["stats", "--modifier", "nope"]) == 2


def test_simulate_then_replay(tmp_path, capsys):
    record = tmp_path / "run.json"
    assert main(["simulate", "--seed", "cli-seed", "--steps", "6", "--str", "15", "--con", "15",
                 "--record", str(record)]) == 0
    assert "seed=cli-seed" in capsys.readouterr().out

    assert main(["replay", str(record)]) == 0
    assert capsys.readouterr().out.startswith("OK")

    data = json.loads(record.read_text(encoding="utf-8"))
    data["final"]["score"] += 1
    record.write_text(json.dumps(data), encoding="utf-8")
    assert main(["replay", str(record)]) == 1
    assert "MISMATCH score" in capsys.readouterr().out


def test_profile_dict_round_trip():
    p = PlayerProfile(attributes=Attributes(STR=3, LUCK=2), character_level=7, potion=HealingPotion(level=2))
    assert profile_from_dict(profile_to_dict(p)) == p

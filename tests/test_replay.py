from __future__ import annotations

import pytest

from roguerun.replay import RecordedAction, autoplay, fingerprint, replay, verify


def test_recorded_action_dict_round_trip():
    rec = RecordedAction("rest", {"usePotion": True}, at=77)
    assert rec.to_dict() == {"action": "rest", "usePotion": True, "at": 77}
    assert RecordedAction.from_dict(rec.to_dict()) == rec
    with pytest.raises(ValueError):
        RecordedAction.from_dict({"usePotion": True})


def test_autoplay_ends_run(engine, strong_profile):
    run = engine.create_run("c", "a", strong_profile, seed="auto", run_id="r", now=0)
    final, actions, _ = autoplay(engine, run, strong_profile, max_steps=8)
    assert final.is_ended
    assert actions[0].action == "start"
    assert final.step <= 8


def test_verify_accepts_faithful_replay(engine, strong_profile):
    initial = engine.create_run("c", "a", strong_profile, seed="verify", run_id="r", now=0)
    final, actions, _ = autoplay(engine, initial, strong_profile, max_steps=12)
    report = verify(engine, initial, strong_profile, actions, final)
    assert report.ok
    assert report.mismatches == {}
    assert fingerprint(replay(engine, initial, strong_profile, actions)) == fingerprint(final)


def test_verify_flags_tampering(engine, strong_profile):
    initial = engine.create_run("c", "a", strong_profile, seed="verify", run_id="r", now=0)
    final, actions, _ = autoplay(engine, initial, strong_profile, max_steps=12)
    forged = final.model_copy(update={"score": final.score + 1000})
    report = verify(engine, initial, strong_profile, actions, forged)
    assert not report.ok
    assert "score" in report.mismatches


def test_verify_reports_engine_errors(engine, strong_profile):
    initial = engine.create_run("c", "a", strong_profile, seed="verify", run_id="r", now=0)
    report = verify(engine, initial, strong_profile, [RecordedAction("advance")], initial)
    assert not report.ok
    assert report.error

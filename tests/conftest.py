import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from roguerun.core.stats import Attributes  # noqa: E402
from roguerun.run.engine import RunEngine  # noqa: E402
from roguerun.run.models import PlayerProfile  # noqa: E402


@pytest.fixture
def engine() -> RunEngine:
    return RunEngine(clock=lambda: 1_000_000)


@pytest.fixture
def profile() -> PlayerProfile:
    return PlayerProfile()


@pytest.fixture
def strong_profile() -> PlayerProfile:
    # Tough enough to survive the early elites reliably
    return PlayerProfile(attributes=Attributes(STR=20, AGI=10, CON=20, LUCK=5))

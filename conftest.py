import sys
from pathlib import Path

import pytest

# Ensure 'src' directory is on sys.path for tests
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / 'src'
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture
def alice(tmp_path):
    from pysettle.scope import Identity

    home = tmp_path / "home" / "alice"
    home.mkdir(parents=True)
    return Identity("alice", home, uid=501, gid=20)


@pytest.fixture
def bob(tmp_path):
    from pysettle.scope import Identity

    home = tmp_path / "home" / "bob"
    home.mkdir(parents=True)
    return Identity("bob", home, uid=502, gid=20)

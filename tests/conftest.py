"""
Shared pytest fixtures for draw sheet tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from drawsheet.bracket import build_bracket
from drawsheet.state import TournamentState


@pytest.fixture
def four_players():
    return ["Alice", "Bob", "Carol", "Dave"]


@pytest.fixture
def five_players():
    return ["A", "B", "C", "D", "E"]


@pytest.fixture
def bracket4(four_players):
    """Two semifinals and a final, no byes."""
    return build_bracket(four_players, 'as-entered')


@pytest.fixture
def bracket5(five_players):
    """Eight-slot bracket with three byes."""
    return build_bracket(five_players, 'as-entered')


@pytest.fixture
def state4(four_players):
    """Tournament state with four players, best of three."""
    return TournamentState().generate_bracket(four_players, 'as-entered', rounds_per_match=3)


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the web app at an empty temporary data directory."""
    import app as app_module
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return data_dir


@pytest.fixture
def client(temp_data_dir):
    """Create a test client backed by a temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client

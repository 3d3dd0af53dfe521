import pytest

from tsk.cli import Session
from tsk.config import Config
from tsk.manager import TaskManager
from tsk.storage import Database


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database file per test"""
    database = Database.from_path(tmp_path / "tsk.db")
    yield database
    database.dispose()


@pytest.fixture
def manager(db):
    return TaskManager(db)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep real config, state dirs and TSK_* variables out of tests"""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    for variable in ("TSK_NUM_TOP_TASKS", "TSK_DATABASE", "TSK_LOG_LEVEL"):
        monkeypatch.delenv(variable, raising=False)


class ScriptedPrompt:
    """Stands in for input(); replays lines and records prefills"""

    def __init__(self, lines):
        self.lines = list(lines)
        self.prefills = []

    def __call__(self, text, prefill=""):
        self.prefills.append(prefill)
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


@pytest.fixture
def scripted():
    return ScriptedPrompt


@pytest.fixture
def session(manager):
    return Session(manager, Config(), prompt=ScriptedPrompt([]))

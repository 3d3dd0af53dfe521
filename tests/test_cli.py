import json

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from tsk.cli import Session, execute, main, repl, run_command
from tsk.commands import parse
from tsk.config import Config
from tsk.manager import TaskManager
from tsk.schema import TaskStatus
from tsk.storage import Database, TaskStore


def run(session, line):
    return execute(session, parse(line))


def break_status(db, task_id):
    """Store a status code no TaskStatus maps to"""
    with db.engine.begin() as conn:
        conn.execute(
            text("INSERT INTO task_status (task_id, status, updated) VALUES (:id, 9, '2999-01-01 00:00:00')"),
            {"id": task_id},
        )


def fail_writes(monkeypatch):
    def append_status(self, task_id, status):
        raise OperationalError("INSERT INTO task_status", {}, Exception("disk I/O error"))
    monkeypatch.setattr(TaskStore, "append_status", append_status)


# ============ dispatch ============

def test_push_then_complete_without_argument(session):
    run(session, "push A")
    run(session, "push B")
    run(session, "complete")
    assert [t.title for t in session.manager.get_top_n(5)] == ["A"]


def test_complete_by_stack_position(session):
    run(session, "p first")
    run(session, "p second")
    run(session, "c 1")
    assert [t.title for t in session.manager.get_top_n(5)] == ["second"]


def test_start_and_todo_apply_to_top(session):
    task_id = session.manager.push("work")
    run(session, "s")
    assert session.manager.get_task(task_id).status == TaskStatus.IN_PROGRESS
    run(session, "t")
    assert session.manager.get_task(task_id).status == TaskStatus.TODO


def test_swap_and_reprioritize(session):
    z = session.manager.push("Z")
    y = session.manager.push("Y")
    x = session.manager.push("X")
    run(session, "swap")
    assert session.manager.chain_ids() == [y, x, z]
    run(session, f"rep tsk-{z}")
    assert session.manager.chain_ids() == [z, y, x]


def test_drop_by_absolute_id(session):
    a = session.manager.push("a")
    b = session.manager.push("b")
    message = run(session, f"drop tsk-{a}")
    assert f"tsk-{a}" in message
    assert session.manager.chain_ids() == [b]


def test_edit_prompts_for_content(manager, scripted):
    session = Session(manager, Config(), prompt=scripted(["some notes", "https://example.com"]))
    task_id = manager.push("write report")
    run(session, "e")
    content = manager.get_task(task_id).content
    assert content.body == "some notes"
    assert content.link.startswith("https://example.com")


def test_make_creates_tag(session):
    assert "home" in run(session, "make home")
    assert "already exists" in run(session, "m HOME")


def test_errors_are_reported_not_raised(session, capsys):
    run_command(session, parse("complete"))
    out = capsys.readouterr().out
    assert "Task not found" in out


def test_storage_error_is_reported_and_session_continues(session, capsys, monkeypatch):
    a = session.manager.push("a")
    with monkeypatch.context() as m:
        fail_writes(m)
        run_command(session, parse("push b"))
    out = capsys.readouterr().out
    assert "Storage error, nothing was changed" in out
    assert session.manager.chain_ids() == [a]

    run_command(session, parse("push b"))
    assert "Pushed" in capsys.readouterr().out
    assert len(session.manager.chain_ids()) == 2


def test_internal_error_is_reported_and_session_continues(session, db, capsys):
    a = session.manager.push("a")
    break_status(db, a)
    run_command(session, parse("e"))
    out = capsys.readouterr().out
    assert "Internal error (please report)" in out

    run_command(session, parse("push b"))
    assert "Pushed" in capsys.readouterr().out
    assert session.manager.chain_ids()[1] == a


# ============ repl ============

def test_repl_refills_rejected_line(manager, scripted, capsys):
    prompt = scripted(["push groceries", "quit now", "quit"])
    repl(Session(manager, Config(), prompt=prompt))
    out = capsys.readouterr().out
    assert "Invalid argument" in out
    assert "Goodbye." in out
    assert prompt.prefills == ["", "", "quit now"]
    assert [t.title for t in manager.get_top_n(5)] == ["groceries"]


def test_repl_unknown_command(manager, scripted, capsys):
    repl(Session(manager, Config(), prompt=scripted(["zzz"])))
    out = capsys.readouterr().out
    assert "Unknown command" in out


def test_repl_survives_oversized_task_id(manager, scripted, capsys):
    huge = "rep tsk-99999999999999999999999"
    prompt = scripted([huge, "quit"])
    repl(Session(manager, Config(), prompt=prompt))
    out = capsys.readouterr().out
    assert "too large" in out
    assert "Goodbye." in out
    assert prompt.prefills == ["", huge]


def test_repl_reports_corrupt_list_and_recovers(manager, db, scripted, capsys):
    a = manager.push("a")
    break_status(db, a)
    repl(Session(manager, Config(), prompt=scripted([f"drop tsk-{a}", "quit"])))
    out = capsys.readouterr().out
    assert "Internal error (please report)" in out
    assert "Dropped" in out
    assert "Goodbye." in out


# ============ main ============

def test_main_one_shot(tmp_path, capsys):
    db_path = tmp_path / "cli.db"
    assert main(["--db", str(db_path), "push", "buy", "milk"]) == 0
    assert "Pushed" in capsys.readouterr().out
    assert main(["--db", str(db_path), "--json"]) == 0
    out = capsys.readouterr().out
    listing = json.loads(out)
    assert listing[0]["title"] == "buy milk"
    assert listing[0]["status"] == "todo"


def test_main_parse_failure(tmp_path, capsys):
    assert main(["--db", str(tmp_path / "cli.db"), "zzz"]) == 1
    assert "Unknown command" in capsys.readouterr().out


def test_main_bad_config(tmp_path, capsys):
    config_file = tmp_path / "config.toml"
    config_file.write_text("num_top_tasks = 0\n")
    assert main(["--config", str(config_file), "--db", str(tmp_path / "cli.db"), "--json"]) == 2


def test_main_reports_storage_error(tmp_path, capsys, monkeypatch):
    fail_writes(monkeypatch)
    assert main(["--db", str(tmp_path / "cli.db"), "push", "buy", "milk"]) == 1
    out = capsys.readouterr().out
    assert "Storage error, nothing was changed" in out


def test_main_reports_internal_error(tmp_path, capsys):
    db_path = tmp_path / "cli.db"
    assert main(["--db", str(db_path), "push", "buy", "milk"]) == 0
    db = Database.from_path(db_path)
    break_status(db, TaskManager(db).top_task_id())
    db.dispose()
    capsys.readouterr()

    assert main(["--db", str(db_path), "--json"]) == 1
    assert "Internal error (please report)" in capsys.readouterr().out

import pytest

from tsk.commands import (
    AbsoluteId, Complete, Drop, Edit, GRAMMAR, Make, NRot, ParseErrorKind,
    ParseFailure, Push, Quit, Reprioritize, Rot, StackPosition, Start, Swap,
    Todo, lookup, parse,
)


# ============ keywords ============

@pytest.mark.parametrize("text, expected", [
    ("push buy milk", Push),
    ("p buy milk", Push),
    ("make home", Make),
    ("m home", Make),
    ("edit", Edit),
    ("e", Edit),
    ("drop", Drop),
    ("d", Drop),
    ("complete", Complete),
    ("c", Complete),
    ("start", Start),
    ("s", Start),
    ("todo", Todo),
    ("t", Todo),
    ("swap", Swap),
    ("rot", Rot),
    ("-rot", NRot),
    ("-", NRot),
    ("rep tsk-4", Reprioritize),
    ("quit", Quit),
])
def test_keyword_resolves_to_command(text, expected):
    assert type(parse(text)) is expected


@pytest.mark.parametrize("text", ["PUSH Buy milk", "Push Buy milk", "P Buy milk", "QUIT", "Swap", "-ROT", "Rep TSK-4"])
def test_keywords_are_case_insensitive(text):
    assert not isinstance(parse(text), ParseFailure)


def test_shorthand_and_full_word_agree_for_every_entry():
    for entry in GRAMMAR:
        if entry.command.shorthand is None or entry.command is Reprioritize:
            continue
        assert lookup(entry.command.keyword) is lookup(entry.command.shorthand)
        assert lookup(entry.command.keyword.upper()) is entry


def test_bare_p_is_always_push():
    command = parse("p tsk-5")
    assert isinstance(command, Push)
    assert command.title == "tsk-5"
    assert lookup("p").command is Push


def test_leading_whitespace_is_ignored():
    assert isinstance(parse("   swap"), Swap)


# ============ push / make ============

def test_push_keeps_title_verbatim():
    command = parse("push Buy  Milk, eggs!")
    assert command.title == "Buy  Milk, eggs!"


def test_push_requires_title():
    for text in ("push", "p", "push   "):
        failure = parse(text)
        assert isinstance(failure, ParseFailure)
        assert failure.kind == ParseErrorKind.INVALID_ARGUMENT


def test_push_title_must_start_alphanumeric():
    failure = parse("push !urgent")
    assert failure.kind == ParseErrorKind.INVALID_ARGUMENT


def test_make_name_lowercased():
    assert parse("make Errands").name == "errands"


def test_make_rejects_non_alphanumeric():
    assert parse("make two words").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("m a-b").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("make").kind == ParseErrorKind.INVALID_ARGUMENT


# ============ identifiers ============

def test_optional_identifier_absent():
    assert parse("complete").task is None
    assert parse("d  ").task is None


def test_bare_digits_are_stack_positions():
    command = parse("edit 3")
    assert command.task == StackPosition(position=3)


def test_tsk_prefix_is_absolute():
    command = parse("drop tsk-42")
    assert command.task == AbsoluteId(task_id=42)
    assert parse("c TSK-7").task == AbsoluteId(task_id=7)


def test_stack_position_bounds():
    assert parse("c 255").task == StackPosition(position=255)
    failure = parse("c 256")
    assert failure.kind == ParseErrorKind.INVALID_ARGUMENT
    assert "out of range" in failure.message


def test_oversized_task_id_is_invalid():
    failure = parse("drop tsk-99999999999999999999999")
    assert isinstance(failure, ParseFailure)
    assert failure.kind == ParseErrorKind.INVALID_ARGUMENT
    assert "too large" in failure.message
    assert parse("rep tsk-99999999999999999999999").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("rep tsk-9223372036854775807").task == AbsoluteId(task_id=2 ** 63 - 1)


def test_very_long_digit_strings_are_invalid_not_unknown():
    digits = "9" * 5000
    assert parse(f"edit tsk-{digits}").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse(f"edit {digits}").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("edit tsk-" + "0" * 5000 + "7").task == AbsoluteId(task_id=7)


def test_tsk_without_digits_is_invalid():
    failure = parse("edit tsk-")
    assert isinstance(failure, ParseFailure)
    assert failure.kind == ParseErrorKind.INVALID_ARGUMENT


def test_garbage_identifier_is_invalid():
    assert parse("edit foo").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("edit 1 2").kind == ParseErrorKind.INVALID_ARGUMENT


def test_reprioritize_requires_absolute_id():
    assert parse("rep tsk-12").task == AbsoluteId(task_id=12)
    assert parse("rep 3").kind == ParseErrorKind.INVALID_ARGUMENT
    assert parse("rep").kind == ParseErrorKind.INVALID_ARGUMENT


# ============ failures ============

def test_unknown_keyword():
    failure = parse("zzz")
    assert failure.kind == ParseErrorKind.UNKNOWN_COMMAND
    assert failure.input == "zzz"
    assert "zzz" in failure.message


def test_empty_input_is_unknown_command():
    assert parse("").kind == ParseErrorKind.UNKNOWN_COMMAND


def test_keyword_must_be_whole_token():
    # "pbuy" is not "p" followed by a title
    assert parse("pbuy milk").kind == ParseErrorKind.UNKNOWN_COMMAND
    assert parse("swapx").kind == ParseErrorKind.UNKNOWN_COMMAND


def test_trailing_content_after_argumentless_command():
    failure = parse("quit now")
    assert isinstance(failure, ParseFailure)
    assert failure.kind == ParseErrorKind.INVALID_ARGUMENT


def test_trailing_whitespace_after_argumentless_command():
    assert isinstance(parse("quit   "), Quit)
    assert isinstance(parse("rot\t"), Rot)

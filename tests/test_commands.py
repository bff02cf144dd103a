import pytest

from sinkships.battleship import Orientation
from sinkships.commands import (
    parse_command,
    AutoCommand,
    ChatCommand,
    ClearCommand,
    FireCommand,
    NewGameCommand,
    PlaceCommand,
    QuitCommand,
    ReadyCommand,
    RevealCommand,
    RotateCommand,
    CommandParseError,
)

def test_chat_basic():
    cmd = parse_command("CHAT Hello world")
    assert isinstance(cmd, ChatCommand)
    assert cmd.text == "Hello world"


def test_chat_whitespace_and_case():
    cmd = parse_command("  chat   hi there  ")
    assert isinstance(cmd, ChatCommand)
    assert cmd.text == "hi there"


def test_chat_requires_text():
    with pytest.raises(CommandParseError):
        parse_command("CHAT   ")


def test_fire_valid_A1():
    cmd = parse_command("FIRE A1")
    assert isinstance(cmd, FireCommand)
    assert (cmd.row, cmd.col) == (0, 0)


def test_fire_valid_J10():
    cmd = parse_command("fire j10")
    assert isinstance(cmd, FireCommand)
    assert (cmd.row, cmd.col) == (9, 9)


def test_fire_invalid_coord():
    with pytest.raises(CommandParseError):
        parse_command("FIRE K1")


def test_fire_missing_arg():
    with pytest.raises(CommandParseError):
        parse_command("FIRE")


def test_place_keeps_current_orientation():
    cmd = parse_command("PLACE b3")
    assert cmd == PlaceCommand(row=1, col=2, orientation=None)


@pytest.mark.parametrize("flag, expected", [("H", Orientation.HORIZONTAL), ("v", Orientation.VERTICAL)])
def test_place_with_orientation(flag, expected):
    cmd = parse_command(f"place E5 {flag}")
    assert cmd == PlaceCommand(row=4, col=4, orientation=expected)


@pytest.mark.parametrize("line", ["PLACE", "PLACE Z9", "PLACE A1 D", "PLACE A1 H extra"])
def test_place_rejects_bad_arguments(line):
    with pytest.raises(CommandParseError):
        parse_command(line)


@pytest.mark.parametrize(
    "line, cls",
    [
        ("ROTATE", RotateCommand),
        ("auto", AutoCommand),
        ("Clear", ClearCommand),
        ("READY", ReadyCommand),
        ("start", ReadyCommand),
        ("REVEAL", RevealCommand),
        ("new", NewGameCommand),
    ],
)
def test_bare_verbs(line, cls):
    assert isinstance(parse_command(line), cls)


def test_bare_verb_with_argument_is_unknown():
    with pytest.raises(CommandParseError):
        parse_command("ROTATE now")


def test_quit():
    cmd = parse_command("QUIT")
    assert isinstance(cmd, QuitCommand)


def test_unknown_command():
    with pytest.raises(CommandParseError):
        parse_command("HELLO there")


def test_empty_line():
    with pytest.raises(CommandParseError):
        parse_command("    ")

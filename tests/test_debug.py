"""Tests for the logging front end."""

import pytest

from connect4net.debug import DebugLevel, debug
from connect4net.game.rules import GameEngine
from connect4net.utils import Color


@pytest.fixture
def restore_debug():
    level = debug.level
    yield debug
    debug.configure(level=level, log_file="")


class TestDebugManager:
    @pytest.mark.parametrize("name, level", [
        ("info", DebugLevel.INFO),
        ("DEBUG", DebugLevel.DEBUG),
        ("none", DebugLevel.NONE),
    ])
    def test_set_from_string(self, restore_debug, name, level):
        restore_debug.set_from_string(name)
        assert restore_debug.level == level

    def test_unknown_level_string_is_ignored(self, restore_debug):
        restore_debug.configure(level=DebugLevel.ERROR)
        restore_debug.set_from_string("loud")
        assert restore_debug.level == DebugLevel.ERROR

    def test_failing_move_listener_is_logged_to_file(self, restore_debug, tmp_path):
        log_file = tmp_path / "connect4net.log"
        restore_debug.configure(level=DebugLevel.ERROR, log_file=str(log_file))

        def broken(record):
            raise RuntimeError("display gone")

        engine = GameEngine()
        engine.subscribe(broken)
        assert engine.apply_move(Color.YELLOW, 2).applied

        restore_debug.configure(log_file="")
        text = log_file.read_text()
        assert "Move listener" in text
        assert "display gone" in text

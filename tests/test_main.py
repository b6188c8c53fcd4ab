from __future__ import annotations

import json
import os
import sys
from pathlib import Path

from main import _cursor_position, main
from tedit.lsp.types import Position
from tedit.settings import PROGRAM_ENV, project_settings_path
from tests.env_helpers import env_scope

FAKE_SERVER = str(Path(__file__).resolve().parent / "fake_lsp_server.py")


def test_cursor_position_is_one_based_and_clamped() -> None:
    text = "fn main() {\n    let ä = 1;\n}"
    assert _cursor_position(text, 1, 4) == Position(0, 3)
    assert _cursor_position(text, 2, 10) == Position(1, 9)
    assert _cursor_position(text, 99, 1) == Position(2, 0)
    assert _cursor_position("", 1, 1) == Position(0, 0)


def test_missing_file_exits_with_usage_error(tmp_path, capsys) -> None:
    assert main([str(tmp_path / "nope.rs")]) == 2
    assert "no such file" in capsys.readouterr().err


def test_prints_completions_from_server(qapp, tmp_path, capsys) -> None:
    source = tmp_path / "main.rs"
    source.write_text("fn main() { let answer = 42; }\n", encoding="utf-8")
    settings_path = project_settings_path(tmp_path)
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text(
        json.dumps({"lsp": {"program": sys.executable, "args": [FAKE_SERVER]}, "logging": {"level": "ERROR"}}),
        encoding="utf-8",
    )

    previous_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        with env_scope({"XDG_CONFIG_HOME": str(tmp_path / "config"), PROGRAM_ENV: None}):
            code = main([str(source), "--line", "1", "--column", "4", "--timeout-ms", "20000"])
    finally:
        os.chdir(previous_cwd)

    assert code == 0
    assert capsys.readouterr().out.split() == ["fn", "main", "let", "answer"]

"""
Command line: mockable generate [--module] [-o] [--force-portable-lock] [--check].
"""
from __future__ import annotations

import textwrap

import pytest

from mockable.cli import main

_SOURCE = textwrap.dedent(
    """
    from typing import Protocol
    from mockable import ThreadSafe, mockable

    @mockable
    class Clock(ThreadSafe, Protocol):
        def now(self) -> float: ...
    """
)


@pytest.fixture()
def source_file(tmp_path, monkeypatch):
    monkeypatch.delenv("MOCKABLE_CONFIG_FILE", raising=False)
    monkeypatch.delenv("MOCKABLE_OUTPUT_SUFFIX", raising=False)
    path = tmp_path / "clock.py"
    path.write_text(_SOURCE, encoding="utf-8")
    return path


def test_generate_writes_default_output(source_file, capsys):
    assert main(["generate", str(source_file)]) == 0
    out_path = source_file.with_name("clock_mocks.py")
    text = out_path.read_text(encoding="utf-8")
    assert "from clock import (\n    Clock,\n)" in text
    assert "class ClockMock(Clock):" in text
    assert "Wrote:" in capsys.readouterr().out


def test_generate_with_module_and_output(source_file, tmp_path):
    out_path = tmp_path / "out" / "fakes.py"
    out_path.parent.mkdir()
    code = main(
        ["generate", str(source_file), "--module", "pkg.clock", "-o", str(out_path), "--force-portable-lock"]
    )
    assert code == 0
    text = out_path.read_text(encoding="utf-8")
    assert "from pkg.clock import (" in text
    assert "Mutex" not in text


def test_check_detects_drift(source_file, capsys):
    assert main(["generate", str(source_file), "--check"]) == 2
    assert main(["generate", str(source_file)]) == 0
    assert main(["generate", str(source_file), "--check"]) == 0
    assert "OK:" in capsys.readouterr().out

    out_path = source_file.with_name("clock_mocks.py")
    out_path.write_text(out_path.read_text(encoding="utf-8") + "# edited\n", encoding="utf-8")
    assert main(["generate", str(source_file), "--check"]) == 3
    assert "is stale" in capsys.readouterr().err


def test_diagnostics_exit_one(tmp_path, capsys):
    path = tmp_path / "bad.py"
    path.write_text("from mockable import mockable\n\n@mockable\nclass Clock:\n    pass\n", encoding="utf-8")
    assert main(["generate", str(path)]) == 1
    err = capsys.readouterr().err
    assert f"{path}:4:0: error: @mockable can only be applied to protocols" in err
    assert not path.with_name("bad_mocks.py").exists()


def test_missing_source_and_syntax_error(tmp_path, capsys):
    assert main(["generate", str(tmp_path / "absent.py")]) == 2
    broken = tmp_path / "broken.py"
    broken.write_text("class (:\n", encoding="utf-8")
    assert main(["generate", str(broken)]) == 2
    assert "ERROR:" in capsys.readouterr().err


def test_config_file_sets_output_suffix(source_file, tmp_path):
    config = tmp_path / "mockable.yaml"
    config.write_text("output_suffix: _fakes\n", encoding="utf-8")
    assert main(["--config", str(config), "generate", str(source_file)]) == 0
    assert source_file.with_name("clock_fakes.py").exists()

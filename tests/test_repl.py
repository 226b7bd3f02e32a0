import importlib.util
import sys
import uuid
from pathlib import Path

import pytest


def _load_repl_module():
    """Dynamically load the top-level gbasic.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "gbasic.py"
    mod_name = f"gbasic_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture(autouse=True)
def no_config(monkeypatch):
    monkeypatch.delenv("GBASIC_CONFIG", raising=False)
    monkeypatch.setattr(sys, "argv", ["gbasic.py"])


@pytest.mark.asyncio
async def test_repl_exit_immediately(monkeypatch, capsys):
    repl = _load_repl_module()

    async def fake_ainput(prompt: str) -> str:
        return "exit"
    monkeypatch.setattr(repl, "ainput", fake_ainput)

    await repl.main()
    out = capsys.readouterr().out
    assert "gbasic REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


@pytest.mark.asyncio
async def test_repl_prints_side_effects_and_values(monkeypatch, capsys):
    repl = _load_repl_module()
    lines = iter([
        'TALK "hello from basic"',
        "x = 1 + 2",
        "x",
        "exit",
    ])

    async def fake_ainput(prompt: str) -> str:
        return next(lines)
    monkeypatch.setattr(repl, "ainput", fake_ainput)

    await repl.main()
    out, err = capsys.readouterr()
    assert "hello from basic" in out
    # Variables persist between lines
    assert out.rstrip().endswith("3")
    assert err == ""


@pytest.mark.asyncio
async def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    repl = _load_repl_module()
    lines = iter([
        '1 + "a" * 2',
        "exit",
    ])

    async def fake_ainput(prompt: str) -> str:
        return next(lines)
    monkeypatch.setattr(repl, "ainput", fake_ainput)

    await repl.main()
    out, err = capsys.readouterr()
    assert "gbasic REPL v0.1" in out
    assert "Error on line 1" in err
    assert "Type mismatch" in err


@pytest.mark.asyncio
async def test_repl_eof_quits(monkeypatch, capsys):
    repl = _load_repl_module()

    async def fake_ainput(prompt: str) -> str:
        raise EOFError
    monkeypatch.setattr(repl, "ainput", fake_ainput)

    await repl.main()
    out = capsys.readouterr().out
    assert "Exiting." in out


@pytest.mark.asyncio
async def test_run_script_file(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "hello.bas"
    script.write_text('name = "Ada"\nIF LEN(name) > 2 THEN\n  TALK "long " + name\nEND IF\nLEN(name)\n', encoding="utf-8")
    await repl.run_script_file(str(script))
    out = capsys.readouterr().out
    assert out.splitlines() == ["long Ada", "3"]


@pytest.mark.asyncio
async def test_run_script_file_errors_exit_nonzero(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "bad.bas"
    script.write_text("SWITCH x\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        await repl.run_script_file(str(script))
    assert excinfo.value.code == 1
    assert "SWITCH without END SWITCH" in capsys.readouterr().err

    with pytest.raises(SystemExit):
        await repl.run_script_file(str(tmp_path / "missing.bas"))

import subprocess
import sys

import pytest

from capalloc import cli, validate
from capalloc.scenario_runner import run_dir

GOOD = (
    "budget: 100\n"
    "priorities: [{ id: p, weight: 100, minThreshold: 0 }]\n"
    "projects: [{ id: a, initialCapex: 10 }]\n"
)


def _write(tmp_path, name, text):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_strict_env_rejects_unknown_keys(tmp_path, monkeypatch):
    monkeypatch.setenv("VALIDATION_MODE", "strict")
    cfg = _write(tmp_path, "extra.yaml", GOOD + "owner: finance\n")
    with pytest.raises(SystemExit, match="unknown top-level keys"):
        run_dir(cfg, tmp_path / "out")


def test_strict_requires_budget_and_priorities(tmp_path, monkeypatch):
    monkeypatch.setenv("VALIDATION_MODE", "strict")
    cfg = _write(tmp_path, "thin.yaml", "projects: []\n")
    with pytest.raises(SystemExit, match="missing required keys"):
        run_dir(cfg, tmp_path / "out")


def test_relaxed_tolerates_unknown_keys(tmp_path, monkeypatch):
    monkeypatch.delenv("VALIDATION_MODE", raising=False)
    cfg = _write(tmp_path, "extra.yaml", GOOD + "owner: finance\n")
    res = run_dir(cfg, tmp_path / "out")
    assert res.summary["selectedProjects"] == ["a"]


def test_priority_bounds_checked_in_any_mode(tmp_path, monkeypatch):
    monkeypatch.delenv("VALIDATION_MODE", raising=False)
    cfg = _write(tmp_path, "heavy.yaml", "priorities: [{ id: p, weight: 140 }]\nprojects: []\n")
    with pytest.raises(SystemExit, match="weight outside allowed range"):
        run_dir(cfg, tmp_path / "out")


def test_cli_strict_flag(tmp_path, monkeypatch):
    # the flag beats the environment
    monkeypatch.setenv("VALIDATION_MODE", "relaxed")
    cfg = _write(tmp_path, "extra.yaml", GOOD + "owner: finance\n")
    rc = cli.main(["--mode", "optimize", "--config", str(cfg), "--outputs-dir", str(tmp_path / "o"), "--strict"])
    assert rc == 2


def test_module_entrypoint_strict(tmp_path):
    cfg = _write(tmp_path, "extra.yaml", GOOD + "owner: finance\n")
    proc = subprocess.run(
        [sys.executable, "-m", "capalloc", "--mode", "optimize", "--config", str(cfg),
         "--outputs-dir", str(tmp_path / "o"), "--strict"],
        capture_output=True,
        text=True,
    )
    assert proc.returncode == 2
    assert "unknown top-level keys" in proc.stderr


def test_validate_main(tmp_path, capsys):
    good = _write(tmp_path, "good.yaml", GOOD)
    bad = _write(tmp_path, "bad.json", '{"budget": "NaN", "projects": []}')
    assert validate._main([str(good), "--mode", "strict"]) == 0
    assert validate._main([str(bad)]) == 1
    err = capsys.readouterr().err
    assert "budget must be finite" in err


def test_cli_relaxed_flag_overrides_strict_env(tmp_path, monkeypatch):
    monkeypatch.setenv("VALIDATION_MODE", "strict")
    cfg = _write(tmp_path, "extra.yaml", GOOD + "owner: finance\n")
    rc = cli.main(["--mode", "optimize", "--config", str(cfg), "--outputs-dir", str(tmp_path / "o"), "--relaxed"])
    assert rc == 0


@pytest.mark.parametrize(
    "priorities, message",
    [
        ("[{ id: p, weight: null }]", "weight must be numeric"),
        ("[{ id: p, minThreshold: [1, 2] }]", "minThreshold must be numeric"),
        ("[{ id: p, weight: heavy }]", "weight must be numeric"),
        ("[p1, p2]", "priority entries must be mappings"),
        ("{ id: p }", "priorities must be a list"),
    ],
)
def test_validate_main_reports_malformed_priorities(tmp_path, capsys, priorities, message):
    cfg = _write(tmp_path, "odd.yaml", f"priorities: {priorities}\nprojects: []\n")
    assert validate._main([str(cfg)]) == 1
    assert message in capsys.readouterr().err


def test_runner_rejects_null_weight(tmp_path, monkeypatch):
    monkeypatch.delenv("VALIDATION_MODE", raising=False)
    cfg = _write(tmp_path, "null.yaml", "priorities: [{ id: p, weight: null }]\nprojects: []\n")
    rc = cli.main(["--mode", "optimize", "--config", str(cfg), "--outputs-dir", str(tmp_path / "o")])
    assert rc == 2

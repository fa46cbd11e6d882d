from __future__ import annotations

import pytest

import cartlink.dispatch.launcher as launcher_mod
from cartlink.core.errors import DispatchError


class PopenRecorder:
    def __init__(self, error: Exception | None = None):
        self.calls = []
        self.error = error

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return object()


def test_launch_spawns_detached_process(monkeypatch, tmp_path):
    rec = PopenRecorder()
    monkeypatch.setattr(launcher_mod.subprocess, "Popen", rec)
    exe = tmp_path / "zelda.exe"

    result = launcher_mod.ProcessLauncher(extra_args=["--fullscreen"]).launch(str(exe)).result(timeout=1.0)

    assert result.ok is True
    assert result.path == str(exe)
    args, kwargs = rec.calls[0]
    assert args == [str(exe), "--fullscreen"]
    assert kwargs["cwd"] == str(tmp_path)
    assert kwargs["start_new_session"] is True


def test_missing_parent_dir_means_no_cwd(monkeypatch, tmp_path):
    rec = PopenRecorder()
    monkeypatch.setattr(launcher_mod.subprocess, "Popen", rec)

    launcher_mod.ProcessLauncher().launch(str(tmp_path / "nope" / "g.exe")).result(timeout=1.0)

    assert rec.calls[0][1]["cwd"] is None


def test_spawn_failure_resolves_not_ok(monkeypatch):
    monkeypatch.setattr(launcher_mod.subprocess, "Popen", PopenRecorder(FileNotFoundError("no such file")))

    result = launcher_mod.ProcessLauncher().launch("C:/missing.exe").result(timeout=1.0)

    assert result.ok is False
    assert "no such file" in result.error


def test_empty_path_is_rejected(monkeypatch):
    rec = PopenRecorder()
    monkeypatch.setattr(launcher_mod.subprocess, "Popen", rec)

    with pytest.raises(DispatchError):
        launcher_mod.ProcessLauncher().launch("   ")
    assert rec.calls == []

import subprocess
from pathlib import Path
from unittest import mock

import pytest

from drillrunner.exercise import Exercise, Mode
from drillrunner.run import reset, run
from drillrunner.verify import ExerciseFailed

PENDING_SOURCE = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"


def _tools(compile_code=0, run_code=0, stdout=b""):
    calls = []

    def fake(args, **kwargs):
        calls.append(list(args))
        if args[0] in ("rustc", "cargo"):
            return subprocess.CompletedProcess(args, compile_code, b"", b"compile error")
        return subprocess.CompletedProcess(args, run_code, stdout, b"run error")

    return fake, calls


def _exercise(tmp_path: Path, mode: Mode) -> Exercise:
    path = tmp_path / "pending_exercise.rs"
    path.write_text(PENDING_SOURCE, encoding="utf-8")
    return Exercise(name="pending_exercise", path=path, mode=mode)


def test_run_compile_success_does_not_prompt(tmp_path, capsys):
    exercise = _exercise(tmp_path, Mode.COMPILE)
    fake, _ = _tools(stdout=b"Hello world!")
    with mock.patch("subprocess.run", side_effect=fake):
        assert run(exercise, False) is None
    out = capsys.readouterr().out
    assert "Hello world!" in out
    assert f"Successfully ran {exercise}" in out
    assert "I AM NOT DONE" not in out


def test_run_compile_failure(tmp_path, capsys):
    exercise = _exercise(tmp_path, Mode.COMPILE)
    fake, calls = _tools(compile_code=1)
    with mock.patch("subprocess.run", side_effect=fake):
        with pytest.raises(ExerciseFailed) as info:
            run(exercise, False)
    assert info.value.exercise is exercise
    assert len(calls) == 1
    assert "compile error" in capsys.readouterr().out


def test_run_binary_failure(tmp_path, capsys):
    exercise = _exercise(tmp_path, Mode.COMPILE)
    fake, _ = _tools(run_code=101, stdout=b"partial")
    with mock.patch("subprocess.run", side_effect=fake):
        with pytest.raises(ExerciseFailed):
            run(exercise, False)
    out = capsys.readouterr().out
    assert "partial" in out
    assert "run error" in out
    assert "with errors" in out


def test_run_test_mode_does_not_prompt(tmp_path, capsys):
    exercise = _exercise(tmp_path, Mode.TEST)
    fake, calls = _tools()
    with mock.patch("subprocess.run", side_effect=fake):
        run(exercise, False)
    assert calls[0][:2] == ["rustc", "--test"]
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_test_mode_failure(tmp_path):
    exercise = _exercise(tmp_path, Mode.TEST)
    fake, _ = _tools(run_code=1)
    with mock.patch("subprocess.run", side_effect=fake):
        with pytest.raises(ExerciseFailed):
            run(exercise, True)


def test_reset_stashes_exercise_path(tmp_path):
    exercise = _exercise(tmp_path, Mode.COMPILE)
    fake, calls = _tools()
    with mock.patch("subprocess.run", side_effect=fake):
        reset(exercise)
    assert calls == [["git", "stash", "--", str(exercise.path)]]


def test_reset_without_git_fails(tmp_path):
    exercise = _exercise(tmp_path, Mode.COMPILE)
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("git")):
        with pytest.raises(ExerciseFailed) as info:
            reset(exercise)
    assert info.value.exercise is exercise
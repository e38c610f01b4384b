import json
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from drillrunner.project import Crate, RustAnalyzerProject


@pytest.fixture
def exercises_dir(tmp_path):
    root = tmp_path / "exercises"
    (root / "intro").mkdir(parents=True)
    (root / "if").mkdir()
    (root / "intro" / "intro1.rs").write_text("fn main() {}\n", encoding="utf-8")
    (root / "if" / "if1.rs").write_text("fn main() {}\n", encoding="utf-8")
    (root / "README.md").write_text("notes\n", encoding="utf-8")
    return root


def test_new_project_is_empty():
    project = RustAnalyzerProject()
    assert project.to_dict() == {"sysroot_src": "", "crates": []}


def test_exercises_to_json_collects_rs_files(exercises_dir):
    project = RustAnalyzerProject()
    project.exercises_to_json(exercises_dir)
    roots = sorted(Path(crate.root_module) for crate in project.crates)
    assert roots == sorted(
        [exercises_dir / "intro" / "intro1.rs", exercises_dir / "if" / "if1.rs"]
    )
    for crate in project.crates:
        assert crate.edition == "2021"
        assert crate.deps == []
        assert crate.cfg == ["test"]


def test_exercises_to_json_default_root(exercises_dir, monkeypatch):
    monkeypatch.chdir(exercises_dir.parent)
    project = RustAnalyzerProject()
    project.exercises_to_json()
    assert {Path(crate.root_module).name for crate in project.crates} == {
        "intro1.rs",
        "if1.rs",
    }


def test_write_to_disk_round_trip(tmp_path, exercises_dir):
    project = RustAnalyzerProject(sysroot_src="/sysroot")
    project.exercises_to_json(exercises_dir)
    target = tmp_path / "rust-project.json"
    project.write_to_disk(target)
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data == project.to_dict()
    assert list(data) == ["sysroot_src", "crates"]
    assert list(data["crates"][0]) == ["root_module", "edition", "deps", "cfg"]


def test_crate_to_dict():
    crate = Crate(root_module="exercises/quiz1.rs")
    assert crate.to_dict() == {
        "root_module": "exercises/quiz1.rs",
        "edition": "2021",
        "deps": [],
        "cfg": ["test"],
    }


def test_sysroot_from_environment(monkeypatch):
    monkeypatch.setenv("RUST_SRC_PATH", "/src/rust/library")
    project = RustAnalyzerProject()
    with mock.patch("subprocess.run", side_effect=AssertionError("rustc called")):
        project.get_sysroot_src()
    assert project.sysroot_src == "/src/rust/library"


def test_sysroot_from_rustc(monkeypatch, capsys):
    monkeypatch.delenv("RUST_SRC_PATH", raising=False)
    completed = subprocess.CompletedProcess(
        ["rustc"], 0, b"/opt/toolchain\n", b""
    )
    project = RustAnalyzerProject()
    with mock.patch("subprocess.run", return_value=completed) as fake:
        project.get_sysroot_src()
    assert fake.call_args.args[0] == ["rustc", "--print", "sysroot"]
    assert project.sysroot_src == str(
        Path("/opt/toolchain") / "lib" / "rustlib" / "src" / "rust" / "library"
    )
    assert "Determined toolchain: /opt/toolchain" in capsys.readouterr().out


def test_sysroot_without_rustc(monkeypatch):
    monkeypatch.delenv("RUST_SRC_PATH", raising=False)
    project = RustAnalyzerProject()
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("rustc")):
        with pytest.raises(FileNotFoundError):
            project.get_sysroot_src()
    assert project.sysroot_src == ""
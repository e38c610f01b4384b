"""Exercise definitions, compilation, execution and completion state."""

from __future__ import annotations

import enum
import os
import re
import subprocess
import threading
import tomllib
import weakref
from dataclasses import dataclass, field
from pathlib import Path

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Return a temporary file name unique to this process and thread."""
    return f"./temp_{os.getpid()}_{threading.get_ident()}"


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def _clean() -> None:
    _remove(temp_file())


class Mode(enum.Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILD_SCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the pending marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class Pending:
    """State of an exercise that still carries the pending marker."""

    context: list[ContextLine] = field(default_factory=list)


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a compiler or exercise run."""

    stdout: str
    stderr: str


class ExerciseError(Exception):
    """Raised when compiling or running an exercise fails."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr or output.stdout)
        self.output = output


def _output(result: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=result.stdout.decode("utf-8", errors="replace"),
        stderr=result.stderr.decode("utf-8", errors="replace"),
    )


def _run_tool(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True)


def _cargo_manifest(name: str) -> str:
    return (
        "[package]\n"
        f'name = "{name}"\n'
        'version = "0.0.1"\n'
        'edition = "2021"\n'
        "[[bin]]\n"
        f'name = "{name}"\n'
        f'path = "{name}.rs"'
    )


def _write_manifest(path: str, name: str) -> None:
    if "NO_EMOJI" in os.environ:
        message = "Failed to write Clippy Cargo.toml file."
    else:
        message = "Failed to write 📎 Clippy 📎 Cargo.toml file."
    try:
        Path(path).write_text(_cargo_manifest(name), encoding="utf-8")
    except OSError as err:
        raise OSError(message) from err


def _lines(source: str) -> list[str]:
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class CompiledExercise:
    """A successfully compiled exercise; closing it removes the binary."""

    def __init__(self, exercise: Exercise) -> None:
        self.exercise = exercise
        self._finalizer = weakref.finalize(self, _remove, temp_file())

    def run(self) -> ExerciseOutput:
        """Run the compiled binary; raises ExerciseError on failure."""
        return self.exercise.run()

    def close(self) -> None:
        """Remove the compiled binary."""
        self._finalizer()

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class Exercise:
    """An exercise as described in the exercise list."""

    name: str
    path: Path
    mode: Mode
    hint: str = ""

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.mode = Mode(self.mode)

    def __str__(self) -> str:
        return str(self.path)

    def compile(self) -> CompiledExercise:
        """Build the exercise; raises ExerciseError with the tool output on failure."""
        source = str(self.path)
        target = temp_file()
        match self.mode:
            case Mode.COMPILE:
                result = _run_tool(
                    ["rustc", source, "-o", target, *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
                )
            case Mode.TEST:
                result = _run_tool(
                    ["rustc", "--test", source, "-o", target,
                     *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
                )
            case Mode.CLIPPY:
                _write_manifest(CLIPPY_CARGO_TOML_PATH, self.name)
                # Build a binary so the exercise can be run; failures surface via clippy.
                _run_tool(
                    ["rustc", source, "-o", target, *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
                )
                # A clean is needed for clippy to report every lint.
                _run_tool(
                    ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS]
                )
                result = _run_tool(
                    ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS, "--", "-D", "warnings", "-D", "clippy::float_cmp"]
                )
            case Mode.BUILD_SCRIPT:
                _write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH, self.name)
                result = _run_tool(
                    ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH]
                )
        if result.returncode == 0:
            return CompiledExercise(self)
        _clean()
        raise ExerciseError(_output(result))

    def run(self) -> ExerciseOutput:
        """Run the compiled binary; raises ExerciseError if it exits unsuccessfully."""
        match self.mode:
            case Mode.TEST:
                arg = "--show-output"
            case Mode.BUILD_SCRIPT:
                return ExerciseOutput(stdout="", stderr="")
            case _:
                arg = ""
        result = _run_tool([temp_file(), arg])
        output = _output(result)
        if result.returncode != 0:
            raise ExerciseError(output)
        return output

    def state(self) -> Pending | None:
        """Return None when done, or the lines around the pending marker."""
        source = self.path.read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return None
        lines = _lines(source)
        matched = next(
            (i for i, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)), None
        )
        if matched is None:
            raise ValueError(f"pending marker in {self.path} does not sit on one line")
        low = max(matched - CONTEXT, 0)
        high = matched + CONTEXT
        return Pending(
            [
                ContextLine(line=line, number=i + 1, important=i == matched)
                for i, line in enumerate(lines[low : high + 1], start=low)
            ]
        )

    def looks_done(self) -> bool:
        """Whether the pending marker has been removed from the source."""
        return self.state() is None


def load_exercises(text: str) -> list[Exercise]:
    """Parse an exercise list written in TOML."""
    data = tomllib.loads(text)
    if "exercises" not in data:
        raise ValueError("missing field `exercises`")
    exercises = []
    for entry in data["exercises"]:
        missing = [key for key in ("name", "path", "mode", "hint") if key not in entry]
        if missing:
            raise ValueError(f"missing field `{missing[0]}`")
        exercises.append(
            Exercise(
                name=entry["name"],
                path=Path(entry["path"]),
                mode=Mode(entry["mode"]),
                hint=entry["hint"],
            )
        )
    return exercises


def read_exercise_list(path: str | os.PathLike) -> list[Exercise]:
    """Read and parse an exercise list file."""
    return load_exercises(Path(path).read_text(encoding="utf-8"))
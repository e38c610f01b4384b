"""Verification of exercises: compile, run or test them and report progress."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable

from drillrunner.exercise import CompiledExercise, Exercise, ExerciseError, Mode
from drillrunner.ui import success, warn

_BAR_WIDTH = 60


class ExerciseFailed(Exception):
    """Raised when an exercise does not compile, run, pass or is still pending."""

    def __init__(self, exercise: Exercise) -> None:
        super().__init__(f"exercise {exercise} failed")
        self.exercise = exercise


def _ansi(text: str, *codes: str) -> str:
    if sys.stdout.isatty():
        return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"
    return text


def _separator() -> str:
    return _ansi("====================", "1")


class _ProgressBar:
    """A plain progress line written to standard error."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.position = 0
        self.message = ""

    def _render(self) -> None:
        if self.total:
            filled = min(_BAR_WIDTH, _BAR_WIDTH * self.position // self.total)
        else:
            filled = _BAR_WIDTH
        head = ">" if filled < _BAR_WIDTH else ""
        rest = _BAR_WIDTH - filled - len(head)
        bar = "#" * filled + head + "-" * rest
        end = "\r" if sys.stderr.isatty() else "\n"
        sys.stderr.write(
            f"Progress: [{bar}] {self.position}/{self.total} {self.message}{end}"
        )
        sys.stderr.flush()

    def update(self, position: int, message: str) -> None:
        self.position = position
        self.message = message
        self._render()


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool,
    success_hints: bool,
) -> None:
    """Check every exercise in order; raise ExerciseFailed at the first one that fails."""
    num_done, total = progress
    percentage = num_done / total * 100.0 if total else float("nan")
    bar = _ProgressBar(total)
    position = num_done
    bar.update(position, f"({percentage:.1f} %)")

    for exercise in exercises:
        match exercise.mode:
            case Mode.TEST | Mode.BUILD_SCRIPT:
                ok = _compile_and_test(exercise, True, verbose, success_hints)
            case Mode.COMPILE:
                ok = _compile_and_run_interactively(exercise, success_hints)
            case Mode.CLIPPY:
                ok = _compile_only(exercise, success_hints)
        if not ok:
            raise ExerciseFailed(exercise)
        percentage += 100.0 / total if total else float("nan")
        position += 1
        bar.update(position, f"({percentage:.1f} %)")


def test(exercise: Exercise, verbose: bool) -> None:
    """Compile and run an exercise's tests; raise ExerciseFailed if they fail."""
    if not _compile_and_test(exercise, False, verbose, False):
        raise ExerciseFailed(exercise)


def _compile(exercise: Exercise) -> CompiledExercise | None:
    try:
        return exercise.compile()
    except ExerciseError as err:
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(err.output.stderr)
        return None


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    compiled = _compile(exercise)
    if compiled is None:
        return False
    compiled.close()
    return _prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    compiled = _compile(exercise)
    if compiled is None:
        return False
    with compiled:
        try:
            output = compiled.run()
        except ExerciseError as err:
            warn(f"Ran {exercise} with errors")
            print(err.output.stdout)
            print(err.output.stderr)
            return False
        return _prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, interactive: bool, verbose: bool, success_hints: bool
) -> bool:
    compiled = _compile(exercise)
    if compiled is None:
        return False
    with compiled:
        try:
            output = compiled.run()
        except ExerciseError as err:
            warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
            print(err.output.stdout)
            return False
        if verbose:
            print(output.stdout)
        if interactive:
            return _prompt_for_completion(exercise, None, success_hints)
        return True


def _prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    state = exercise.state()
    if state is None:
        return True

    match exercise.mode:
        case Mode.COMPILE:
            success(f"Successfully ran {exercise}!")
        case Mode.TEST:
            success(f"Successfully tested {exercise}!")
        case Mode.CLIPPY | Mode.BUILD_SCRIPT:
            success(f"Successfully compiled {exercise}!")

    no_emoji = "NO_EMOJI" in os.environ
    if no_emoji:
        clippy_message = "The code is compiling, and Clippy is happy!"
    else:
        clippy_message = "The code is compiling, and 📎 Clippy 📎 is happy!"

    success_message = {
        Mode.COMPILE: "The code is compiling!",
        Mode.TEST: "The code is compiling, and the tests pass!",
        Mode.CLIPPY: clippy_message,
        Mode.BUILD_SCRIPT: "Build script works!",
    }[exercise.mode]

    print()
    if no_emoji:
        print(f"~*~ {success_message} ~*~")
    else:
        print(f"🎉 🎉  {success_message} 🎉 🎉")
    print()

    if prompt_output is not None:
        print("Output:")
        print(_separator())
        print(prompt_output)
        print(_separator())
        print()
    if success_hints:
        print("Hints:")
        print(_separator())
        print(exercise.hint)
        print(_separator())
        print()

    print("You can keep working on this exercise,")
    print(
        "or jump into the next one by removing the "
        f"{_ansi('`I AM NOT DONE`', '1')} comment:"
    )
    print()
    for context_line in state.context:
        line = _ansi(context_line.line, "1") if context_line.important else context_line.line
        number = _ansi(f"{context_line.number:>2}", "34", "1")
        print(f"{number} {_ansi('|', '34')}  {line}")

    return False
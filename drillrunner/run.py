"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess

from drillrunner.exercise import Exercise, ExerciseError, Mode
from drillrunner.ui import success, warn
from drillrunner.verify import ExerciseFailed, test


def run(exercise: Exercise, verbose: bool) -> None:
    """Compile and run or test one exercise; raise ExerciseFailed on failure."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            test(exercise, verbose)
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)


def reset(exercise: Exercise) -> None:
    """Stash local changes to the exercise file with git."""
    try:
        subprocess.run(["git", "stash", "--", str(exercise.path)])
    except OSError as err:
        raise ExerciseFailed(exercise) from err


def _compile_and_run(exercise: Exercise) -> None:
    try:
        compiled = exercise.compile()
    except ExerciseError as err:
        warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
        print(err.output.stderr)
        raise ExerciseFailed(exercise) from err

    with compiled:
        try:
            output = compiled.run()
        except ExerciseError as err:
            print(err.output.stdout)
            print(err.output.stderr)
            warn(f"Ran {exercise} with errors")
            raise ExerciseFailed(exercise) from err

    print(output.stdout)
    success(f"Successfully ran {exercise}")
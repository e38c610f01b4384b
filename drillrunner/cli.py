"""Command-line front end: listing, running, verifying and watching exercises."""

from __future__ import annotations

import argparse
import enum
import itertools
import json
import os
import queue
import subprocess
import sys
import threading
import time
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from drillrunner.exercise import Exercise, read_exercise_list
from drillrunner.project import RustAnalyzerProject
from drillrunner.run import reset, run
from drillrunner.verify import ExerciseFailed, verify

VERSION = "5.5.1"
CHECK_RESULT_PATH = ".github/result/check_result.json"
_DEBOUNCE_SECONDS = 1.0
_POLL_SECONDS = 1.0

WELCOME = "       welcome to...\n\n    d r i l l r u n n e r"

DEFAULT_OUT = """Thanks for installing drillrunner!

Is this your first time? Don't worry, drillrunner is made for beginners. Before
you start, here is how it works:

1. You solve exercises. Each exercise usually contains a syntax or logic error
   that stops it from compiling or passing its tests. Your job is to find the
   error and fix it. Once the exercise compiles and passes, drillrunner moves
   on to the next one.
2. Watch mode (recommended) starts with the first exercise. The error message
   you see right away is part of the exercise: open the file in an editor and
   start investigating!
3. Stuck? Type 'hint' in watch mode, or run `drillrunner hint exercise_name`.
4. To get rust-analyzer support for the exercises, such as autocompletion, run
   `drillrunner lsp`.

Got all that? Great! Run `drillrunner watch` to get the first exercise, and keep
your editor open!"""

FINISH_LINE = """+----------------------------------------------------+
|          You made it to the finish line!           |
+----------------------------------------------------+

We hope you enjoyed learning about the various aspects of Rust!
If you noticed any issues, please don't hesitate to report them.
You can also contribute your own exercises to help the greater community!"""


class WatchStatus(enum.Enum):
    """How watch mode ended."""

    FINISHED = "finished"
    UNFINISHED = "unfinished"


@dataclass
class ExerciseResult:
    """Whether one exercise passed during grading."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals gathered while grading."""

    total_exercations: int = 0
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """The full grading report."""

    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    statistics: ExerciseStatistics = field(default_factory=ExerciseStatistics)

    def to_dict(self) -> dict:
        """Return the report as JSON-ready data."""
        return asdict(self)


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Find an exercise by name, or the first pending one for "next"."""
    if name == "next":
        found = next((e for e in exercises if not e.looks_done()), None)
        if found is None:
            raise LookupError(
                "🎉 Congratulations! You have done all the exercises!\n"
                "🔚 There are no more exercises to do next!"
            )
        return found
    found = next((e for e in exercises if e.name == name), None)
    if found is None:
        raise LookupError(f"No exercise found for '{name}'!")
    return found


def list_exercises(
    exercises: Sequence[Exercise],
    paths: bool = False,
    names: bool = False,
    pattern: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
) -> int:
    """Print the exercises and a progress line; return how many are done."""
    if not paths and not names:
        print(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}")
    filters = [f for f in (pattern or "").lower().split(",") if f.strip()]
    done_count = 0
    for exercise in exercises:
        fname = str(exercise.path)
        done = exercise.looks_done()
        if done:
            done_count += 1
        status = "Done" if done else "Pending"
        wanted = (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        matches = pattern is None or any(f in exercise.name or f in fname for f in filters)
        if wanted and matches:
            if paths:
                line = f"{fname}\n"
            elif names:
                line = f"{exercise.name}\n"
            else:
                line = f"{exercise.name:<17}\t{fname:<46}\t{status:<7}\n"
            sys.stdout.write(line)
    percentage = done_count / len(exercises) * 100.0 if exercises else float("nan")
    print(
        f"Progress: You completed {done_count} / {len(exercises)} exercises "
        f"({percentage:.1f} %)."
    )
    return done_count


class _QueueHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[str]) -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            self._events.put(os.fsdecode(event.src_path))


class _WatchShell:
    """Reads commands from standard input while watch mode runs."""

    def __init__(self, hint: str | None) -> None:
        self._lock = threading.Lock()
        self._hint = hint
        self.should_quit = threading.Event()

    def set_hint(self, hint: str) -> None:
        with self._lock:
            self._hint = hint

    def start(self) -> None:
        print(
            "Welcome to watch mode! You can type 'help' to get an overview "
            "of the commands you can use here."
        )
        threading.Thread(target=self._loop, daemon=True).start()

    def _loop(self) -> None:
        while True:
            try:
                line = sys.stdin.readline()
            except (OSError, ValueError) as error:
                print(f"error reading command: {error}")
                return
            if not line:
                return
            self.handle(line)

    def handle(self, line: str) -> None:
        command = line.strip()
        if command == "hint":
            with self._lock:
                hint = self._hint
            if hint is not None:
                print(hint)
        elif command == "clear":
            print("\x1b[2J\x1b[1;1H")
        elif command == "quit":
            self.should_quit.set()
            print("Bye!")
        elif command == "help":
            print("Commands available to you in watch mode:")
            print("  hint   - prints the current exercise's hint")
            print("  clear  - clears the screen")
            print("  quit   - quits watch mode")
            print("  !<cmd> - executes a command, like `!rustc --explain E0381`")
            print("  help   - displays this help message")
            print()
            print("Watch mode automatically re-evaluates the current exercise")
            print("when you edit a file's contents.")
        elif command.startswith("!"):
            cmd = command[1:]
            parts = cmd.split()
            if not parts:
                print("no command provided")
            else:
                try:
                    subprocess.run(parts)
                except OSError as err:
                    print(f"failed to execute command `{cmd}`: {err}")
        else:
            print(f"unknown command: {command}")


def _clear_screen() -> None:
    print("\x1bc")


def _ends_with(full: Path, suffix: Path) -> bool:
    parts = tuple(p for p in Path(suffix).parts if p != ".")
    if not parts:
        return True
    return len(full.parts) >= len(parts) and full.parts[-len(parts):] == parts


def _debounce(events: queue.Queue[str], first: str) -> list[str]:
    paths = [first]
    while True:
        try:
            path = events.get(timeout=_DEBOUNCE_SECONDS)
        except queue.Empty:
            return paths
        if path not in paths:
            paths.append(path)


def _reverify(
    path: str,
    exercises: Sequence[Exercise],
    verbose: bool,
    success_hints: bool,
    shell: _WatchShell,
) -> bool:
    changed = Path(path)
    if changed.suffix != ".rs" or not changed.exists():
        return False
    filepath = changed.resolve()
    current = next((e for e in exercises if _ends_with(filepath, e.path)), None)
    pending = itertools.chain(
        [current] if current is not None else [],
        (e for e in exercises if not e.looks_done() and not _ends_with(filepath, e.path)),
    )
    num_done = sum(1 for e in exercises if e.looks_done())
    _clear_screen()
    try:
        verify(pending, (num_done, len(exercises)), verbose, success_hints)
    except ExerciseFailed as failed:
        shell.set_hint(failed.exercise.hint)
        return False
    return True


def watch(
    exercises: Sequence[Exercise], verbose: bool, success_hints: bool
) -> WatchStatus:
    """Verify exercises, then re-verify whenever a file under ./exercises changes."""
    events: queue.Queue[str] = queue.Queue()
    observer = Observer()
    observer.schedule(_QueueHandler(events), "./exercises", recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
            return WatchStatus.FINISHED
        except ExerciseFailed as failed:
            shell = _WatchShell(failed.exercise.hint)
        shell.start()
        while True:
            try:
                first = events.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                pass
            else:
                for path in _debounce(events, first):
                    if _reverify(path, exercises, verbose, success_hints, shell):
                        return WatchStatus.FINISHED
            if shell.should_quit.is_set():
                return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()


def cicv_verify(
    exercises: Iterable[Exercise],
    verbose: bool = True,
    output_path: str | os.PathLike = CHECK_RESULT_PATH,
) -> ExerciseCheckList:
    """Run every exercise concurrently, print progress and write a JSON report."""
    started = int(time.time())
    exercises = list(exercises)
    total = len(exercises)
    check_list = ExerciseCheckList(statistics=ExerciseStatistics(total_exercations=total))
    lock = threading.Lock()
    rights = 0

    def grade(exercise: Exercise, spawned: int) -> None:
        nonlocal rights
        try:
            run(exercise, True)
            passed = True
        except ExerciseFailed:
            passed = False
        with lock:
            if passed:
                rights += 1
                print(f"{exercise.name}执行成功")
            else:
                print(f"{exercise.name}执行失败")
            print(f"总的题目数: {total}")
            print(f"当前做正确的题目数: {rights}")
            print(f"当前修改试卷耗时: {int(time.time()) - spawned} s")
            check_list.exercises.append(ExerciseResult(name=exercise.name, result=passed))
            if passed:
                check_list.statistics.total_succeeds += 1
            else:
                check_list.statistics.total_failures += 1

    with ThreadPoolExecutor() as pool:
        futures = [pool.submit(grade, e, int(time.time())) for e in exercises]
        for future in futures:
            future.result()

    total_time = int(time.time()) - started
    print(
        "===============================试卷批改完成,总耗时: "
        f"{total_time} s; =================================="
    )
    check_list.statistics.total_time = total_time
    Path(output_path).write_text(
        json.dumps(check_list.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    return check_list


def rustc_exists() -> bool:
    """Whether `rustc --version` runs successfully."""
    try:
        result = subprocess.run(["rustc", "--version"], stdout=subprocess.DEVNULL)
    except OSError:
        return False
    return result.returncode == 0


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="drillrunner",
        description="A collection of small exercises to get you used to writing "
        "and reading Rust code",
    )
    parser.add_argument(
        "--nocapture", action="store_true", help="show outputs from the test exercises"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="show the executable version"
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("verify", help="verifies all exercises according to the recommended order")
    watch_parser = sub.add_parser("watch", help="reruns `verify` when files were edited")
    watch_parser.add_argument("--success-hints", action="store_true", help="show hints on success")
    for name, text in (
        ("run", "runs/tests a single exercise"),
        ("reset", 'resets a single exercise using "git stash -- <filename>"'),
        ("hint", "returns a hint for the given exercise"),
    ):
        command = sub.add_parser(name, help=text)
        command.add_argument("name", help="the name of the exercise")
    list_parser = sub.add_parser("list", help="lists the available exercises")
    list_parser.add_argument("-p", "--paths", action="store_true",
                             help="show only the paths of the exercises")
    list_parser.add_argument("-n", "--names", action="store_true",
                             help="show only the names of the exercises")
    list_parser.add_argument("-f", "--filter", dest="pattern", default=None,
                             help="comma separated patterns to match exercise names")
    list_parser.add_argument("-u", "--unsolved", action="store_true",
                             help="display only exercises not yet solved")
    list_parser.add_argument("-s", "--solved", action="store_true",
                             help="display only exercises that have been solved")
    sub.add_parser("lsp", help="enable rust-analyzer for exercises")
    sub.add_parser("cicvverify", help="grade every exercise and write a report")
    return parser


def _cmd_list(args, exercises, verbose) -> int:
    list_exercises(
        exercises, args.paths, args.names, args.pattern, args.unsolved, args.solved
    )
    return 0


def _cmd_run(args, exercises, verbose) -> int:
    try:
        run(find_exercise(args.name, exercises), verbose)
    except ExerciseFailed:
        return 1
    return 0


def _cmd_reset(args, exercises, verbose) -> int:
    try:
        reset(find_exercise(args.name, exercises))
    except ExerciseFailed:
        return 1
    return 0


def _cmd_hint(args, exercises, verbose) -> int:
    print(find_exercise(args.name, exercises).hint)
    return 0


def _cmd_verify(args, exercises, verbose) -> int:
    try:
        verify(exercises, (0, len(exercises)), verbose, False)
    except ExerciseFailed:
        return 1
    return 0


def _cmd_cicv(args, exercises, verbose) -> int:
    cicv_verify(exercises, verbose, CHECK_RESULT_PATH)
    return 0


def _cmd_lsp(args, exercises, verbose) -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError:
        print("Couldn't find toolchain path, do you have `rustc` installed?", file=sys.stderr)
        return 1
    project.exercises_to_json()
    if not project.crates:
        print("Failed find any exercises, make sure you're in the exercises' folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _cmd_watch(args, exercises, verbose) -> int:
    try:
        status = watch(exercises, verbose, args.success_hints)
    except OSError as err:
        print(f"Error: Could not watch your progress. Error message was {err!r}.")
        print(
            "Most likely you've run out of disk space or your "
            "'inotify limit' has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if "NO_EMOJI" in os.environ else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FINISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `drillrunner watch` again"
        )
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "run": _cmd_run,
    "reset": _cmd_reset,
    "hint": _cmd_hint,
    "verify": _cmd_verify,
    "cicvverify": _cmd_cicv,
    "lsp": _cmd_lsp,
    "watch": _cmd_watch,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    args = _build_parser().parse_args(argv)

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path("info.toml").exists():
        print(f"{os.path.abspath(sys.argv[0])} must be run from the exercises directory")
        print("Try `cd` into the directory that holds info.toml!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = read_exercise_list("info.toml")
    verbose = args.nocapture

    if args.command is None:
        print(f"{DEFAULT_OUT}\n")
        return 0

    try:
        return _COMMANDS[args.command](args, exercises, verbose)
    except LookupError as err:
        print(err)
        return 1
    except BrokenPipeError:
        return 0
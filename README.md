# drillrunner

drillrunner drives a collection of small programming exercises. Each exercise
is a Rust source file that does not compile, or whose tests fail, and your job
is to fix it. drillrunner compiles and runs the exercises, tells you what is
wrong, and moves you on to the next one once you are done.

An exercise counts as finished when two things are true: it builds and runs
cleanly, and its `// I AM NOT DONE` marker comment has been removed.

## Requirements

- Python 3.11 or newer.
- `rustc` on your `PATH`. drillrunner checks for it at start-up and exits with
  status 1 if it cannot run `rustc --version`.
- `cargo`, for clippy and build-script exercises.
- `git`, for the `reset` command.

## Installation

```
pip install .
```

To install the test dependencies as well, run `pip install .[test]`.

## Setting up a course directory

Run drillrunner from a directory that holds an `info.toml` file. The file lists
the exercises in order:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"
hint = "Remove the I AM NOT DONE comment to move on."

[[exercises]]
name = "if1"
path = "exercises/if/if1.rs"
mode = "test"
hint = "Compare the two numbers with an if expression."
```

Every entry needs `name`, `path`, `mode` and `hint`. `mode` takes one of these
values:

- `compile`: build the file with `rustc` as a program, then run it.
- `test`: build the file with `rustc --test`, then run the tests with
  `--show-output`.
- `clippy`: write `exercises/clippy/Cargo.toml`, build the file, then lint it
  with `cargo clippy -- -D warnings -D clippy::float_cmp`.
- `buildscript`: write `exercises/tests/Cargo.toml`, then run `cargo test`.

The compiled binary goes to a temporary file (`./temp_<pid>_<thread>`) in the
current directory and is removed afterwards.

If `info.toml` is missing, drillrunner prints a message and exits with status 1.

## Commands

```
drillrunner                 # welcome text and getting-started notes
drillrunner --version       # print the version (also -v)
drillrunner watch           # verify in order, re-check when files under ./exercises change
drillrunner verify          # verify every exercise in order once
drillrunner run NAME        # compile and run one exercise ("next" = first unfinished)
drillrunner hint NAME       # print the hint for an exercise
drillrunner reset NAME      # run "git stash -- <path>" for an exercise
drillrunner list            # table of exercises with Done/Pending status
drillrunner lsp             # write rust-project.json for rust-analyzer
drillrunner cicvverify      # run every exercise, write a JSON report
```

`verify` and `watch` stop at the first exercise that fails to build or run, or
that still carries its marker. They then show the lines around the marker.
`verify` exits with status 1 in that case. `run` exits with status 1 when the
exercise fails. An unknown exercise name also gives status 1.

Options of `list`:

- `-p/--paths` prints only the paths.
- `-n/--names` prints only the names.
- `-f/--filter PATTERNS` keeps only the exercises whose name or path contains
  one of the comma-separated patterns. The patterns are lower-cased.
- `-s/--solved` shows only the finished exercises.
- `-u/--unsolved` shows only the unfinished ones.

The listing ends with a progress line such as
`Progress: You completed 3 / 10 exercises (30.0 %).`

The global `--nocapture` flag shows the output of test exercises.
`watch --success-hints` shows the exercise's hint after it succeeds.

While watch mode is running you can type these commands:

- `hint` prints the hint for the exercise that last failed.
- `clear` clears the screen.
- `quit` leaves watch mode.
- `!<cmd>` runs a command, such as `!rustc --explain E0381`.
- `help` lists these commands.

`lsp` takes the standard library source path from `RUST_SRC_PATH`. If that is
not set, it asks `rustc --print sysroot`. It then adds a crate for every `.rs`
file under `./exercises` and writes `./rust-project.json`.

`cicvverify` runs all exercises concurrently and prints progress as each one
finishes. It then writes `.github/result/check_result.json`, which holds a
pass/fail entry for each exercise plus totals and the elapsed seconds. The
`.github/result` directory must already exist.

Set `NO_EMOJI` in the environment to get plain-text status markers.

## Using it as a library

```python
from drillrunner.exercise import read_exercise_list
from drillrunner.verify import verify, ExerciseFailed

exercises = read_exercise_list("info.toml")
try:
    verify(exercises, (0, len(exercises)), verbose=False, success_hints=False)
except ExerciseFailed as failed:
    print(failed.exercise.hint)
```

The main library entry points:

- `drillrunner.exercise`
  - `Exercise.state()` returns `None` for a finished exercise, or a `Pending`
    that holds the `ContextLine`s around the marker.
  - `Exercise.compile()` returns a `CompiledExercise`, which can be used as a
    context manager. It raises `ExerciseError` when the build fails.
  - `load_exercises(text)` and `read_exercise_list(path)` parse an exercise list.
- `drillrunner.run`
  - `run(exercise, verbose)` and `reset(exercise)` raise `ExerciseFailed` on
    failure.
- `drillrunner.project`
  - `RustAnalyzerProject` builds and writes `rust-project.json`.
- `drillrunner.cli`
  - `find_exercise`, `list_exercises`, `watch`, `cicv_verify` and `main` back
    the commands above.

## What it does not do

drillrunner ships no exercises and no `info.toml`. You supply the course
directory. It does not compile anything itself: every build and test goes
through `rustc` and `cargo`.
# tests/pipe/test_session.py
"""Tests for process launch, environment composition and isolation."""

from __future__ import annotations

from pathlib import Path

import pytest

from shardpipe.contracts import FileSplit, PipeExitError, PipeLaunchError, TaskContext
from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.pipe.session import ProcessSession, compose_environment, prepare_isolated_working_dir
from tests.conftest import make_spec, requires_command


class TestComposeEnvironment:
    def test_overrides_layer_over_base(self) -> None:
        env = compose_environment({"B": "override"}, base={"A": "1", "B": "2"})
        assert env == {"A": "1", "B": "override"}

    def test_defaults_to_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHARDPIPE_TEST_AMBIENT", "present")
        env = compose_environment({})
        assert env["SHARDPIPE_TEST_AMBIENT"] == "present"

    def test_split_hints_win(self) -> None:
        ctx = TaskContext(partition_id=0, split=FileSplit(path="/some/path"))
        env = compose_environment({"map_input_file": "configured"}, ctx, base={})
        assert env == {"map_input_file": "/some/path", "mapreduce_map_input_file": "/some/path"}

    def test_inputs_not_mutated(self) -> None:
        base = {"A": "1"}
        overrides = {"B": "2"}
        compose_environment(overrides, base=base)
        assert base == {"A": "1"}
        assert overrides == {"B": "2"}


class TestPrepareIsolatedWorkingDir:
    def test_creates_directory_with_symlinks(self, tmp_path: Path) -> None:
        staged = tmp_path / "staged.txt"
        staged.write_text("data")
        ctx = TaskContext(partition_id=1, attempt_id=0, stage_id=5)

        workdir = prepare_isolated_working_dir(tmp_path / "tasks", ctx, [staged])

        assert workdir.is_absolute()
        assert workdir.parent == tmp_path / "tasks"
        assert workdir.name == ctx.working_dir_name()
        link = workdir / "staged.txt"
        assert link.is_symlink()
        assert link.read_text() == "data"

    def test_repeat_preparation_is_a_no_op(self, tmp_path: Path) -> None:
        staged = tmp_path / "staged.txt"
        staged.write_text("data")
        ctx = TaskContext(partition_id=0)
        first = prepare_isolated_working_dir(tmp_path / "tasks", ctx, [staged])
        second = prepare_isolated_working_dir(tmp_path / "tasks", ctx, [staged])
        assert first == second
        assert sorted(p.name for p in second.iterdir()) == ["staged.txt"]

    def test_distinct_tasks_get_distinct_directories(self, tmp_path: Path) -> None:
        a = prepare_isolated_working_dir(tmp_path, TaskContext(partition_id=0), [])
        b = prepare_isolated_working_dir(tmp_path, TaskContext(partition_id=1), [])
        assert a != b

    def test_conflicting_link_raises(self, tmp_path: Path) -> None:
        first = tmp_path / "one" / "same.txt"
        second = tmp_path / "two" / "same.txt"
        for path in (first, second):
            path.parent.mkdir()
            path.write_text(path.parent.name)
        with pytest.raises(FileExistsError):
            prepare_isolated_working_dir(tmp_path / "tasks", TaskContext(partition_id=0), [first, second])


class TestProcessSession:
    def test_missing_executable_is_launch_error(self) -> None:
        spec = make_spec(["some_nonexistent_command", "--with-arg"])
        with pytest.raises(PipeLaunchError) as exc_info:
            ProcessSession(spec).start()
        assert "some_nonexistent_command --with-arg" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_isolation_failure_is_launch_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        spec = make_spec("cat", working_dir=WorkingDirMode.ISOLATED, working_dir_root=blocker)
        with pytest.raises(PipeLaunchError, match="cat"):
            ProcessSession(spec, TaskContext(partition_id=0)).start()

    def test_isolation_without_task_context_is_launch_error(self, tmp_path: Path) -> None:
        spec = make_spec("cat", working_dir=WorkingDirMode.ISOLATED, working_dir_root=tmp_path)
        with pytest.raises(PipeLaunchError, match="task context") as exc_info:
            ProcessSession(spec).start()
        assert isinstance(exc_info.value.cause, ValueError)
        assert list(tmp_path.iterdir()) == []

    @requires_command("sh")
    def test_exit_status_is_cached(self) -> None:
        handle = ProcessSession(make_spec(["sh", "-c", "exit 3"], stderr=StderrMode.DISCARD)).start()
        handle.stdin.close()  # type: ignore[union-attr]
        assert handle.wait() == 3
        assert handle.wait() == 3
        with pytest.raises(PipeExitError) as exc_info:
            handle.check_exit()
        assert exc_info.value.exit_code == 3
        assert exc_info.value.command == "sh -c exit 3"
        handle.close()

    @requires_command("pwd")
    def test_isolated_process_runs_in_its_directory(self, tmp_path: Path) -> None:
        spec = make_spec("pwd", working_dir=WorkingDirMode.ISOLATED, working_dir_root=tmp_path / "tasks")
        ctx = TaskContext(partition_id=4)
        handle = ProcessSession(spec, ctx).start()
        handle.stdin.close()  # type: ignore[union-attr]
        output = handle.stdout.read().decode().strip()  # type: ignore[union-attr]
        handle.close()
        assert handle.working_dir is not None
        assert Path(output).resolve() == handle.working_dir.resolve()

    @requires_command("true")
    def test_cleanup_removes_isolated_directory(self, tmp_path: Path) -> None:
        spec = make_spec(
            "true",
            working_dir=WorkingDirMode.ISOLATED,
            working_dir_root=tmp_path / "tasks",
            cleanup_working_dir=True,
        )
        handle = ProcessSession(spec, TaskContext(partition_id=0)).start()
        handle.stdin.close()  # type: ignore[union-attr]
        assert handle.working_dir is not None and handle.working_dir.exists()
        handle.close()
        assert not handle.working_dir.exists()

    @requires_command("printenv")
    def test_environment_reaches_subprocess(self) -> None:
        spec = make_spec("printenv MY_TEST_ENV", env={"MY_TEST_ENV": "LALALA"})
        handle = ProcessSession(spec).start()
        handle.stdin.close()  # type: ignore[union-attr]
        assert handle.stdout.read() == b"LALALA\n"  # type: ignore[union-attr]
        handle.close()
        assert handle.wait() == 0

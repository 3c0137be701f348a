"""Tests for the elevated-shell fallback source.

These run the real session machinery against a stand-in inotifywait script
and an unprivileged shell.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import ExitingShellElevator, wait_until
from rootwatch.shell_watcher import EXIT_MARKER, SessionState, ShellSession, ShellWatchSource
from rootwatch_core.errors import BinaryNotFoundError, SourceStartError
from rootwatch_core.models import EventMask, WatchTarget

VALID_LINE = '"/data/app","CREATE,CLOSE_WRITE","foo.txt"'


@pytest.fixture
def make_source(elevator, resolver_for, notifier):
    """Factory for a ShellWatchSource collecting events into a list."""
    sources = []

    def make(binary, path="/data/app", mask=EventMask.ALL_EVENTS, elevator=elevator):
        received = []
        source = ShellWatchSource(
            WatchTarget(path, mask),
            received.append,
            elevator=elevator,
            resolver=resolver_for(binary),
            notifier=notifier,
        )
        source.received = received
        sources.append(source)
        return source

    yield make

    for source in sources:
        source.stop()


class TestShellSession:
    """Tests for ShellSession lifecycle."""

    def test_lines_and_terminate(self):
        lines = []
        session = ShellSession(["sh"], on_line=lines.append)
        assert session.state == SessionState.IDLE

        session.open()
        assert session.is_running
        session.add_command("echo one; echo two")
        assert wait_until(lambda: lines == ["one\n", "two\n"])

        session.terminate()
        assert session.state == SessionState.TERMINATED
        assert session.process.poll() is not None
        assert session.commands == ["echo one; echo two"]

    def test_commands_run_in_order(self):
        lines = []
        session = ShellSession(["sh"], on_line=lines.append)
        session.open()
        session.add_command("sleep 0.2; echo first")
        session.add_command("echo second")
        assert wait_until(lambda: len(lines) == 2)
        assert lines == ["first\n", "second\n"]
        session.terminate()

    def test_open_twice_rejected(self):
        session = ShellSession(["sh"], on_line=lambda line: None)
        session.open()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                session.open()
        finally:
            session.terminate()

    def test_launch_failure(self, tmp_path):
        session = ShellSession([str(tmp_path / "no-such-shell")], on_line=lambda line: None)
        with pytest.raises(OSError):
            session.open()
        assert session.state == SessionState.TERMINATED

    def test_add_command_after_terminate(self):
        session = ShellSession(["sh"], on_line=lambda line: None)
        session.open()
        session.terminate()
        session.terminate()
        with pytest.raises(RuntimeError, match="not running"):
            session.add_command("echo late")
        assert session.commands == []

    def test_unexpected_exit_reported(self):
        exits = []
        session = ShellSession(["sh", "-c", "exit 7"], on_line=lambda line: None, on_exit=exits.append)
        session.open()
        assert wait_until(lambda: exits == [7])
        assert session.state == SessionState.TERMINATED


class TestShellWatchSource:
    """Tests for ShellWatchSource."""

    def test_build_command(self, make_source, fake_inotifywait):
        binary = fake_inotifywait()
        source = make_source(binary, path="/data/my app")
        command = source.build_command("/data/my app")
        assert command == f"{binary} -q -m -r -c '/data/my app' </dev/null"

    def test_build_command_with_mask(self, make_source, fake_inotifywait):
        binary = fake_inotifywait()
        source = make_source(binary)
        command = source.build_command("/data/app", EventMask.CREATE | EventMask.DELETE)
        assert command == f"{binary} -q -m -r -c -e create -e delete /data/app </dev/null"

    def test_event_from_output(self, make_source, fake_inotifywait, tmp_path):
        """A CSV line becomes one event with the unioned mask."""
        source = make_source(fake_inotifywait(VALID_LINE))
        source.start()

        assert wait_until(lambda: len(source.received) == 1)
        event = source.received[0]
        assert event.mask == EventMask.CREATE | EventMask.CLOSE_WRITE
        assert event.resolved_path == Path("/data/app/foo.txt")
        assert source.state == SessionState.RUNNING

        args = next(tmp_path.glob("args-*.txt")).read_text().split("\n")
        assert args[:5] == ["-q", "-m", "-r", "-c", "/data/app"]

    def test_malformed_line_skipped(self, make_source, fake_inotifywait, notifier):
        """A bad line is reported and the session keeps processing."""
        source = make_source(fake_inotifywait('"/data/app","CREATE"', VALID_LINE))
        source.start()

        assert wait_until(lambda: len(source.received) == 1)
        assert source.received[0].name == "foo.txt"
        assert len(notifier.warnings) == 1
        assert "malformed" in notifier.warnings[0]
        assert source.parser.rejected == 1
        assert source.state == SessionState.RUNNING

    def test_start_is_idempotent(self, make_source, fake_inotifywait):
        source = make_source(fake_inotifywait())
        source.start()
        session = source.session
        source.start()
        assert source.session is session
        assert len(session.commands) == 1

    def test_background_command(self):
        command = ShellWatchSource.background_command(2, "inotifywait -m /data </dev/null")
        assert command == f"( inotifywait -m /data </dev/null; echo {EXIT_MARKER} 2 $? ) &"

    def test_add_target_reuses_session(self, make_source, fake_inotifywait):
        source = make_source(fake_inotifywait())
        source.start()
        session = source.session
        source.add_target("/data/other")
        assert source.session is session
        assert len(session.commands) == 2
        assert "/data/other" in session.commands[1]
        assert source.watched_paths == ["/data/app", "/data/other"]

    def test_added_target_reports_events(self, make_source, fake_inotifywait):
        """A second watch runs alongside the first instead of queueing behind it."""
        source = make_source(fake_inotifywait(echo_path=True), path="/data/one")
        source.start()
        source.add_target("/data/two")

        assert wait_until(
            lambda: {event.directory for event in source.received} == {"/data/one", "/data/two"}
        )
        assert all(event.mask == EventMask.CREATE for event in source.received)
        assert source.state == SessionState.RUNNING

    def test_no_command_after_stop(self, make_source, fake_inotifywait):
        source = make_source(fake_inotifywait())
        source.start()
        session = source.session
        source.stop()

        assert session.state == SessionState.TERMINATED
        assert source.state == SessionState.TERMINATED
        with pytest.raises(RuntimeError, match="not running"):
            source.add_target("/data/other")
        assert len(session.commands) == 1
        assert source.watched_paths == []

    def test_stop_is_idempotent(self, make_source, fake_inotifywait):
        source = make_source(fake_inotifywait())
        source.start()
        source.stop()
        source.stop()
        assert source.state == SessionState.TERMINATED

    def test_restart_opens_new_session(self, make_source, fake_inotifywait):
        source = make_source(fake_inotifywait())
        source.start()
        first = source.session
        source.stop()
        source.start()
        assert source.session is not first
        assert source.state == SessionState.RUNNING

    def test_unexpected_exit(self, make_source, fake_inotifywait, notifier):
        """The watch utility dying under a persistent shell ends the session, reported once."""
        source = make_source(fake_inotifywait(VALID_LINE, exit_after=True))
        source.start()

        assert wait_until(lambda: len(notifier.errors) == 1)
        assert "/data/app exited unexpectedly (exit code 3)" in notifier.errors[0]
        assert source.state == SessionState.TERMINATED
        assert len(source.received) == 1
        assert source.watched_paths == []

    def test_one_of_two_watches_exits(self, make_source, fake_inotifywait, notifier):
        """A watch ending while another still runs is reported; the session stays up."""
        source = make_source(fake_inotifywait())
        source.start()
        source.add_target("/data/other")

        source._on_line(f"{EXIT_MARKER} 2 1\n")

        assert len(notifier.errors) == 1
        assert "/data/other exited unexpectedly (exit code 1)" in notifier.errors[0]
        assert source.state == SessionState.RUNNING
        assert source.watched_paths == ["/data/app"]
        assert source.received == []

    def test_shell_exit_reported(self, make_source, fake_inotifywait, notifier):
        """The shell itself exiting is reported with its status."""
        source = make_source(fake_inotifywait(), elevator=ExitingShellElevator())
        source.start()

        assert wait_until(lambda: len(notifier.errors) == 1)
        assert "exited unexpectedly (exit code 4)" in notifier.errors[0]
        assert source.state == SessionState.TERMINATED

    def test_elevation_unavailable(self, make_source, fake_inotifywait):
        elevator = MagicMock()
        elevator.name = "sudo"
        elevator.is_available.return_value = False
        source = make_source(fake_inotifywait(), elevator=elevator)
        with pytest.raises(SourceStartError, match="Elevation via sudo is not available"):
            source.start()
        assert source.session is None

    def test_binary_missing(self, make_source, tmp_path):
        source = make_source(tmp_path / "missing-inotifywait")
        with pytest.raises(SourceStartError) as excinfo:
            source.start()
        assert isinstance(excinfo.value.__cause__, BinaryNotFoundError)
        assert source.session is None

    def test_shell_launch_failure(self, make_source, fake_inotifywait, tmp_path):
        elevator = MagicMock()
        elevator.is_available.return_value = True
        elevator.shell_argv.return_value = [str(tmp_path / "no-such-shell")]
        source = make_source(fake_inotifywait(), elevator=elevator)
        with pytest.raises(SourceStartError, match="Failed to launch elevated shell"):
            source.start()
        assert source.session is None

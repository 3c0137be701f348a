"""Fallback event source: inotifywait running inside an elevated shell.

Used when the process cannot read the watched path itself. A single shell
session is opened per source. Watch commands are written to the shell's
stdin and started as background jobs, and the shell's stdout is read line
by line on a dedicated thread and parsed into events. Each job reports its
own exit on stdout, so a watch that dies is noticed even though the
elevated shell keeps running.
"""

import logging
import os
import shlex
import signal
import subprocess
import threading
from collections.abc import Callable
from enum import Enum

from rootwatch_core.binaries import ArchitectureBinaryResolver
from rootwatch_core.elevation import Elevator
from rootwatch_core.errors import BinaryNotFoundError, SourceStartError
from rootwatch_core.models import EventMask, SourceKind, WatchTarget
from rootwatch_core.notifier import NoOpNotifier, Notifier
from rootwatch_core.protocol import LineProtocolParser
from rootwatch_core.watchers import EventCallback

logger = logging.getLogger(__name__)

# First word of the line a background watch job prints when it ends
EXIT_MARKER = "__rootwatch_exit__"


class SessionState(str, Enum):
    """Lifecycle of a shell session."""

    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    TERMINATED = "terminated"


class ShellSession:
    """A long-lived shell subprocess with a command queue and a stdout reader.

    Commands are written to the shell's stdin, so the shell serializes them.
    Only the reader thread consumes stdout; callers use open(), add_command()
    and terminate().
    """

    def __init__(
        self,
        argv: list[str],
        on_line: Callable[[str], None],
        on_exit: Callable[[int | None], None] | None = None,
        name: str = "rootwatch-shell",
    ):
        """Initialize session.

        Args:
            argv: Shell command line, e.g. ["sudo", "-n", "sh"]
            on_line: Called on the reader thread for every stdout line
            on_exit: Called on the reader thread if the shell exits on its own
            name: Reader thread name
        """
        self.argv = argv
        self.on_line = on_line
        self.on_exit = on_exit
        self.name = name
        self.state = SessionState.IDLE
        self.process: subprocess.Popen | None = None
        self.commands: list[str] = []
        self._reader: threading.Thread | None = None
        self._terminating = False
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.state == SessionState.RUNNING

    def open(self) -> None:
        """Launch the shell and start reading its output.

        Raises:
            RuntimeError: If the session was already opened
            OSError: If the shell cannot be launched
        """
        with self._lock:
            if self.state != SessionState.IDLE:
                raise RuntimeError(f"Shell session already {self.state.value}")
            self.state = SessionState.LAUNCHING
            try:
                # Own process group, so terminate() reaches the commands the shell runs
                self.process = subprocess.Popen(
                    self.argv,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.DEVNULL,
                    text=True,
                    errors="replace",
                    bufsize=1,
                    start_new_session=True,
                )
            except OSError:
                self.state = SessionState.TERMINATED
                raise
            self.state = SessionState.RUNNING

        self._reader = threading.Thread(target=self._read_stdout, name=self.name, daemon=True)
        self._reader.start()
        logger.debug(f"Opened shell session: {' '.join(self.argv)} (pid {self.process.pid})")

    def add_command(self, command: str) -> None:
        """Queue a command on the running shell.

        Raises:
            RuntimeError: If the session is not running
        """
        with self._lock:
            if self.state != SessionState.RUNNING or self.process is None:
                raise RuntimeError(f"Shell session is not running ({self.state.value})")
            try:
                self.process.stdin.write(command + "\n")
                self.process.stdin.flush()
            except OSError as e:
                raise RuntimeError(f"Shell session stopped accepting commands: {e}") from e
            self.commands.append(command)
        logger.debug(f"Shell command: {command}")

    def terminate(self, timeout: float = 2.0) -> None:
        """Stop the shell. Idempotent; does not wait for the reader thread."""
        with self._lock:
            if self._terminating:
                return
            self._terminating = True
            self.state = SessionState.TERMINATED
            process = self.process

        if process is None:
            return

        try:
            process.stdin.close()
        except OSError as e:
            logger.debug(f"Error closing shell stdin: {e}")

        try:
            os.killpg(process.pid, signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            # Group already gone, or owned by another user after elevation
            process.terminate()

        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Shell session (pid {process.pid}) did not exit, killing it")
            process.kill()
            process.wait()
        logger.debug(f"Terminated shell session (pid {process.pid})")

    def _read_stdout(self) -> None:
        stdout = self.process.stdout
        try:
            for line in iter(stdout.readline, ""):
                if self._terminating:
                    break
                try:
                    self.on_line(line)
                except Exception as e:
                    logger.exception(f"Error handling shell output line {line!r}: {e}")
        finally:
            # Closing our end makes an orphaned watcher fail on its next write
            stdout.close()
            self._finish()

    def _finish(self) -> None:
        with self._lock:
            if self._terminating:
                return
            self.state = SessionState.TERMINATED
        try:
            returncode = self.process.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            returncode = None
        if self.on_exit is not None:
            self.on_exit(returncode)


class ShellWatchSource:
    """Streams events from inotifywait running in an elevated shell.

    Each watch command runs in the background of the one shell session, so
    later targets start while earlier watches keep running. When a watch ends
    the shell prints an exit line carrying its id and status; the session is
    terminated once no watch is left.
    """

    kind = SourceKind.SHELL

    def __init__(
        self,
        target: WatchTarget,
        callback: EventCallback,
        elevator: Elevator,
        resolver: ArchitectureBinaryResolver,
        notifier: Notifier | None = None,
    ):
        """Initialize source.

        Args:
            target: Path and mask to watch
            callback: Receives every parsed event, on the reader thread
            elevator: Provides the elevated shell
            resolver: Provides the inotifywait binary
            notifier: Receives diagnostics (defaults to NoOpNotifier)
        """
        self.target = target
        self.callback = callback
        self.elevator = elevator
        self.resolver = resolver
        self.notifier = notifier or NoOpNotifier()
        self.parser = LineProtocolParser()
        self.session: ShellSession | None = None
        self._watches: dict[int, str] = {}
        self._next_watch = 0
        self._watch_lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        if self.session is None:
            return SessionState.IDLE
        return self.session.state

    @property
    def watched_paths(self) -> list[str]:
        """Paths whose watch command is still running, in issue order."""
        with self._watch_lock:
            return list(self._watches.values())

    def build_command(self, path: str, mask: EventMask = EventMask.ALL_EVENTS) -> str:
        """Build the quiet, monitoring, recursive, CSV inotifywait command for path.

        Raises:
            BinaryNotFoundError: If the binary cannot be resolved
        """
        binary = self.resolver.resolve()
        args = [str(binary), "-q", "-m", "-r", "-c"]
        if mask != EventMask.ALL_EVENTS:
            for name in EventMask(mask).names():
                args += ["-e", name.lower()]
        # stdin redirected so the watcher never consumes queued commands
        return " ".join(shlex.quote(arg) for arg in [*args, path]) + " </dev/null"

    @staticmethod
    def background_command(watch_id: int, command: str) -> str:
        """Run command as a background job that reports its exit status on stdout."""
        return f"( {command}; echo {EXIT_MARKER} {watch_id} $? ) &"

    def start(self) -> None:
        """Open the elevated session and issue the watch command.

        Blocks while the binary is provisioned on first use. A stopped or
        ended source is restarted with a new session.

        Raises:
            SourceStartError: If elevation, the binary or the shell is unavailable
        """
        if self.session is not None and self.session.is_running:
            return

        if not self.elevator.is_available():
            raise SourceStartError(f"Elevation via {self.elevator.name} is not available")

        try:
            command = self.build_command(self.target.path, self.target.mask)
        except BinaryNotFoundError as e:
            raise SourceStartError(f"Cannot watch {self.target.path}: {e}") from e

        with self._watch_lock:
            self._watches.clear()

        session = ShellSession(
            self.elevator.shell_argv(),
            on_line=self._on_line,
            on_exit=self._on_exit,
            name=f"rootwatch-shell:{os.path.basename(self.target.path) or '/'}",
        )
        self.session = session
        try:
            session.open()
            self._issue(session, self.target.path, command)
        except (OSError, RuntimeError) as e:
            session.terminate()
            self.session = None
            raise SourceStartError(f"Failed to launch elevated shell for {self.target.path}: {e}") from e

        logger.info(f"Watching {self.target.path} through {self.elevator.name}")

    def add_target(self, path: str, mask: EventMask = EventMask.ALL_EVENTS) -> None:
        """Watch another path in the running session instead of a new subprocess.

        Raises:
            RuntimeError: If the source is not running
        """
        session = self.session
        if session is None or not session.is_running:
            raise RuntimeError("Shell watch source is not running")
        path = os.path.abspath(path)
        self._issue(session, path, self.build_command(path, mask))

    def stop(self) -> None:
        """Terminate the session. No further commands are issued after this."""
        session = self.session
        if session is None:
            return
        was_running = session.is_running
        session.terminate()
        with self._watch_lock:
            self._watches.clear()
        if was_running:
            logger.info(f"Stopped watching {self.target.path}")

    def _issue(self, session: ShellSession, path: str, command: str) -> None:
        # Registered before writing, so the exit line can never arrive first
        with self._watch_lock:
            self._next_watch += 1
            watch_id = self._next_watch
            self._watches[watch_id] = path
        try:
            session.add_command(self.background_command(watch_id, command))
        except RuntimeError:
            with self._watch_lock:
                self._watches.pop(watch_id, None)
            raise

    def _on_line(self, line: str) -> None:
        if line.startswith(EXIT_MARKER):
            self._on_watch_exit(line)
            return
        event = self.parser.try_parse(line)
        if event is None:
            self.notifier.warning(f"Skipped malformed inotifywait output: {line.rstrip()!r}")
            return
        self.callback(event)

    def _on_watch_exit(self, line: str) -> None:
        try:
            _, watch_id, returncode = line.split()
            watch_id = int(watch_id)
        except ValueError:
            self.notifier.warning(f"Skipped malformed exit report: {line.rstrip()!r}")
            return

        with self._watch_lock:
            path = self._watches.pop(watch_id, None)
            remaining = len(self._watches)
        if path is None:
            return

        session = self.session
        if remaining == 0 and session is not None:
            session.terminate()
        message = f"inotifywait session for {path} exited unexpectedly (exit code {returncode})"
        logger.warning(message)
        self.notifier.error(message)

    def _on_exit(self, returncode: int | None) -> None:
        with self._watch_lock:
            self._watches.clear()
        message = f"inotifywait session for {self.target.path} exited unexpectedly (exit code {returncode})"
        logger.warning(message)
        self.notifier.error(message)

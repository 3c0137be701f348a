"""Elevated execution collaborators.

An elevator knows how to launch a shell with raised privileges that reads
commands from stdin. It does not acquire privileges itself: it relies on
``sudo`` or ``su`` already being configured for non-interactive use.
"""

import logging
import os
import shutil
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 5.0


class Elevator(Protocol):
    """Protocol for launching an elevated command shell."""

    name: str

    def is_available(self) -> bool:
        """Whether an elevated shell can be launched without prompting."""
        ...

    def shell_argv(self) -> list[str]:
        """Argument vector of a shell that reads commands from stdin."""
        ...


class _CheckedElevator:
    """Elevator whose availability is checked once by running a trivial command."""

    name = ""
    program = ""
    check_args: list[str] = []
    shell_args: list[str] = []

    def __init__(self):
        self._available: bool | None = None

    def is_available(self) -> bool:
        if self._available is None:
            self._available = self._check()
            logger.debug(f"Elevation via {self.name} available: {self._available}")
        return self._available

    def shell_argv(self) -> list[str]:
        return [self.program, *self.shell_args]

    def _check(self) -> bool:
        if shutil.which(self.program) is None:
            return False
        try:
            # New session: no controlling tty, so a password prompt fails instead of hanging
            result = subprocess.run(
                [self.program, *self.check_args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                timeout=CHECK_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Elevation check '{self.program}' failed: {e}")
            return False
        return result.returncode == 0


class SudoElevator(_CheckedElevator):
    """Run the shell through ``sudo -n`` (passwordless sudo required)."""

    name = "sudo"
    program = "sudo"
    check_args = ["-n", "true"]
    shell_args = ["-n", "sh"]


class SuElevator(_CheckedElevator):
    """Run the shell through ``su``, as on rooted devices."""

    name = "su"
    program = "su"
    check_args = ["-c", "true"]
    shell_args = []


class NoElevator:
    """Plain ``sh`` with the caller's own privileges.

    Only counts as available when the process already runs as root, unless
    always_available is set.
    """

    name = "none"

    def __init__(self, always_available: bool = False):
        self.always_available = always_available

    def is_available(self) -> bool:
        return self.always_available or os.geteuid() == 0

    def shell_argv(self) -> list[str]:
        return ["sh"]


ELEVATORS = {
    "sudo": SudoElevator,
    "su": SuElevator,
    "none": NoElevator,
}


def get_elevator(name: str) -> Elevator:
    """Create an elevator by configuration name.

    Raises:
        ValueError: If name is not one of sudo, su, none
    """
    try:
        factory = ELEVATORS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown elevation method '{name}'. Valid methods: {', '.join(ELEVATORS)}"
        ) from None
    return factory()

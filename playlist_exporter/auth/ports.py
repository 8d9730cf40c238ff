"""
Callback port reclamation for playlist-exporter.

A previous run that was killed mid-handshake can leave a process holding
the callback port, and the new listener then cannot bind. Before binding,
reclaim_port() asks the operating system who is listening on the port and
forcibly terminates that process.

Platform strategies:
    UnixPortInspector       lsof -i :<port>, PID in column 2; kill -9
    WindowsPortInspector    netstat -ano -p TCP, PID in column 5 of the
                            LISTENING row; taskkill /F /PID

Known fragility:
    The PID is read from a fixed column of the inspection tool's text
    output. A different tool version or locale can shift columns, and the
    wrong process may then be terminated. This is accepted for a
    single-user command-line tool.

Usage:
    reclaim_port(8081)                       # inspector chosen from sys.platform
    reclaim_port(8081, inspector=fake)       # tests
"""

import os
import subprocess
import sys

from playlist_exporter.core.exceptions import PortInUseError
from playlist_exporter.core.logger import get_logger

logger = get_logger(__name__)


# Seconds allowed for the inspection and kill commands
COMMAND_TIMEOUT = 10


class PortInspector:
    """
    Finds and terminates the process listening on a TCP port.

    Subclasses provide the commands and the output parser for one family
    of operating systems; the control flow lives here.
    """

    name = "generic"

    def inspect_command(self, port: int) -> list[str]:
        raise NotImplementedError

    def kill_command(self, pid: int) -> list[str]:
        raise NotImplementedError

    def parse_pid(self, output: str, port: int) -> int | None:
        """
        Extract the listening PID from inspection output.

        Returns:
            The PID, or None if the output contains no data row.

        Raises:
            PortInUseError: If a data row exists but its PID column
                            cannot be parsed.
        """
        raise NotImplementedError

    def find_listener_pid(self, port: int) -> int | None:
        """
        Return the PID of the process listening on port, or None.

        A non-zero exit status of the inspection command is treated as
        "no process found" (lsof exits 1 when nothing matches).

        Raises:
            PortInUseError: If the inspection tool is missing, cannot be
                            run, hangs, or its output cannot be parsed.
        """
        command = self.inspect_command(port)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except FileNotFoundError as e:
            raise PortInUseError(
                f"Cannot inspect port {port}: '{command[0]}' is not installed",
                details={"port": port, "command": command}
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PortInUseError(
                f"Cannot inspect port {port}: {e}",
                details={"port": port, "command": command, "original_error": str(e)}
            ) from e

        if completed.returncode != 0:
            logger.debug(
                f"'{' '.join(command)}' exited with {completed.returncode}, "
                f"assuming port {port} is free"
            )
            return None

        return self.parse_pid(completed.stdout, port)

    def terminate(self, pid: int) -> None:
        """
        Forcibly terminate a process.

        Raises:
            PortInUseError: If the kill command is missing or fails
                            (typically permission denied).
        """
        command = self.kill_command(pid)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PortInUseError(
                f"Failed to kill process {pid}: {e}",
                details={"pid": pid, "command": command, "original_error": str(e)}
            ) from e

        if completed.returncode != 0:
            raise PortInUseError(
                f"Failed to kill process {pid}: {completed.stderr.strip() or completed.returncode}",
                details={"pid": pid, "command": command, "returncode": completed.returncode}
            )


class UnixPortInspector(PortInspector):
    """
    lsof based inspector for Linux and macOS.

    Example lsof output:
        COMMAND  PID     USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
        main    12345    user    8u  IPv6  0x123456789abcdef      0t0  TCP *:8081 (LISTEN)
    """

    name = "lsof"

    def inspect_command(self, port: int) -> list[str]:
        return ["lsof", "-i", f":{port}"]

    def kill_command(self, pid: int) -> list[str]:
        return ["kill", "-9", str(pid)]

    def parse_pid(self, output: str, port: int) -> int | None:
        rows = [line for line in output.splitlines()[1:] if line.strip()]
        if not rows:
            return None

        # Prefer the listening socket over client connections to the port
        row = next((line for line in rows if "(LISTEN)" in line), rows[0])
        fields = row.split()
        if len(fields) < 3 or not fields[1].isdigit():
            raise PortInUseError(
                f"Cannot identify the process using port {port}",
                details={"port": port, "row": row}
            )
        return int(fields[1])


class WindowsPortInspector(PortInspector):
    """
    netstat based inspector for Windows.

    Example netstat output:
        Proto  Local Address          Foreign Address        State           PID
        TCP    0.0.0.0:8081          0.0.0.0:0              LISTENING       12345
    """

    name = "netstat"

    def inspect_command(self, port: int) -> list[str]:
        return ["netstat", "-ano", "-p", "TCP"]

    def kill_command(self, pid: int) -> list[str]:
        return ["taskkill", "/F", "/PID", str(pid)]

    def parse_pid(self, output: str, port: int) -> int | None:
        suffix = f":{port}"
        for line in output.splitlines():
            fields = line.split()
            if len(fields) < 5 or "LISTENING" not in fields:
                continue
            if not fields[1].endswith(suffix):
                continue
            if not fields[4].isdigit():
                raise PortInUseError(
                    f"Cannot identify the process using port {port}",
                    details={"port": port, "row": line}
                )
            return int(fields[4])
        return None


def select_inspector(platform: str | None = None) -> PortInspector:
    """
    Pick the inspector for the running operating system.

    Args:
        platform: sys.platform style value. Defaults to sys.platform.

    Raises:
        PortInUseError: On platforms without a supported inspection tool.
    """
    platform = platform or sys.platform

    if platform.startswith("win"):
        return WindowsPortInspector()
    if platform.startswith(("linux", "darwin", "freebsd")):
        return UnixPortInspector()

    raise PortInUseError(
        f"Unsupported operating system: {platform}",
        details={"platform": platform}
    )


def reclaim_port(port: int, inspector: PortInspector | None = None) -> int | None:
    """
    Make sure no other process is listening on port.

    Args:
        port: TCP port the callback listener is about to bind.
        inspector: Platform strategy. Defaults to select_inspector().

    Returns:
        PID of the terminated process, or None if the port was free.

    Raises:
        PortInUseError: If the holder cannot be identified or terminated.
    """
    inspector = inspector or select_inspector()

    pid = inspector.find_listener_pid(port)
    if pid is None:
        logger.debug(f"Port {port} is free")
        return None

    if pid == os.getpid():
        logger.debug(f"Port {port} is held by this process, leaving it alone")
        return None

    logger.warning(f"Found process (PID: {pid}) using port {port}. Attempting to terminate...")
    inspector.terminate(pid)
    logger.info(f"Successfully terminated process using port {port}")
    return pid

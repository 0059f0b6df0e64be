"""Start, track and terminate viewer process trees."""

import asyncio
import logging
import os
import signal
from datetime import datetime, timezone

from openframe.errors import SpawnError
from openframe.supervisor.models import ProcessRecord

logger = logging.getLogger("openframe.supervisor.process_supervisor")


def split_command(command: str) -> list[str]:
    """Split a command string on whitespace.

    Quoting and escaping are not supported, so arguments containing spaces
    cannot be expressed.
    """
    return command.split()


class ProcessSupervisor:
    """
    Owns the running viewer processes for one frame.

    `_processes` maps pid -> ProcessRecord and `_active` keeps the pids in
    start order. Both are only changed by `start` and `kill`, together.
    """

    def __init__(self, kill_signal: int = signal.SIGTERM) -> None:
        self.kill_signal = kill_signal
        self._processes: dict[int, ProcessRecord] = {}
        self._active: list[int] = []
        self._handles: dict[int, asyncio.subprocess.Process] = {}
        self._watchers: set[asyncio.Task] = set()
        self._exec_tasks: set[asyncio.Task] = set()

    @property
    def processes(self) -> dict[int, ProcessRecord]:
        return dict(self._processes)

    @property
    def active_pids(self) -> list[int]:
        return list(self._active)

    async def start(self, command: str) -> ProcessRecord:
        """Launch command in its own process group and begin tracking it."""
        args = split_command(command)
        if not args:
            raise SpawnError("empty command")

        logger.info("Starting process: %s", command)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # new session => child is its own group leader and outlives us
                start_new_session=True,
            )
        except OSError as e:
            logger.error("Failed to start %s: %s", args[0], e)
            raise SpawnError(f"could not launch {args[0]!r}", cause=e) from e

        record = ProcessRecord(pid=process.pid, command=command, started_at=datetime.now(timezone.utc))
        self._processes[process.pid] = record
        self._active.append(process.pid)
        self._handles[process.pid] = process
        self._watch(process)
        logger.debug("Tracked processes: %s", self._active)
        return record

    def kill(self, pid: int) -> None:
        """Signal the process group rooted at pid and stop tracking it.

        Signal failures are logged only. Unknown pids are ignored.
        """
        if pid not in self._processes:
            logger.debug("Ignoring kill for untracked pid %s", pid)
            return

        logger.info("Killing process group %s", pid)
        try:
            os.killpg(pid, self.kill_signal)
        except OSError as e:
            # already gone, or not ours to signal any more
            logger.info("Could not signal process group %s: %s", pid, e)

        del self._processes[pid]
        self._handles.pop(pid, None)
        if pid in self._active:
            self._active.remove(pid)

    def kill_current(self) -> None:
        pid = self.get_current()
        if pid is not None:
            self.kill(pid)

    def get_current(self) -> int | None:
        """Return the oldest active pid (head of the start order)."""
        if self._active:
            return self._active[0]
        return None

    def shutdown(self) -> None:
        """Kill every tracked process group."""
        pids = list(self._active)
        logger.info("Shutting down %d tracked processes...", len(pids))
        for pid in pids:
            self.kill(pid)

    async def exec_detached(self, command: str) -> int | None:
        """Dispatch a shell command without tracking it and return its pid.

        Used for viewer end commands. Returns as soon as the shell is
        spawned; its output and exit code are logged in the background.
        Spawn failures are logged and reported as None rather than raised.
        """
        logger.info("exec: %s", command)
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("exec failed for %r: %s", command, e)
            return None

        self._track(self._log_exec_result(process, command), self._exec_tasks)
        return process.pid

    async def wait_detached(self) -> None:
        """Wait until every dispatched end command has exited and been logged."""
        while self._exec_tasks:
            await asyncio.gather(*list(self._exec_tasks), return_exceptions=True)

    def _watch(self, process: asyncio.subprocess.Process) -> None:
        self._track(self._log_until_exit(process), self._watchers)

    @staticmethod
    def _track(coro, tasks: set[asyncio.Task]) -> None:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    async def _log_exec_result(self, process: asyncio.subprocess.Process, command: str) -> None:
        try:
            stdout, stderr = await process.communicate()
        except Exception as e:
            logger.warning("Lost output of exec %r: %s", command, e)
            return

        if stdout:
            logger.info("exec stdout: %s", stdout.decode(errors="replace").strip())
        if process.returncode != 0:
            logger.warning(
                "exec %r exited with code %s: %s",
                command,
                process.returncode,
                stderr.decode(errors="replace").strip(),
            )
        else:
            logger.info("exec %r finished", command)

    async def _log_until_exit(self, process: asyncio.subprocess.Process) -> None:
        pid = process.pid

        async def _pump(stream: asyncio.StreamReader | None, label: str) -> None:
            if stream is None:
                return
            async for raw_line in stream:
                line = raw_line.decode(errors="replace").rstrip()
                if line:
                    logger.info("[%s] %s: %s", pid, label, line)

        try:
            await asyncio.gather(_pump(process.stdout, "stdout"), _pump(process.stderr, "stderr"))
            exit_code = await process.wait()
        except Exception as e:
            logger.warning("Lost output stream for process %s: %s", pid, e)
            return
        logger.info("Process %s exited with code %s", pid, exit_code)

"""Supervision of external helper processes (dnsmasq).

Each process gets two drain tasks that forward its stdout and stderr to
the log, plus a monitor task that forgets the process once it exits.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ..core.errors import ProcessError

logger = logging.getLogger(__name__)


@dataclass
class ManagedProcess:
    """A running helper process and the tasks that watch it."""

    name: str
    process: asyncio.subprocess.Process
    drains: list[asyncio.Task] = field(default_factory=list)
    monitor: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid


class ProcessSupervisor:
    """Launches, watches and terminates helper processes by name.

    Usage:
        supervisor = ProcessSupervisor()
        await supervisor.start("dnsmasq", "dnsmasq", ["--keep-in-foreground"])
        await supervisor.stop("dnsmasq")
    """

    def __init__(self) -> None:
        self._processes: dict[str, ManagedProcess] = {}

    def is_running(self, name: str) -> bool:
        """Check if a process is tracked under `name`."""
        return name in self._processes

    def names(self) -> list[str]:
        """Names of all tracked processes."""
        return list(self._processes)

    def get(self, name: str) -> ManagedProcess | None:
        return self._processes.get(name)

    async def start(self, name: str, executable: str, args: list[str]) -> ManagedProcess:
        """Spawn a helper process and start draining its output.

        Args:
            name: Key the process is tracked under
            executable: Program to run
            args: Program arguments

        Returns:
            The tracked process

        Raises:
            ProcessError: If already running, unspawnable or without pipes
        """
        if name in self._processes:
            raise ProcessError("process already running", details={"name": name})

        logger.info("Starting %s", name)
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessError(
                "failed to start process", details={"name": name, "executable": executable}, cause=e
            )

        if process.stdout is None or process.stderr is None:
            process.kill()
            await process.wait()
            raise ProcessError("process output is not drainable", details={"name": name})

        managed = ManagedProcess(name=name, process=process)
        managed.drains = [
            asyncio.create_task(self._drain(name, process.stdout, logging.INFO)),
            asyncio.create_task(self._drain(name, process.stderr, logging.WARNING)),
        ]
        self._processes[name] = managed
        managed.monitor = asyncio.create_task(self._monitor(managed))

        logger.info("Started %s (pid %d)", name, process.pid)
        return managed

    async def _drain(self, name: str, stream: asyncio.StreamReader, level: int) -> None:
        """Forward lines to the log until the stream closes.

        Lines over the stream's buffer limit are dropped and reading goes
        on, so the process never blocks on a full pipe.
        """
        while True:
            try:
                raw = await stream.readline()
            except ValueError as e:
                logger.warning("Dropped overlong output line: %s", e, extra={"process_name": name})
                continue
            if not raw:
                break
            line = raw.decode(errors="replace").rstrip()
            if line:
                logger.log(level, "%s", line, extra={"process_name": name})

    async def _monitor(self, managed: ManagedProcess) -> None:
        returncode = await managed.process.wait()
        if self._processes.get(managed.name) is managed:
            del self._processes[managed.name]
        logger.info("%s exited with code %s", managed.name, returncode)

    async def stop(self, name: str, drain_timeout: float | None = None) -> None:
        """Terminate a tracked process.

        Args:
            name: Process to stop
            drain_timeout: If set, wait up to this long for its output to drain
        """
        managed = self._processes.get(name)
        if managed is None:
            return

        logger.info("Stopping %s", name)
        try:
            managed.process.terminate()
        except ProcessLookupError as e:
            logger.error("Failed to terminate %s: %s", name, e)

        if drain_timeout is not None and managed.drains:
            _, pending = await asyncio.wait(managed.drains, timeout=drain_timeout)
            if pending:
                logger.warning("%s output still draining after %.1fs", name, drain_timeout)

    async def stop_all(self, drain_timeout: float | None = None) -> None:
        """Terminate every tracked process."""
        for name in self.names():
            await self.stop(name, drain_timeout=drain_timeout)

"""Supervises the language server child process over QProcess."""

from __future__ import annotations

import os
import shutil

from loguru import logger
from PySide6.QtCore import QObject, QProcess, QTimer, Signal

from .errors import LspSpawnError, LspTransportError


class LspProcess(QObject):
    """Owns the server process and exposes its stdin/stdout as raw bytes."""

    bytesReceived = Signal(object)
    endOfStream = Signal()
    transportFailed = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._proc = QProcess(self)
        self._proc.setProcessChannelMode(QProcess.ProcessChannelMode.SeparateChannels)
        self._proc.readyReadStandardOutput.connect(self._on_stdout_ready)
        self._proc.readyReadStandardError.connect(self._on_stderr_ready)
        self._proc.finished.connect(self._on_process_finished)
        self._proc.errorOccurred.connect(self._on_process_error)

        self._program = ""
        self._stopping = False
        self._end_of_stream = False
        self._kill_timer = QTimer(self)
        self._kill_timer.setSingleShot(True)
        self._kill_timer.timeout.connect(self._force_terminate_if_running)

    @property
    def program(self) -> str:
        return self._program

    def is_running(self) -> bool:
        return self._proc.state() != QProcess.ProcessState.NotRunning

    def process_id(self) -> int:
        return int(self._proc.processId() or 0)

    def spawn(
        self,
        program: str,
        args: list[str] | None = None,
        *,
        cwd: str = "",
        timeout_ms: int = 5000,
    ) -> None:
        if self.is_running():
            raise LspSpawnError(f"Language server {self._program!r} is already running")
        clean_program = str(program or "").strip()
        resolved = shutil.which(clean_program) if clean_program else None
        if not resolved:
            raise LspSpawnError(f"Language server executable not found on PATH: {clean_program!r}")

        self._program = clean_program
        self._stopping = False
        self._end_of_stream = False
        self._proc.setProgram(resolved)
        self._proc.setArguments([str(item) for item in (args or [])])
        if cwd and os.path.isdir(cwd):
            self._proc.setWorkingDirectory(cwd)
        self._proc.start()
        if not self._proc.waitForStarted(int(timeout_ms)):
            message = self._proc.errorString()
            self._force_terminate_if_running()
            raise LspSpawnError(f"Could not start {clean_program!r}: {message}")
        logger.info("Started language server {} (pid {})", clean_program, self.process_id())

    def write(self, data: bytes) -> None:
        if not self.is_running():
            raise LspTransportError("Language server is not running")
        written = int(self._proc.write(data))
        if written != len(data):
            message = f"LSP write failed: {self._proc.errorString()}"
            self.transportFailed.emit(message)
            raise LspTransportError(message)

    def stop(self, grace_ms: int = 1200) -> None:
        """Close the server's stdin and kill it if it is still alive after ``grace_ms``."""
        if not self.is_running():
            return
        self._stopping = True
        self._proc.closeWriteChannel()
        self._kill_timer.start(max(0, int(grace_ms)))

    def _force_terminate_if_running(self) -> None:
        if not self.is_running():
            return
        self._proc.terminate()
        if not self._proc.waitForFinished(500):
            logger.warning("Language server {} ignored terminate; killing", self._program)
            self._proc.kill()
            self._proc.waitForFinished(500)

    def _on_stdout_ready(self) -> None:
        raw = bytes(self._proc.readAllStandardOutput())
        if raw:
            self.bytesReceived.emit(raw)

    def _on_stderr_ready(self) -> None:
        raw = bytes(self._proc.readAllStandardError())
        text = raw.decode("utf-8", errors="replace")
        for line in text.splitlines():
            if line.strip():
                logger.debug("[LSP stderr] {}", line.rstrip())

    def _on_process_finished(self, exit_code: int, exit_status: QProcess.ExitStatus) -> None:
        self._kill_timer.stop()
        # Deliver whatever the server wrote before exiting.
        self._on_stdout_ready()
        self._on_stderr_ready()
        if exit_status == QProcess.ExitStatus.CrashExit and not self._stopping:
            logger.error("Language server {} crashed", self._program)
        else:
            logger.info("Language server {} exited with code {}", self._program, exit_code)
        self._emit_end_of_stream()

    def _on_process_error(self, error: QProcess.ProcessError) -> None:
        if error == QProcess.ProcessError.FailedToStart:
            # spawn() reports this to its caller.
            return
        if self._stopping and error in {
            QProcess.ProcessError.Crashed,
            QProcess.ProcessError.ReadError,
            QProcess.ProcessError.WriteError,
        }:
            return
        if error == QProcess.ProcessError.Crashed:
            # finished() follows and ends the stream.
            return
        message = f"LSP process error: {self._proc.errorString()}"
        logger.error(message)
        self.transportFailed.emit(message)

    def _emit_end_of_stream(self) -> None:
        if self._end_of_stream:
            return
        self._end_of_stream = True
        self.endOfStream.emit()

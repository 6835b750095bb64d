"""Scan running processes for blocklisted names and heavy resource use."""

from __future__ import annotations

import json
import os
import queue
import sys
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

import psutil

BUFFER_SIZE = 30
DEFAULT_LOG_FILE = "process.log"

PathLike = Union[str, "os.PathLike[str]"]


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _quote_list(items: Iterable[str]) -> str:
    return "[" + ", ".join(_quote(item) for item in items) + "]"


@dataclass
class ProcessInfo:
    """A snapshot of one running process."""

    process_name: str
    pid: int
    cpu_usage: float
    mem_usage: float
    exc_path: Optional[Path] = None


class AlertSeverity(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    WARNING = "Warning"
    INFO = "Info"


class _AlertKind:
    """Shared rendering of alert kinds as `Name { field: value, ... }`."""

    def describe(self) -> str:
        parts = []
        for item in fields(self):  # type: ignore[arg-type]
            value = getattr(self, item.name)
            if isinstance(value, Enum):
                rendered = value.value
            elif isinstance(value, str):
                rendered = _quote(value)
            else:
                rendered = repr(value)
            parts.append(f"{item.name}: {rendered}")
        return f"{type(self).__name__} {{ {', '.join(parts)} }}"


@dataclass(frozen=True)
class ThreatDetected(_AlertKind):
    pid: int
    process_name: str
    severity: AlertSeverity


@dataclass(frozen=True)
class HighResourceUsage(_AlertKind):
    pid: int
    process_name: str
    cpu_usage: float
    mem_usage: float


@dataclass(frozen=True)
class NewProcessAlert(_AlertKind):
    pid: int
    process_name: str
    details: str


@dataclass(frozen=True)
class SystemAlert(_AlertKind):
    message: str


AlertKind = Union[ThreatDetected, HighResourceUsage, NewProcessAlert, SystemAlert]


@dataclass(frozen=True)
class Alert:
    """A single alert raised by the process monitor."""

    severity: AlertSeverity
    alert_type: AlertKind
    detail: str
    timestamp: float
    process_name: str


_STOP = object()


class BufferedLogger:
    """Appends messages to a file from a background thread, in batches."""

    def __init__(self, filename: PathLike = DEFAULT_LOG_FILE, buffer_size: int = BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.filename = os.fspath(filename)
        self.buffer_size = buffer_size
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="buffered-logger", daemon=True)
        self._thread.start()

    def log(self, message: str) -> None:
        """Queue a message; raises RuntimeError once the logger is closed."""
        with self._lock:
            if self._closed:
                raise RuntimeError("logger is closed")
            self._queue.put(message)

    def close(self) -> None:
        """Write out every queued message and stop the writer thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._thread.join()

    def __enter__(self) -> "BufferedLogger":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _run(self) -> None:
        try:
            handle = open(self.filename, "a", encoding="utf-8")
        except OSError as exc:
            print(f"Failed to open log file {self.filename}: {exc!r}", file=sys.stderr)
            return
        with handle:
            buffer: list[str] = []
            while True:
                item = self._queue.get()
                if item is _STOP:
                    break
                buffer.append(str(item))
                if len(buffer) >= self.buffer_size:
                    self._write(handle, buffer)
                    buffer.clear()
            if buffer:
                self._write(handle, buffer)

    def _write(self, handle, lines: list[str]) -> None:
        for line in lines:
            try:
                handle.write(line + "\n")
            except OSError as exc:
                print(f"Failed to write to log file {self.filename}: {exc!r}", file=sys.stderr)
        try:
            handle.flush()
        except OSError as exc:
            print(f"Failed to flush log file {self.filename}: {exc!r}", file=sys.stderr)


class AlertHandler(ABC):
    """Receives alerts and delivers them somewhere."""

    @abstractmethod
    def handle_alert(self, alert: Alert, logger: BufferedLogger) -> None:
        """Deliver one alert; may raise to signal failure."""

    def readable_time(self, timestamp: float) -> datetime:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class ConsoleAlertHandler(AlertHandler):
    """Prints alerts and forwards them to the log file."""

    def format_alert(self, alert: Alert) -> str:
        moment = self.readable_time(alert.timestamp).isoformat().replace("+00:00", "Z")
        return (
            "==========\n"
            f"TimeStamp :: {moment}\n"
            f" Severity :: {alert.severity.value}\n"
            f" Process Name :: {_quote(alert.process_name)}  \n"
            f"details :: {_quote(alert.detail)}\n"
            f" More :: {alert.alert_type.describe()}\n"
            "=============\n"
        )

    def handle_alert(self, alert: Alert, logger: BufferedLogger) -> None:
        text = self.format_alert(alert)
        print(text)
        try:
            logger.log(text)
        except RuntimeError as exc:
            print(f"Failed to send log to file writer: {exc!r}", file=sys.stderr)


class ThreatDetector:
    """Matches process names against a name blocklist and regex patterns."""

    def __init__(self) -> None:
        self.process_blocklist: set[str] = set()
        self.pattern_blocklist: list = []
        self.add_blocklist("xmrig")
        self.add_pattern_blocklist(r"(?i).*mine.*")

    def add_blocklist(self, name: str) -> None:
        self.process_blocklist.add(name)

    def add_pattern_blocklist(self, pattern: str) -> None:
        """Add a pattern; patterns that do not compile are ignored."""
        import re

        try:
            self.pattern_blocklist.append(re.compile(pattern))
        except re.error:
            pass

    def is_threat(self, process_name: str) -> Optional[str]:
        """Return a description if the name is blocklisted, else None."""
        name = process_name.lower()
        message = f"Malicious process detected !! :: {_quote(name)}"
        if name in self.process_blocklist:
            return message
        if any(pattern.search(name) for pattern in self.pattern_blocklist):
            return message
        return None


class ResourceMonitor:
    """Keeps recent CPU and memory readings per process and checks limits."""

    def __init__(self, cpu_threshold: float, mem_threshold: float, queue_bound: int) -> None:
        self.cpu_threshold = cpu_threshold
        self.mem_threshold = mem_threshold
        self.queue_bound = queue_bound
        self.cpu_history: dict[int, deque[float]] = {}
        self.mem_history: dict[int, deque[float]] = {}

    def modify_collections(self, process_info: ProcessInfo) -> None:
        pid = process_info.pid
        self.cpu_history.setdefault(pid, deque(maxlen=self.queue_bound)).append(process_info.cpu_usage)
        self.mem_history.setdefault(pid, deque(maxlen=self.queue_bound)).append(process_info.mem_usage)

    def check_thresholds(self, process_info: ProcessInfo) -> list[str]:
        warnings = []
        if process_info.cpu_usage > self.cpu_threshold:
            warnings.append(
                f"High CPU usage :: {process_info.cpu_usage:.2f}%, surpassed {self.cpu_threshold:.2f}%"
            )
        if process_info.mem_usage > self.mem_threshold:
            warnings.append(
                f"High Memory usage :: {process_info.mem_usage:.2f}MB, surpassed {self.mem_threshold:.2f}MB"
            )
        history = self.cpu_history.get(process_info.pid)
        if history is not None and len(history) > 4:
            average = sum(history) / len(history)
            if average > self.cpu_threshold:
                warnings.append(
                    f"Average cpu usage :: {average:.2f}% is higher than recommended :: "
                    f"{self.cpu_threshold:.2f}%"
                )
        return warnings

    def clear_pid(self, terminated_pids: Iterable[int]) -> None:
        """Forget the history of the given processes."""
        for pid in set(terminated_pids):
            self.cpu_history.pop(pid, None)
            self.mem_history.pop(pid, None)


class ProcessMonitor:
    """Periodically scans processes and sends alerts to its handlers."""

    def __init__(
        self,
        interval: float = 20.0,
        cpu_threshold: float = 90.0,
        mem_threshold: float = 90.0,
        bound: int = 5,
        log_file: PathLike = DEFAULT_LOG_FILE,
    ) -> None:
        self.scan_interval = float(interval)
        self.resource_monitor = ResourceMonitor(cpu_threshold, mem_threshold, bound)
        self.threat_detector = ThreatDetector()
        self.alert_handlers: list[AlertHandler] = []
        self.previous_processes: dict[int, ProcessInfo] = {}
        self._logger = BufferedLogger(log_file)
        self.add_alert_handler(ConsoleAlertHandler())

    def add_alert_handler(self, handler: AlertHandler) -> None:
        self.alert_handlers.append(handler)

    def send_alert(self, alert: Alert) -> None:
        """Pass an alert to every handler, reporting handler failures."""
        self._dispatch(alert, report_errors=True)

    def _dispatch(self, alert: Alert, report_errors: bool) -> None:
        for handler in list(self.alert_handlers):
            try:
                handler.handle_alert(alert, self._logger)
            except Exception as exc:  # a failing handler must not stop the others
                print(f"Error occurred while handling alerts :: {exc!r}", file=sys.stderr)
                if report_errors:
                    self._dispatch(
                        self._system_alert(
                            AlertSeverity.HIGH,
                            "Error occurred !!",
                            f"Error occurred while handling alerts :: {exc!r}",
                        ),
                        report_errors=False,
                    )

    def _system_alert(self, severity: AlertSeverity, message: str, detail: str) -> Alert:
        return Alert(severity, SystemAlert(message), detail, self.timestamp(), "NA")

    def process_info_from(self, process: psutil.Process) -> ProcessInfo:
        """Build a snapshot from a psutil process."""
        with process.oneshot():
            name = process.name()
            cpu = float(process.cpu_percent(interval=None))
            memory = float(process.memory_info().rss)
            try:
                exe = process.exe()
            except psutil.Error:
                exe = ""
        return ProcessInfo(name, process.pid, cpu, memory, Path(exe) if exe else None)

    def timestamp(self) -> float:
        return time.time()

    def check_process(self, process_info: ProcessInfo) -> None:
        threat = self.threat_detector.is_threat(process_info.process_name)
        if threat is not None:
            self.send_alert(
                Alert(
                    AlertSeverity.HIGH,
                    ThreatDetected(process_info.pid, process_info.process_name, AlertSeverity.HIGH),
                    threat,
                    self.timestamp(),
                    process_info.process_name,
                )
            )
        self.resource_monitor.modify_collections(process_info)
        warnings = self.resource_monitor.check_thresholds(process_info)
        if warnings:
            self.send_alert(
                Alert(
                    AlertSeverity.WARNING,
                    HighResourceUsage(
                        process_info.pid,
                        process_info.process_name,
                        process_info.cpu_usage,
                        process_info.mem_usage,
                    ),
                    _quote_list(warnings),
                    self.timestamp(),
                    process_info.process_name,
                )
            )

    def detect_new_processes(self, processes: dict[int, ProcessInfo]) -> None:
        for pid, info in processes.items():
            if pid not in self.previous_processes:
                self.send_alert(
                    Alert(
                        AlertSeverity.INFO,
                        NewProcessAlert(pid, info.process_name, "::New Process::"),
                        "New Process has been detected !!",
                        self.timestamp(),
                        info.process_name,
                    )
                )

    def scan_processes(self) -> dict[int, ProcessInfo]:
        """Run one scan and return the processes seen, keyed by pid."""
        current: dict[int, ProcessInfo] = {}
        for process in psutil.process_iter():
            try:
                info = self.process_info_from(process)
            except psutil.Error:
                continue
            current[info.pid] = info
        for info in current.values():
            self.check_process(info)
        self.detect_new_processes(current)
        self.resource_monitor.clear_pid(self.previous_processes.keys() - current.keys())
        self.previous_processes = current
        return current

    def monitor_processes(self) -> None:
        """Scan forever, once per interval."""
        print("\n")
        self.send_alert(
            self._system_alert(
                AlertSeverity.INFO, "Process Monitor !!", "::: Process scanning starts :::"
            )
        )
        while True:
            started = time.monotonic()
            try:
                self.scan_processes()
            except (psutil.Error, OSError) as exc:
                self.send_alert(
                    self._system_alert(
                        AlertSeverity.HIGH,
                        "Error occured!!",
                        f"Error occured while scanning processes :: {exc!r}",
                    )
                )
            elapsed = time.monotonic() - started
            if elapsed < self.scan_interval:
                time.sleep(self.scan_interval - elapsed)

    def close(self) -> None:
        self._logger.close()

    def __enter__(self) -> "ProcessMonitor":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
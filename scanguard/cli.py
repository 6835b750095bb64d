"""Interactive command line: choose a file, process or network target to watch."""

from __future__ import annotations

import argparse
import json
import re
import sys
from typing import Optional, Sequence

from scanguard.file_watcher import FileWatcher
from scanguard.network_monitor import NetworkMonitor
from scanguard.process_monitor import ProcessMonitor

_INTEGER = re.compile(r"[+-]?\d+")
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1

SCAN_INTERVAL = 20.0
CPU_THRESHOLD = 90.0
MEM_THRESHOLD = 90.0
HISTORY_BOUND = 5


class _EndOfInput(Exception):
    """Standard input was closed."""


def _read_line() -> str:
    line = sys.stdin.readline()
    if line == "":
        raise _EndOfInput
    return line


def _as_number(text: str) -> Optional[int]:
    """Return the text as a 32-bit signed integer, or None if it is not one."""
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if _I32_MIN <= value <= _I32_MAX:
        return value
    return None


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="scanguard",
        description="Watch files, processes or network traffic; the target is read from standard input.",
    )
    return parser.parse_args(argv)


def _watch_files(file_watcher: FileWatcher) -> None:
    print("Enter a file or directory to monitor !!\n")
    path = _read_line().strip()
    if not path:
        print("Please enter a File or Directory to watch \n")
        return
    from pathlib import Path

    if Path(path).exists():
        print(f"Watching a Directory :: {json.dumps(path, ensure_ascii=False)}")
        file_watcher.start_monitoring(path)
    else:
        print("Directory or file does not existes!! \n")


def _watch_processes() -> None:
    with ProcessMonitor(SCAN_INTERVAL, CPU_THRESHOLD, MEM_THRESHOLD, HISTORY_BOUND) as monitor:
        monitor.monitor_processes()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the interactive prompt; returns the process exit status."""
    _parse_args(argv)
    file_watcher = FileWatcher()
    print(f"Status :: {json.dumps(file_watcher.check_status())}", file=sys.stderr)
    print("::: WELCOME TO SCANGUARD :::\n\n +++ Enter the TARGET TYPE to watch!! +++ \n\n")

    try:
        while True:
            entry = _read_line().strip()
            if not entry:
                print("You have entered a empty input, please try again \n")
                continue
            number = _as_number(entry)
            if number is not None:
                print(f"please enter a target type, you entered {number} !!\n")
                continue
            print(f"user entered :: {json.dumps(entry, ensure_ascii=False)}")
            if entry in ("FILE", "file"):
                _watch_files(file_watcher)
            elif entry in ("PROCESS", "process"):
                _watch_processes()
                return 0
            elif entry in ("NETWORK", "network"):
                try:
                    NetworkMonitor().start_scanning_network()
                except RuntimeError as exc:
                    print(f"Network monitoring failed :: {exc}", file=sys.stderr)
                    return 1
                return 0
            else:
                print("Please enter a valid target type!!\n")
    except _EndOfInput:
        return 0
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
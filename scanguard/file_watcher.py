"""Watch files and directories, tracking content hashes and line-level changes."""

from __future__ import annotations

import hashlib
import os
import queue
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

PathLike = Union[str, "os.PathLike[str]"]


class FileStatus(Enum):
    """Outcome of checking a file whose content may have changed."""

    MODIFIED = "Modified"
    NO_CHANGE = "NoChange"
    FILE_NOT_EXIST = "FileNotExist"
    NEW_FILE = "NewFile"


class ChangeType(Enum):
    """Kind of change found on a single line."""

    ADDED = "Added"
    REMOVED = "Removed"
    MODIFIED = "Modified"


@dataclass(frozen=True)
class FileChange:
    """One changed line between two versions of a file."""

    line_no: int
    message: str
    change_type: ChangeType


@dataclass
class FileChangeStatus:
    """All line changes between an old and a new version of a file."""

    old_content: str
    new_content: str
    change_info: list[FileChange] = field(default_factory=list)


def _debug_str(text: str) -> str:
    """Quote a string with escapes for control characters."""
    escapes = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}
    parts = ['"']
    for ch in text:
        if ch in escapes:
            parts.append(escapes[ch])
        elif ch != " " and not ch.isprintable():
            parts.append(f"\\u{{{ord(ch):x}}}")
        else:
            parts.append(ch)
    parts.append('"')
    return "".join(parts)


def _debug_map(mapping: dict[str, str]) -> str:
    body = ", ".join(f"{_debug_str(k)}: {_debug_str(v)}" for k, v in mapping.items())
    return "{" + body + "}"


def _split_lines(content: str) -> list[str]:
    """Split on newlines, dropping a trailing empty line and one trailing CR per line."""
    if not content:
        return []
    pieces = content.split("\n")
    if pieces[-1] == "":
        pieces.pop()
    return [piece[:-1] if piece.endswith("\r") else piece for piece in pieces]


def _read_text(path: PathLike) -> str:
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def _sha256_hex(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class _QueueHandler(FileSystemEventHandler):
    """Forwards every filesystem event into a queue."""

    def __init__(self, events: "queue.Queue[FileSystemEvent]") -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._events.put(event)


class FileWatcher:
    """Keeps hashes and contents of watched files and reports changes."""

    def __init__(self) -> None:
        self.hash_collection: dict[str, str] = {}
        self.content_collection: dict[str, str] = {}

    def check_status(self) -> str:
        return "Watcher up and running !!!"

    def handle_event(self, event: FileSystemEvent) -> None:
        """React to one filesystem event; read errors propagate."""
        print("=== EVENT START ===")
        src = os.fsdecode(event.src_path)
        kind = event.event_type
        if kind == "created" and not event.is_directory:
            print("File Created !!")
            self.hash_file(src)
        elif kind == "deleted" and not event.is_directory:
            print("File Removed !!")
            self.hash_collection.pop(src, None)
        elif kind == "deleted":
            print("Folder Removed !!")
        elif kind == "modified" and not event.is_directory:
            status = self.handle_content_change(src)
            print(f"\n :: File Status :: {status.value}\n ")
        elif kind == "moved":
            dest = os.fsdecode(event.dest_path)
            print(f"Renamed from :: {_debug_str(src)} to :: {_debug_str(dest)}")
            if not event.is_directory:
                self.handle_rename_any(src)
                self.handle_rename_any(dest)
        print("=== EVENT END ===\n\n")

    def handle_content_change(self, path: PathLike) -> FileStatus:
        """Compare a file against its stored hash and record any change."""
        key = os.fspath(path)
        if not Path(key).exists():
            return FileStatus.FILE_NOT_EXIST
        current_hash = self.calculate_current_hash(key)
        new_content = _read_text(key)

        stored_hash = self.hash_collection.get(key)
        if stored_hash is None:
            self.hash_file(key)
            return FileStatus.NEW_FILE
        if stored_hash == current_hash:
            return FileStatus.NO_CHANGE

        previous = self.content_collection.get(key)
        if previous is not None:
            self.print_results(self.check_diff(previous, new_content))
        self.hash_collection[key] = current_hash
        if key in self.content_collection:
            self.content_collection[key] = new_content
        return FileStatus.MODIFIED

    def format_results(self, result: FileChangeStatus) -> str:
        """Render a change report as text."""
        lines = ["\n :: CHANGES ::\n", f"::: Total changes = {len(result.change_info)} :::\n"]
        for change in result.change_info:
            lines.append(f"Line {change.line_no} :: {change.change_type.value}\n")
            lines.append(f"Content :: {_debug_str(change.message)}\n")
        counts = {kind: 0 for kind in ChangeType}
        for change in result.change_info:
            counts[change.change_type] += 1
        lines.append(
            f"Added {counts[ChangeType.ADDED]} lines , "
            f"Removed {counts[ChangeType.REMOVED]} lines and "
            f"Modified {counts[ChangeType.MODIFIED]} lines\n"
        )
        return "\n".join(lines)

    def print_results(self, result: FileChangeStatus) -> None:
        print(self.format_results(result))

    def check_diff(self, prev_content: str, new_content: str) -> FileChangeStatus:
        """Compare two texts line by line at equal positions."""
        old_lines = _split_lines(prev_content)
        new_lines = _split_lines(new_content)
        changes: list[FileChange] = []
        for line_no in range(1, max(len(old_lines), len(new_lines)) + 1):
            old = old_lines[line_no - 1] if line_no <= len(old_lines) else None
            new = new_lines[line_no - 1] if line_no <= len(new_lines) else None
            if old is not None and new is not None:
                if old != new:
                    changes.append(
                        FileChange(
                            line_no,
                            f"--- {_debug_str(old)} \n +++ {_debug_str(new)}",
                            ChangeType.MODIFIED,
                        )
                    )
            elif new is not None:
                changes.append(FileChange(line_no, f"+++ {_debug_str(new)}\n", ChangeType.ADDED))
            elif old is not None:
                changes.append(FileChange(line_no, f"--- {_debug_str(old)}\n", ChangeType.REMOVED))
        return FileChangeStatus(prev_content, new_content, changes)

    def calculate_current_hash(self, path: PathLike) -> str:
        """Return the SHA-256 hex digest of a file's text."""
        return _sha256_hex(_read_text(path))

    def handle_rename_any(self, path: PathLike) -> None:
        """Track a path that appeared or disappeared through a rename."""
        target = Path(path)
        key = os.fspath(path)
        exists = target.exists()
        is_file = target.is_file()
        print(
            f"\n:: Path :: {_debug_str(key)} , Exists :: {str(exists).lower()}, "
            f"is_file :: {str(is_file).lower()} \n"
        )
        if exists:
            if is_file:
                self.hash_file(key)
                print(f"\n Updated HashMap :: {_debug_map(self.hash_collection)}")
            else:
                print("\n:: Hey its not a file !!! ::\n")
        else:
            self.hash_collection.pop(key, None)
            print(f"\n Updated HashMap :: {_debug_map(self.hash_collection)}")

    def hash_file(self, path: PathLike) -> None:
        """Store the hash and content of a file."""
        key = os.fspath(path)
        content = _read_text(key)
        self.hash_collection[key] = _sha256_hex(content)
        self.content_collection[key] = content
        print(f"Hash Map store :: {_debug_map(self.hash_collection)}")

    def start_monitoring(self, path: PathLike) -> None:
        """Watch a path recursively until an event cannot be handled."""
        target = os.fspath(path)
        if not Path(target).exists():
            print(f"Error occured !! path does not exist: {_debug_str(target)}", flush=True)
            return
        events: "queue.Queue[FileSystemEvent]" = queue.Queue()
        observer = Observer()
        try:
            observer.schedule(_QueueHandler(events), target, recursive=True)
            observer.start()
        except OSError as exc:
            print(f"Error occured !! {exc!r}", flush=True)
            return
        try:
            while True:
                event = events.get()
                try:
                    self.handle_event(event)
                except (OSError, ValueError) as exc:
                    print(f"Error occured!! {exc!r}", flush=True)
                    break
        finally:
            observer.stop()
            observer.join()
# scanguard

scanguard is an interactive console monitor. It reads a target type from
standard input and then watches one of three things.

- **file**: watches a file or directory recursively (`scanguard.file_watcher`).
  When a file is created, modified or moved, the watcher stores its SHA-256
  hash and its text. When the content of a stored file changes, it prints a
  line-by-line report of the lines that were added, removed or modified,
  comparing lines at the same position. Monitoring stops at the first event
  that cannot be handled, for example a file that cannot be read as UTF-8, and
  the prompt comes back.
- **process**: scans the running processes every 20 seconds
  (`scanguard.process_monitor`). It reports processes named `xmrig` or whose
  lower-cased name contains `mine`. It reports processes whose CPU use goes
  over 90 %, or whose average over the last five readings does. It also
  reports processes whose resident memory, in bytes, goes over 90. It reports
  processes that are new since the last scan; on the first scan every process
  is new. Alerts are printed and appended to `process.log` in batches of 30.
  Any remaining batch is written when the monitor is closed.
- **network**: reads raw Ethernet frames from the interface `en0`
  (`scanguard.network_monitor`). It counts total, TCP, UDP and SYN packets.
  Every IP packet, IPv6 included, is added to the IPv4 count, so the IPv6
  count stays at zero. It alerts when a single source sends more than 1000 SYN
  packets or more than 10000 packets in a 10-second window, or more than 10000
  UDP packets. It prints statistics every five seconds.

## Installation

```
pip install .
```

## Usage

```
scanguard
```

At the prompt, type `file`, `process` or `network`; `FILE`, `PROCESS` and
`NETWORK` work too. A number or an empty line is rejected and you are asked
again. For `file`, you are then asked for the path to watch. Stop with Ctrl+C.
The command exits with status 130 on Ctrl+C and 0 when standard input ends. It
exits with status 1 when network monitoring cannot start.

## Using it as a library

```python
from scanguard.file_watcher import FileWatcher

watcher = FileWatcher()
status = watcher.check_diff("a\nb\n", "a\nc\nd\n")
watcher.print_results(status)          # or watcher.format_results(status)
```

`FileWatcher.hash_file(path)` stores a file's hash and text.
`FileWatcher.handle_content_change(path)` compares a file with what was stored
and returns a `FileStatus`: `MODIFIED`, `NO_CHANGE`, `FILE_NOT_EXIST` or
`NEW_FILE`.

```python
from scanguard.process_monitor import ThreatDetector, ResourceMonitor

detector = ThreatDetector()
detector.is_threat("xmrig")   # returns a message; None for a harmless name
detector.add_blocklist("badproc")
detector.add_pattern_blocklist(r"(?i)miner")
```

`ProcessMonitor` is a context manager. Its log file is set with `log_file`.
`scan_processes()` runs one scan and returns the processes seen, keyed by pid.
Extra alert handlers subclass `AlertHandler` and are added with
`add_alert_handler`.

```python
from scanguard.network_monitor import NetworkMonitor

monitor = NetworkMonitor()
monitor.process_packet(frame_bytes)  # frame_bytes holds one raw Ethernet frame
print(monitor.statistics_alert().description)
```

## Limitations

- Packet capture uses a raw `AF_PACKET` socket. It works only where the
  platform provides one, needs elevated privileges, and looks only for an
  interface named `en0`. If there is none, network monitoring stops with an
  error.
- Alerts go only to the console and, for processes, to `process.log`. There is
  no configuration file, and thresholds and blocklists are set in code.

## Running the tests

```
pip install .[test]
pytest
```
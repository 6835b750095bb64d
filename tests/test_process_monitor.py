import os
from datetime import datetime, timezone

import psutil
import pytest

from scanguard.process_monitor import (
    Alert,
    AlertHandler,
    AlertSeverity,
    BufferedLogger,
    ConsoleAlertHandler,
    HighResourceUsage,
    NewProcessAlert,
    ProcessInfo,
    ProcessMonitor,
    ResourceMonitor,
    SystemAlert,
    ThreatDetected,
    ThreatDetector,
)


class Recorder(AlertHandler):
    def __init__(self):
        self.alerts = []

    def handle_alert(self, alert, logger):
        self.alerts.append(alert)


class Failing(AlertHandler):
    def handle_alert(self, alert, logger):
        raise ValueError("boom")


@pytest.fixture
def monitor(tmp_path):
    with ProcessMonitor(1.0, 90.0, 1e18, 5, tmp_path / "process.log") as mon:
        yield mon


def test_threat_detector_blocklist_is_case_insensitive():
    detector = ThreatDetector()
    assert detector.is_threat("XMRIG") == 'Malicious process detected !! :: "xmrig"'


def test_threat_detector_pattern_and_clean_names():
    detector = ThreatDetector()
    assert detector.is_threat("CoinMiner") is not None and "coinminer" in detector.is_threat("CoinMiner")
    assert detector.is_threat("bash") is None


def test_invalid_pattern_is_ignored():
    detector = ThreatDetector()
    before = len(detector.pattern_blocklist)
    detector.add_pattern_blocklist("(")
    assert len(detector.pattern_blocklist) == before
    detector.add_pattern_blocklist("evil")
    assert detector.is_threat("evil-tool") is not None


def test_resource_history_is_bounded():
    rm = ResourceMonitor(90.0, 90.0, 3)
    for usage in range(6):
        rm.modify_collections(ProcessInfo("p", 7, float(usage), float(usage)))
    assert list(rm.cpu_history[7]) == [3.0, 4.0, 5.0]
    assert len(rm.mem_history[7]) == 3


def test_check_thresholds_reports_cpu_and_memory():
    rm = ResourceMonitor(90.0, 90.0, 5)
    info = ProcessInfo("p", 1, 95.0, 100.0)
    warnings = rm.check_thresholds(info)
    assert warnings[0] == "High CPU usage :: 95.00%, surpassed 90.00%"
    assert warnings[1].startswith("High Memory usage")
    assert len(warnings) == 2


def test_average_warning_needs_more_than_four_samples():
    rm = ResourceMonitor(90.0, 1e9, 5)
    info = ProcessInfo("p", 1, 95.0, 1.0)
    for _ in range(4):
        rm.modify_collections(info)
    assert not any(w.startswith("Average") for w in rm.check_thresholds(info))
    rm.modify_collections(info)
    assert any(w.startswith("Average cpu usage") for w in rm.check_thresholds(info))


def test_clear_pid_removes_only_given():
    rm = ResourceMonitor(90.0, 90.0, 5)
    rm.modify_collections(ProcessInfo("a", 1, 1.0, 1.0))
    rm.modify_collections(ProcessInfo("b", 2, 1.0, 1.0))
    rm.clear_pid({1})
    assert set(rm.cpu_history) == {2}
    assert set(rm.mem_history) == {2}


def test_buffered_logger_writes_all_on_close(tmp_path):
    target = tmp_path / "out.log"
    target.write_text("old\n", encoding="utf-8")
    with BufferedLogger(target, buffer_size=2) as logger:
        for message in ["a", "b", "c"]:
            logger.log(message)
    assert target.read_text(encoding="utf-8") == "old\na\nb\nc\n"


def test_buffered_logger_rejects_after_close(tmp_path):
    logger = BufferedLogger(tmp_path / "x.log")
    logger.close()
    with pytest.raises(RuntimeError):
        logger.log("late")


def test_buffered_logger_rejects_bad_size(tmp_path):
    with pytest.raises(ValueError):
        BufferedLogger(tmp_path / "x.log", buffer_size=0)


def test_readable_time_epoch():
    handler = ConsoleAlertHandler()
    assert handler.readable_time(0.0) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_console_handler_prints_and_logs(tmp_path, capsys):
    handler = ConsoleAlertHandler()
    alert = Alert(AlertSeverity.HIGH, SystemAlert("msg"), "detail", 0.0, "NA")
    target = tmp_path / "c.log"
    with BufferedLogger(target) as logger:
        handler.handle_alert(alert, logger)
    text = handler.format_alert(alert)
    assert " Severity :: High" in text
    assert 'SystemAlert { message: "msg" }' in text
    assert text in capsys.readouterr().out
    assert target.read_text(encoding="utf-8") == text + "\n"


def test_check_process_raises_threat_alert(monitor):
    recorder = Recorder()
    monitor.add_alert_handler(recorder)
    monitor.check_process(ProcessInfo("xmrig", 42, 0.0, 0.0))
    assert len(recorder.alerts) == 1
    alert = recorder.alerts[0]
    assert alert.severity is AlertSeverity.HIGH
    assert alert.alert_type == ThreatDetected(42, "xmrig", AlertSeverity.HIGH)


def test_check_process_raises_resource_alert(monitor):
    recorder = Recorder()
    monitor.add_alert_handler(recorder)
    monitor.check_process(ProcessInfo("worker", 9, 99.0, 0.0))
    assert [a.severity for a in recorder.alerts] == [AlertSeverity.WARNING]
    assert isinstance(recorder.alerts[0].alert_type, HighResourceUsage)
    assert recorder.alerts[0].detail.startswith('["High CPU usage')


def test_detect_new_processes(monitor):
    recorder = Recorder()
    monitor.add_alert_handler(recorder)
    monitor.previous_processes = {1: ProcessInfo("old", 1, 0.0, 0.0)}
    monitor.detect_new_processes(
        {1: ProcessInfo("old", 1, 0.0, 0.0), 2: ProcessInfo("new", 2, 0.0, 0.0)}
    )
    assert [a.alert_type for a in recorder.alerts] == [NewProcessAlert(2, "new", "::New Process::")]


def test_failing_handler_reports_system_alert(monitor):
    recorder = Recorder()
    monitor.add_alert_handler(Failing())
    monitor.add_alert_handler(recorder)
    alert = Alert(AlertSeverity.INFO, SystemAlert("x"), "d", 0.0, "NA")
    monitor.send_alert(alert)
    assert recorder.alerts[-1] == alert
    assert isinstance(recorder.alerts[0].alert_type, SystemAlert)
    assert recorder.alerts[0].detail.startswith("Error occurred while handling alerts")


def test_process_info_from_current_process(monitor):
    proc = psutil.Process(os.getpid())
    info = monitor.process_info_from(proc)
    assert info.pid == os.getpid()
    assert info.process_name == proc.name()
    assert info.mem_usage > 0


def test_scan_processes_tracks_previous(monitor):
    seen = monitor.scan_processes()
    assert os.getpid() in seen
    assert monitor.previous_processes is seen
    recorder = Recorder()
    monitor.add_alert_handler(recorder)
    monitor.scan_processes()
    new_pids = {a.alert_type.pid for a in recorder.alerts if isinstance(a.alert_type, NewProcessAlert)}
    assert os.getpid() not in new_pids
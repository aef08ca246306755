import logging
import sys
from pathlib import Path

import pytest

from devnet.runner import (
    CaptureMode,
    LogChunk,
    LogSink,
    ProcessInvocation,
    ProcessRunner,
)


def test_log_sink_notifies_listeners(tmp_path: Path) -> None:
    sink_path = tmp_path / "logs" / "submodule.log"
    received: list[LogChunk] = []
    with LogSink(sink_path) as sink:
        remove = sink.add_listener(received.append)
        sink.write("hello\n", stream="stdout")
        sink.write("oops\n", stream="stderr")
        remove()
        sink.write("tail\n", stream="stdout")
    assert sink_path.read_text() == "hello\noops\ntail\n"
    assert [chunk.text for chunk in received] == ["hello\n", "oops\n"]
    assert sink.lines("stdout") == ["hello", "tail"]
    assert sink.text("stderr") == "oops\n"


def test_log_sink_tags_channels_with_levels(caplog: pytest.LogCaptureFixture) -> None:
    sink = LogSink(label="git submodule")
    with caplog.at_level(logging.INFO, logger="devnet.runner.relay"):
        sink.write("Cloning into 'vendor'\n", stream="stdout")
        sink.write("warning: redirecting\n", stream="stderr")
    levels = {record.getMessage(): record.levelno for record in caplog.records}
    assert levels["git submodule: Cloning into 'vendor'"] == logging.INFO
    assert levels["git submodule: warning: redirecting"] == logging.WARNING


def test_relay_preserves_order_within_each_channel(tmp_path: Path) -> None:
    script = (
        "import sys\n"
        "sys.stdout.write('A\\n'); sys.stdout.flush()\n"
        "sys.stderr.write('X\\n'); sys.stderr.flush()\n"
        "sys.stdout.write('B\\n'); sys.stdout.flush()\n"
        "sys.stderr.write('Y\\n'); sys.stderr.flush()\n"
    )
    invocation = ProcessInvocation(
        program=sys.executable,
        args=("-c", script),
        cwd=tmp_path,
        mode=CaptureMode.STREAMED,
    )
    sink = LogSink()
    outcome = ProcessRunner().run(invocation, sink)
    assert outcome.success is True
    assert sink.lines("stdout") == ["A", "B"]
    assert sink.lines("stderr") == ["X", "Y"]


def test_relay_reports_undecodable_line_and_continues(tmp_path: Path) -> None:
    script = (
        "import sys\n"
        "sys.stdout.buffer.write(b'\\xff\\xfe\\n')\n"
        "sys.stdout.buffer.write(b'ok\\n')\n"
    )
    invocation = ProcessInvocation(
        program=sys.executable,
        args=("-c", script),
        cwd=tmp_path,
        mode=CaptureMode.STREAMED,
    )
    sink = LogSink()
    outcome = ProcessRunner().run(invocation, sink)
    assert outcome.success is True
    assert sink.lines("stdout") == ["ok"]
    assert any("undecodable stdout line" in line for line in sink.lines("stderr"))


def test_relay_drains_both_pipes_without_deadlock(tmp_path: Path) -> None:
    # each write exceeds a typical 64KiB pipe buffer
    script = (
        "import sys\n"
        "sys.stderr.write(('e' * 99 + '\\n') * 3000); sys.stderr.flush()\n"
        "sys.stdout.write(('o' * 99 + '\\n') * 3000); sys.stdout.flush()\n"
    )
    invocation = ProcessInvocation(
        program=sys.executable,
        args=("-c", script),
        cwd=tmp_path,
        mode=CaptureMode.STREAMED,
    )
    sink = LogSink()
    outcome = ProcessRunner().run(invocation, sink)
    assert outcome.success is True
    assert len(sink.lines("stdout")) == 3000
    assert len(sink.lines("stderr")) == 3000


def test_failing_listener_does_not_stop_the_relay(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    script = "import sys\nsys.stdout.write(('o' * 99 + '\\n') * 3000); sys.stdout.flush()\n"
    invocation = ProcessInvocation(
        program=sys.executable,
        args=("-c", script),
        cwd=tmp_path,
        mode=CaptureMode.STREAMED,
    )
    sink = LogSink()

    def _broken(chunk: LogChunk) -> None:
        raise BrokenPipeError("console went away")

    sink.add_listener(_broken)
    with caplog.at_level(logging.WARNING, logger="devnet.runner.relay"):
        outcome = ProcessRunner().run(invocation, sink)
    assert outcome.success is True
    assert len(sink.lines("stdout")) == 3000
    assert any("log listener" in record.getMessage() for record in caplog.records)

"""End-to-end checks for ProcessPipeline using real child processes."""

from __future__ import annotations

import logging
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from alignbucket.exceptions import (
    ConfigurationError,
    MatePairValidationFailure,
    ProcessPipelineError,
    ProcessSpawnFailure,
)
from alignbucket.processes import LinesSink, ProcessPipeline, StageSpec, run_pipeline

REPLACER = Path(__file__).resolve().parents[2] / "_test_inputs" / "character_replacer.py"
INPUT = b"Hello world?\nThis is 1 demo!"

pytestmark = pytest.mark.e2e


def _replace(old: str, new: str) -> StageSpec:
    return StageSpec(sys.executable, (str(REPLACER), old, new))


def test_single_stage():
    sink = ProcessPipeline([_replace("1", "a")]).run(INPUT, LinesSink())

    assert sink.results == ["Hello world?", "This is a demo!"]
    report = sink.pipeline_report
    assert report.return_codes == [0]
    assert report.succeeded
    assert report.stderr[0].lines == ["replaced '1' with 'a'"]


def test_three_chained_stages_keep_stderr_apart():
    sink = run_pipeline(INPUT, LinesSink(), _replace("?", "."), _replace("1", "a"), _replace("!", "."))

    assert sink.results == ["Hello world.", "This is a demo."]
    assert [c.lines for c in sink.pipeline_report.stderr] == [
        ["replaced '?' with '.'"],
        ["replaced '1' with 'a'"],
        ["replaced '!' with '.'"],
    ]


def test_stages_can_be_plain_command_lists():
    pipeline = ProcessPipeline([[sys.executable, str(REPLACER), "demo", "test"]])
    assert pipeline.run(INPUT, LinesSink()).results == ["Hello world?", "This is 1 test!"]


def test_stderr_is_logged_with_stage_name(caplog):
    with caplog.at_level(logging.INFO, logger="alignbucket"):
        ProcessPipeline([_replace("1", "a")]).run(INPUT, LinesSink())

    expected = f"[{Path(sys.executable).name}] replaced '1' with 'a'"
    assert expected in caplog.messages


def test_empty_pipeline_is_rejected():
    with pytest.raises(ConfigurationError):
        ProcessPipeline([])
    with pytest.raises(ConfigurationError):
        StageSpec.from_command([])


def test_missing_executable_raises_spawn_failure(tmp_path):
    missing = tmp_path / "no-such-tool"
    with pytest.raises(ProcessSpawnFailure) as excinfo:
        ProcessPipeline([_replace("1", "a"), StageSpec(missing)]).run(INPUT, LinesSink())

    assert excinfo.value.command == [str(missing)]
    assert isinstance(excinfo.value.cause, OSError)
    assert isinstance(excinfo.value, ProcessPipelineError)


def test_invalid_argument_raises_spawn_failure_and_stops_started_stages(monkeypatch):
    started = []

    class RecordingPopen(subprocess.Popen):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            started.append(self)

    monkeypatch.setattr(subprocess, "Popen", RecordingPopen)
    sleeper = StageSpec(sys.executable, ("-c", "import time; time.sleep(30)"))
    bad_arg = StageSpec(sys.executable, ("bad\0arg",))

    with pytest.raises(ProcessSpawnFailure) as excinfo:
        ProcessPipeline([sleeper, bad_arg]).run(INPUT, LinesSink())

    assert isinstance(excinfo.value.cause, ValueError)
    assert excinfo.value.command == [sys.executable, "bad\0arg"]
    assert len(started) == 1
    assert started[0].poll() is not None
    assert started[0].stdout.closed


def test_non_zero_exit_is_reported_not_raised(caplog):
    failing = StageSpec(sys.executable, ("-c", "import sys; sys.stdin.read(); sys.exit(3)"))
    with caplog.at_level(logging.WARNING, logger="alignbucket"):
        sink = ProcessPipeline([failing]).run(b"ignored", LinesSink())

    assert sink.results == []
    assert sink.pipeline_report.return_codes == [3]
    assert not sink.pipeline_report.succeeded
    assert "exited with code 3" in caplog.text


def test_stage_that_ignores_stdin_reports_relay_failure():
    quitter = StageSpec(sys.executable, ("-c", "pass"))
    sink = ProcessPipeline([quitter]).run(b"x" * (8 * 1024 * 1024), LinesSink())

    report = sink.pipeline_report
    assert report.return_codes == [0]
    assert len(report.relay_failures) == 1
    assert "stdin" in report.relay_failures[0].role


def test_unexpected_sink_error_is_wrapped():
    def explode(line):
        raise RuntimeError(f"cannot handle {line!r}")

    with pytest.raises(ProcessPipelineError, match="Sink failed") as excinfo:
        ProcessPipeline([_replace("1", "a")]).run(INPUT, LinesSink(on_item=explode))
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_validation_failure_from_sink_propagates_unchanged():
    def reject(line):
        raise MatePairValidationFailure(f"rejected {line}")

    with pytest.raises(MatePairValidationFailure, match="rejected Hello world"):
        ProcessPipeline([_replace("1", "a")]).run(INPUT, LinesSink(on_item=reject))


def test_one_pipeline_runs_from_several_threads():
    pipeline = ProcessPipeline([_replace("x", "y")])
    inputs = [f"x{i}\nxx{i}".encode() for i in range(6)]

    with ThreadPoolExecutor(max_workers=3) as executor:
        sinks = list(executor.map(lambda data: pipeline.run(data, LinesSink()), inputs))

    assert [s.results for s in sinks] == [[f"y{i}", f"yy{i}"] for i in range(6)]

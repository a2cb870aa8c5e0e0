"""Run a linear chain of external processes and decode the final output with a sink."""

from __future__ import annotations

import logging
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from alignbucket.exceptions import (
    AlignBucketError,
    ConfigurationError,
    ProcessPipelineError,
    ProcessSpawnFailure,
    StreamIOFailure,
)
from alignbucket.logging_utils import get_logger, log_tool_lines
from alignbucket.processes.sinks import Sink
from alignbucket.processes.stream_relay import LinesContainer, drain_lines, write_input_bytes

PathLike = Union[str, Path]


@dataclass(frozen=True)
class StageSpec:
    """One external process invocation: an executable plus its arguments."""

    executable: PathLike
    args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "executable", str(self.executable))
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))

    @classmethod
    def from_command(cls, command: Sequence[PathLike]) -> "StageSpec":
        if not command:
            raise ConfigurationError("A stage command needs at least an executable.")
        return cls(command[0], tuple(command[1:]))

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.args]

    @property
    def name(self) -> str:
        return Path(self.executable).name


@dataclass
class PipelineReport:
    """What happened to each stage of a finished pipeline run."""

    commands: List[List[str]]
    return_codes: List[int] = field(default_factory=list)
    stderr: List[LinesContainer] = field(default_factory=list)
    relay_failures: List[StreamIOFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(code == 0 for code in self.return_codes) and not self.relay_failures


def _close_stream(stream) -> None:
    if stream is None:
        return
    try:
        stream.close()
    except OSError:
        pass


def _kill_processes(processes: Sequence[subprocess.Popen]) -> None:
    for proc in processes:
        if proc.poll() is None:
            proc.kill()


class ProcessPipeline:
    """
    Linear chain of external processes, stage ``i`` stdout feeding stage ``i + 1`` stdin.

    A single :meth:`run` call:
      - spawns every stage in order,
      - writes the input bytes into the first stage's stdin on a relay thread,
      - drains every stage's stderr on its own relay thread,
      - decodes the last stage's stdout with the sink on the calling thread,
      - waits for every process (in start order) and every relay thread.

    The instance holds no per-run state, so one pipeline can be run from several
    threads at once as long as each call gets its own sink.
    """

    def __init__(self, stages: Sequence[StageSpec], logger: Optional[logging.Logger] = None):
        stages = [s if isinstance(s, StageSpec) else StageSpec.from_command(s) for s in stages]
        if not stages:
            raise ConfigurationError("A process pipeline needs at least one stage.")
        self.stages: Tuple[StageSpec, ...] = tuple(stages)
        self.logger = logger if logger is not None else get_logger(__name__)

    def __repr__(self) -> str:
        chain = " | ".join(stage.name for stage in self.stages)
        return f"<ProcessPipeline {chain}>"

    def _spawn(self) -> List[subprocess.Popen]:
        processes: List[subprocess.Popen] = []
        for i, stage in enumerate(self.stages):
            stdin = subprocess.PIPE if i == 0 else processes[-1].stdout
            self.logger.debug("Starting stage %d: %s", i, " ".join(stage.command))
            try:
                proc = subprocess.Popen(
                    stage.command,
                    stdin=stdin,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except (OSError, ValueError, TypeError) as exc:
                self.logger.error("Could not start stage %d (%s): %s", i, stage.name, exc)
                self._abort(processes)
                raise ProcessSpawnFailure(stage.command, exc) from exc
            if i > 0:
                # The child holds its own copy; the parent copy would keep the pipe open.
                processes[-1].stdout.close()
            processes.append(proc)
        return processes

    @staticmethod
    def _abort(processes: Sequence[subprocess.Popen]) -> None:
        _kill_processes(processes)
        for proc in processes:
            for stream in (proc.stdin, proc.stdout, proc.stderr):
                _close_stream(stream)
            proc.wait()

    def run(self, input_data: bytes, sink: Sink) -> Sink:
        """
        Feed ``input_data`` through the chain and decode the final output with ``sink``.

        Returns the same sink, with ``sink.pipeline_report`` describing the run.

        Raises
        ------
        ProcessSpawnFailure
            If any stage could not be started. Already started stages are killed.
        ProcessPipelineError
            If the sink failed with an unexpected error while decoding.
        AlignBucketError
            Validation failures raised by the sink itself propagate unchanged.
        """
        processes = self._spawn()
        report = PipelineReport(commands=[stage.command for stage in self.stages])
        report.stderr = [LinesContainer() for _ in self.stages]
        sink_error: Optional[BaseException] = None

        with ThreadPoolExecutor(
            max_workers=len(processes) + 1, thread_name_prefix="alignbucket-relay"
        ) as executor:
            futures: List[Future] = [
                executor.submit(
                    write_input_bytes,
                    processes[0].stdin,
                    bytes(input_data),
                    self.logger,
                    f"stdin of {self.stages[0].name}",
                )
            ]
            for stage, proc, container in zip(self.stages, processes, report.stderr):
                futures.append(
                    executor.submit(
                        drain_lines, proc.stderr, container, self.logger, f"stderr of {stage.name}"
                    )
                )

            try:
                sink.handle_input_stream(processes[-1].stdout)
            except BaseException as exc:
                sink_error = exc
                _kill_processes(processes)
            finally:
                _close_stream(processes[-1].stdout)

            report.return_codes = [proc.wait() for proc in processes]
            report.relay_failures = [f.result() for f in futures if f.result() is not None]

        self._log_report(report)
        sink.pipeline_report = report

        if sink_error is not None:
            if isinstance(sink_error, AlignBucketError) or not isinstance(sink_error, Exception):
                raise sink_error
            raise ProcessPipelineError(
                f"Sink failed while decoding output of {self.stages[-1].name}: {sink_error}"
            ) from sink_error
        return sink

    def _log_report(self, report: PipelineReport) -> None:
        for stage, code, container in zip(self.stages, report.return_codes, report.stderr):
            log_tool_lines(self.logger, stage.name, container, level=logging.INFO)
            if code != 0:
                self.logger.warning(
                    "Stage %s exited with code %d: %s", stage.name, code, " ".join(stage.command)
                )
        if report.relay_failures:
            self.logger.warning(
                "%d stream relay failure(s); pipeline output may be truncated.",
                len(report.relay_failures),
            )


def run_pipeline(
    input_data: bytes,
    sink: Sink,
    *stages: Union[StageSpec, Sequence[PathLike]],
    logger: Optional[logging.Logger] = None,
) -> Sink:
    """Build a :class:`ProcessPipeline` from ``stages`` and run it once."""
    return ProcessPipeline(stages, logger=logger).run(input_data, sink)

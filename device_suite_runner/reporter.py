"""Reporters binding result tree updates to output sinks."""

import logging
from collections.abc import Callable, Sequence

from device_suite_runner.markers import format_completion
from device_suite_runner.models.result import FailedExpectation, SpecResult, Status
from device_suite_runner.models.summary import RunSummary
from device_suite_runner.tree import ResultTree, Snapshot, count_failed

log = logging.getLogger(__name__)

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
}

# Failed specs open a log group in CI output, passed ones stay collapsed
GROUPING = {
    "passed": "---",
    "failed": "+++",
}


class Reporter:
    """Lifecycle hooks invoked in event order, all no-ops by default."""

    def run_started(self) -> None:
        """Run is about to execute the selected suites."""

    def suite_started(self, suite_id: str, description: str) -> None:
        """A suite was opened."""

    def suite_done(self, suite_id: str, status: Status) -> None:
        """The innermost suite was closed."""

    def spec_started(self, spec: SpecResult) -> None:
        """A spec started running."""

    def spec_done(self, spec: SpecResult) -> None:
        """A spec finished with its final status."""

    def run_done(self, snapshot: Snapshot) -> None:
        """All top level suites finished."""


class Aggregator:
    """Applies lifecycle events to a result tree and forwards them to reporters."""

    def __init__(self, reporters: Sequence[Reporter] = ()) -> None:
        self.tree = ResultTree()
        self.reporters = list(reporters)

    def add_reporter(self, reporter: Reporter) -> None:
        self.reporters.append(reporter)

    def run_started(self) -> None:
        self.tree.reset()
        for reporter in self.reporters:
            reporter.run_started()

    def suite_started(self, suite_id: str, description: str) -> None:
        self.tree.suite_started(suite_id, description)
        for reporter in self.reporters:
            reporter.suite_started(suite_id, description)

    def suite_done(self) -> None:
        suite = self.tree.suite_done()
        for reporter in self.reporters:
            reporter.suite_done(suite.id, suite.status)

    def spec_started(self, spec_id: str, description: str) -> None:
        spec = self.tree.spec_started(spec_id, description)
        for reporter in self.reporters:
            reporter.spec_started(spec)

    def spec_done(
        self,
        status: Status,
        failed_expectations: Sequence[FailedExpectation] = (),
    ) -> None:
        spec = self.tree.spec_done(status, failed_expectations)
        for reporter in self.reporters:
            reporter.spec_done(spec)

    def run_done(self) -> Snapshot:
        """Finish the run and return the final snapshot."""
        if self.tree.depth:
            log.warning("Run finished with %d suite(s) still open", self.tree.depth)
        snapshot = self.tree.snapshot()
        for reporter in self.reporters:
            reporter.run_done(snapshot)
        return snapshot


class ConsoleReporter(Reporter):
    """Writes line records for finished specs and the final completion marker.

    The emitted lines end up in the serving process log, where the driver
    waits for the completion marker.
    """

    def __init__(
        self,
        emit: Callable[[str], None] = print,
        completion_sink: Callable[[str], None] | None = None,
    ) -> None:
        self.emit = emit
        self.completion_sink = completion_sink
        self.lines: list[str] = []
        self.summary: RunSummary | None = None

    def run_started(self) -> None:
        self.lines = []
        self.summary = None
        self.emit("--- tests started")

    def spec_done(self, spec: SpecResult) -> None:
        if spec.status not in STATUS_SYMBOLS:
            return

        grouping = GROUPING[spec.status]
        self.emit(f"{grouping} {STATUS_SYMBOLS[spec.status]} {spec.full_name}")
        self.lines.append(f"{grouping} {spec.full_name}\n")

        for expectation in spec.failed_expectations:
            line = f"{expectation.check}: {expectation.message}"
            self.emit(line)
            self.lines.append(f"{line}\n")

    def run_done(self, snapshot: Snapshot) -> None:
        self.emit("--- tests done")
        self.summary = RunSummary(
            failed_count=count_failed(snapshot),
            report_text="".join(self.lines),
        )

        self.emit("--- send results to runner")
        payload = format_completion(self.summary)
        self.emit(payload)

        if self.completion_sink is not None:
            self.completion_sink(payload)

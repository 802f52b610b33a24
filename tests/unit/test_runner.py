"""Tests for the remote suite runner."""

import asyncio

import pytest

from device_suite_runner.markers import parse_completion
from device_suite_runner.reporter import Aggregator, ConsoleReporter
from device_suite_runner.runner import (
    ExpectationFailed,
    Spec,
    Suite,
    SuiteRunner,
    TestModule,
    expect_equal,
    expect_true,
    select_modules,
)

LINKING_URI = "exp://localhost:19000/+"

MODULES = [
    TestModule(name="Contacts", suite=Suite(description="Contacts")),
    TestModule(name="Location", suite=Suite(description="Location")),
    TestModule(name="SQLite", suite=Suite(description="SQLite")),
]


@pytest.fixture
def lines() -> list[str]:
    """Collect emitted console lines."""
    return []


@pytest.fixture
def aggregator(lines: list[str]) -> Aggregator:
    """Create an aggregator with a console reporter."""
    return Aggregator([ConsoleReporter(emit=lines.append)])


@pytest.fixture
def runner(aggregator: Aggregator) -> SuiteRunner:
    """Create a runner with a short spec timeout."""
    return SuiteRunner(aggregator, spec_timeout=0.2)


class TestSelectModules:
    """Tests for deep link module selection."""

    def test_selects_all_without_uri(self) -> None:
        """Runs every module when no uri is given."""
        assert select_modules(MODULES, None, LINKING_URI) == MODULES

    def test_selects_all_for_foreign_uri(self) -> None:
        """Ignores uris that do not start with the linking uri."""
        assert select_modules(MODULES, "https://example.com/Contacts", LINKING_URI) == (
            MODULES
        )

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("Contacts", ["Contacts"]),
            ("^(Location|SQLite)$", ["Location", "SQLite"]),
            ("o", ["Contacts", "Location"]),
            ("", ["Contacts", "Location", "SQLite"]),
            ("Camera", []),
        ],
    )
    def test_filters_by_regular_expression(
        self, expression: str, expected: list[str]
    ) -> None:
        """Keeps modules whose name matches the deep link expression."""
        selected = select_modules(MODULES, LINKING_URI + expression, LINKING_URI)

        assert [module.name for module in selected] == expected


class TestRun:
    """Tests for running suites."""

    async def test_reports_nested_suites(
        self, runner: SuiteRunner, lines: list[str]
    ) -> None:
        """Runs specs before child suites and reports the failure count."""

        async def passes() -> None:
            await asyncio.sleep(0)
            expect_equal(1 + 1, 2)

        def fails() -> None:
            expect_true(False, "value was false")

        module = TestModule(
            name="Nested",
            suite=Suite(
                description="A",
                specs=[Spec(description="s1", body=passes)],
                children=[
                    Suite(description="B", specs=[Spec(description="s2", body=fails)])
                ],
            ),
        )

        snapshot = await runner.run([module])

        (suite_a,) = snapshot
        assert [s.status for s in suite_a.specs] == ["passed"]
        (suite_b,) = suite_a.children
        assert [s.status for s in suite_b.specs] == ["failed"]
        assert suite_b.specs[0].failed_expectations[0].check == "expect_true"
        assert suite_b.specs[0].failed_expectations[0].message == "value was false"
        assert parse_completion(lines[-1]).failed_count == 1

    async def test_assigns_sequential_ids(self, runner: SuiteRunner) -> None:
        """Suites and specs get ids in emission order."""
        module = TestModule(
            name="Ids",
            suite=Suite(
                description="A",
                specs=[Spec(description="s1", body=lambda: None)],
                children=[
                    Suite(
                        description="B",
                        specs=[Spec(description="s2", body=lambda: None)],
                    )
                ],
            ),
        )

        (suite_a,) = await runner.run([module])

        assert suite_a.id == "suite1"
        assert suite_a.specs[0].id == "spec0"
        assert suite_a.children[0].id == "suite2"
        assert suite_a.children[0].specs[0].id == "spec1"

    async def test_disabled_specs_do_not_run(self, runner: SuiteRunner) -> None:
        """Disabled specs and specs without body are reported disabled."""
        calls: list[str] = []
        module = TestModule(
            name="Disabled",
            suite=Suite(
                description="A",
                specs=[
                    Spec(description="x", body=lambda: calls.append("x"), disabled=True),
                    Spec(description="todo"),
                ],
            ),
        )

        (suite,) = await runner.run([module])

        assert [s.status for s in suite.specs] == ["disabled", "disabled"]
        assert suite.status == "passed"
        assert calls == []

    async def test_unexpected_exception_fails_spec(self, runner: SuiteRunner) -> None:
        """Any exception becomes a failure named after its class."""

        async def broken() -> None:
            raise PermissionError("contacts permission denied")

        module = TestModule(
            name="Broken",
            suite=Suite(description="A", specs=[Spec(description="s", body=broken)]),
        )

        (suite,) = await runner.run([module])

        (failure,) = suite.specs[0].failed_expectations
        assert failure.check == "PermissionError"
        assert failure.message == "contacts permission denied"

    async def test_slow_spec_times_out(self, runner: SuiteRunner) -> None:
        """A spec exceeding the timeout fails with a timeout check."""

        async def slow() -> None:
            await asyncio.sleep(5)

        module = TestModule(
            name="Slow",
            suite=Suite(description="A", specs=[Spec(description="s", body=slow)]),
        )

        (suite,) = await runner.run([module])

        assert suite.specs[0].status == "failed"
        assert suite.specs[0].failed_expectations[0].check == "timeout"

    async def test_timeout_raised_by_body_is_not_the_spec_timeout(
        self, runner: SuiteRunner
    ) -> None:
        """A TimeoutError from the body is reported under its own name."""

        async def device_call() -> None:
            raise TimeoutError("device did not answer")

        module = TestModule(
            name="Device",
            suite=Suite(
                description="A", specs=[Spec(description="s", body=device_call)]
            ),
        )

        (suite,) = await runner.run([module])

        assert suite.specs[0].status == "failed"
        (failure,) = suite.specs[0].failed_expectations
        assert failure.check == "TimeoutError"
        assert failure.message == "device did not answer"

    async def test_runs_only_selected_modules(
        self, runner: SuiteRunner, lines: list[str]
    ) -> None:
        """Modules not named by the deep link are skipped."""
        snapshot = await runner.run(MODULES, LINKING_URI + "SQLite", LINKING_URI)

        assert [suite.description for suite in snapshot] == ["SQLite"]
        assert parse_completion(lines[-1]).failed_count == 0

    async def test_second_run_starts_empty(self, runner: SuiteRunner) -> None:
        """Each run rebuilds the tree and restarts ids."""
        await runner.run(MODULES)
        snapshot = await runner.run(MODULES[:1])

        assert len(snapshot) == 1
        assert snapshot[0].id == "suite1"


def test_expect_equal_names_the_check() -> None:
    """expect_equal raises with its own check name."""
    with pytest.raises(ExpectationFailed) as exc_info:
        expect_equal([1], [2])

    assert exc_info.value.check == "expect_equal"
    assert exc_info.value.message == "Expected [1] to equal [2]."

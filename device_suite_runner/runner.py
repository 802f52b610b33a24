"""Remote side runner executing test modules and emitting lifecycle events."""

import asyncio
import inspect
import itertools
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from device_suite_runner.models.result import FailedExpectation
from device_suite_runner.reporter import Aggregator
from device_suite_runner.tree import Snapshot

log = logging.getLogger(__name__)

DEFAULT_SPEC_TIMEOUT = 10.0

type SpecBody = Callable[[], Awaitable[None] | None]


class ExpectationFailed(AssertionError):
    """Raised by a spec body when a named check does not hold."""

    def __init__(self, check: str, message: str) -> None:
        super().__init__(message)
        self.check = check
        self.message = message


def expect_equal(actual: Any, expected: Any) -> None:
    """Fail the running spec unless both values are equal."""
    if actual != expected:
        raise ExpectationFailed(
            "expect_equal", f"Expected {actual!r} to equal {expected!r}."
        )


def expect_true(value: Any, message: str = "") -> None:
    """Fail the running spec unless the value is truthy."""
    if not value:
        raise ExpectationFailed(
            "expect_true", message or f"Expected {value!r} to be truthy."
        )


@dataclass(frozen=True, kw_only=True)
class Spec:
    """A single named test case."""

    description: str
    body: SpecBody | None = None
    disabled: bool = False


@dataclass(frozen=True, kw_only=True)
class Suite:
    """A named group of specs and nested suites."""

    description: str
    specs: Sequence[Spec] = ()
    children: Sequence["Suite"] = ()


@dataclass(frozen=True, kw_only=True)
class TestModule:
    """Named unit of suites that can be selected through a deep link."""

    __test__ = False

    name: str
    suite: Suite


def select_modules(
    modules: Iterable[TestModule],
    uri: str | None,
    linking_uri: str | None,
) -> Sequence[TestModule]:
    """Confine the modules to the ones named by a deep link.

    When uri starts with linking_uri, the remainder is a regular expression
    that module names must match. Any other uri selects every module.
    """
    if not uri or not linking_uri or not uri.startswith(linking_uri):
        return list(modules)

    pattern = re.compile(uri[len(linking_uri) :])
    log.info("Filtering test modules with regex: %s", pattern.pattern)
    return [module for module in modules if pattern.search(module.name)]


class SuiteRunner:
    """Runs suites one spec at a time and reports through an aggregator.

    Spec bodies run on the current event loop, so lifecycle events reach the
    result tree strictly in emission order.
    """

    __test__ = False

    def __init__(
        self,
        aggregator: Aggregator,
        spec_timeout: float = DEFAULT_SPEC_TIMEOUT,
    ) -> None:
        self.aggregator = aggregator
        self.spec_timeout = spec_timeout
        self._suite_ids = itertools.count(1)
        self._spec_ids = itertools.count()

    async def run(
        self,
        modules: Iterable[TestModule],
        uri: str | None = None,
        linking_uri: str | None = None,
    ) -> Snapshot:
        """Run the selected modules and return the final result snapshot."""
        selected = select_modules(modules, uri, linking_uri)
        log.info("Running %d test module(s)", len(selected))

        self._suite_ids = itertools.count(1)
        self._spec_ids = itertools.count()

        self.aggregator.run_started()
        for module in selected:
            await self._run_suite(module.suite)
        return self.aggregator.run_done()

    async def _run_suite(self, suite: Suite) -> None:
        self.aggregator.suite_started(f"suite{next(self._suite_ids)}", suite.description)
        for spec in suite.specs:
            await self._run_spec(spec)
        for child in suite.children:
            await self._run_suite(child)
        self.aggregator.suite_done()

    async def _run_spec(self, spec: Spec) -> None:
        self.aggregator.spec_started(f"spec{next(self._spec_ids)}", spec.description)

        if spec.disabled or spec.body is None:
            self.aggregator.spec_done("disabled")
            return

        failures = await self._execute(spec.body)
        self.aggregator.spec_done("failed" if failures else "passed", failures)

    async def _execute(self, body: SpecBody) -> list[FailedExpectation]:
        """Run a spec body and collect its failures."""
        deadline = asyncio.timeout(self.spec_timeout)
        try:
            async with deadline:
                result = body()
                if inspect.isawaitable(result):
                    await result
        except ExpectationFailed as e:
            return [FailedExpectation(check=e.check, message=e.message)]
        except TimeoutError as e:
            # Raised by the body itself rather than by the deadline
            if not deadline.expired():
                return [FailedExpectation(check=type(e).__name__, message=str(e))]
            return [
                FailedExpectation(
                    check="timeout",
                    message=f"Spec did not complete within {self.spec_timeout} seconds",
                )
            ]
        except Exception as e:
            return [FailedExpectation(check=type(e).__name__, message=str(e))]
        return []

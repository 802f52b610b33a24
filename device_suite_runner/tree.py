"""Result tree built from the ordered suite and spec lifecycle events."""

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import replace

from device_suite_runner.models.result import (
    FINAL_STATUSES,
    OPEN_STATUSES,
    FailedExpectation,
    SpecResult,
    Status,
    SuiteResult,
)

log = logging.getLogger(__name__)

type Snapshot = tuple[SuiteResult, ...]
type Listener = Callable[[Snapshot], None]

FULL_NAME_SEPARATOR = "."


class TreeStructureError(Exception):
    """Raised when a lifecycle event does not fit the current tree shape."""


def iter_specs(suites: Sequence[SuiteResult]) -> Iterator[SpecResult]:
    """Yield every spec of the given suites, depth first."""
    for suite in suites:
        yield from suite.specs
        yield from iter_specs(suite.children)


def count_failed(suites: Sequence[SuiteResult]) -> int:
    """Count failed specs at any depth."""
    return sum(1 for spec in iter_specs(suites) if spec.status == "failed")


def _replace_at(
    suites: Snapshot,
    path: Sequence[int],
    update: Callable[[SuiteResult], SuiteResult],
) -> Snapshot:
    """Return a copy of suites with the suite at path replaced.

    Only the nodes along the path are copied, every other node is shared with
    the previous snapshot.
    """
    index, *rest = path
    suite = suites[index]
    if rest:
        new_suite = replace(suite, children=_replace_at(suite.children, rest, update))
    else:
        new_suite = update(suite)
    return suites[:index] + (new_suite,) + suites[index + 1 :]


class ResultTree:
    """In-memory tree of suite and spec outcomes.

    The path stack holds, for each open suite, its index inside the children
    of the suite below it (or inside the root for the first entry). Every
    write swaps in a new root tuple, so a snapshot obtained by a reader is
    never modified by later events.
    """

    def __init__(self) -> None:
        self._suites: Snapshot = ()
        self._path: tuple[int, ...] = ()
        self._listeners: list[Listener] = []

    @property
    def depth(self) -> int:
        """Current suite nesting depth."""
        return len(self._path)

    @property
    def path(self) -> tuple[int, ...]:
        """Indices addressing the innermost open suite."""
        return self._path

    def snapshot(self) -> Snapshot:
        """Return the current immutable view of the root suites."""
        return self._suites

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with every new snapshot, return an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Discard all results and start from an empty tree."""
        log.debug("Resetting result tree")
        self._commit((), ())

    def current_suite(self) -> SuiteResult | None:
        """Return the innermost open suite, None at top level."""
        suite = None
        suites = self._suites
        for index in self._path:
            suite = suites[index]
            suites = suite.children
        return suite

    def suite_started(self, suite_id: str, description: str) -> SuiteResult:
        """Open a new suite inside the current one."""
        suite = SuiteResult(id=suite_id, description=description)
        current = self.current_suite()
        if current is None:
            index = len(self._suites)
            suites = self._suites + (suite,)
        else:
            index = len(current.children)
            suites = _replace_at(
                self._suites,
                self._path,
                lambda s: replace(s, children=s.children + (suite,)),
            )
        self._commit(suites, self._path + (index,))
        return suite

    def suite_done(self) -> SuiteResult:
        """Close the innermost open suite and derive its status."""
        current = self.current_suite()
        if current is None:
            raise TreeStructureError("Suite finished with no open suite")

        status: Status = "failed" if count_failed([current]) else "passed"
        finished = replace(current, status=status)
        self._commit(
            _replace_at(self._suites, self._path, lambda _: finished),
            self._path[:-1],
        )
        return finished

    def spec_started(self, spec_id: str, description: str) -> SpecResult:
        """Append a running spec to the innermost open suite."""
        if not self._path:
            raise TreeStructureError(f"Spec '{description}' started outside a suite")

        spec = SpecResult(
            id=spec_id,
            description=description,
            full_name=FULL_NAME_SEPARATOR.join([*self._descriptions(), description]),
        )
        self._commit(
            _replace_at(
                self._suites,
                self._path,
                lambda s: replace(s, specs=s.specs + (spec,)),
            ),
            self._path,
        )
        return spec

    def spec_done(
        self,
        status: Status,
        failed_expectations: Sequence[FailedExpectation] = (),
    ) -> SpecResult:
        """Replace the last spec of the innermost suite with its final result."""
        if status not in FINAL_STATUSES:
            raise TreeStructureError(f"Spec cannot finish with status '{status}'")

        current = self.current_suite()
        if current is None or not current.specs:
            raise TreeStructureError("Spec finished with no pending spec")

        last = current.specs[-1]
        if last.status not in OPEN_STATUSES:
            raise TreeStructureError(f"Spec '{last.full_name}' already finished")

        finished = replace(
            last, status=status, failed_expectations=tuple(failed_expectations)
        )
        self._commit(
            _replace_at(
                self._suites,
                self._path,
                lambda s: replace(s, specs=s.specs[:-1] + (finished,)),
            ),
            self._path,
        )
        return finished

    def _descriptions(self) -> list[str]:
        descriptions: list[str] = []
        suites = self._suites
        for index in self._path:
            descriptions.append(suites[index].description)
            suites = suites[index].children
        return descriptions

    def _commit(self, suites: Snapshot, path: tuple[int, ...]) -> None:
        self._suites = suites
        self._path = path
        for listener in list(self._listeners):
            listener(suites)

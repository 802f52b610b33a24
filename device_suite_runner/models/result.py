"""Models for suite and spec outcomes held by the result tree."""

from dataclasses import dataclass
from typing import Literal

type Status = Literal["pending", "running", "passed", "failed", "disabled"]

FINAL_STATUSES: frozenset[Status] = frozenset(["passed", "failed", "disabled"])
OPEN_STATUSES: frozenset[Status] = frozenset(["pending", "running"])


@dataclass(frozen=True, kw_only=True)
class FailedExpectation:
    """A single failed check inside a spec."""

    check: str
    message: str


@dataclass(frozen=True, kw_only=True)
class SpecResult:
    """Outcome of a single spec (leaf of the tree)."""

    id: str
    description: str
    full_name: str
    status: Status = "running"
    failed_expectations: tuple[FailedExpectation, ...] = ()


@dataclass(frozen=True, kw_only=True)
class SuiteResult:
    """Outcome of a suite, owning its specs and nested suites.

    Containers are tuples so that a snapshot handed out to a reader can never
    change underneath it.
    """

    id: str
    description: str
    status: Status = "running"
    specs: tuple[SpecResult, ...] = ()
    children: tuple["SuiteResult", ...] = ()

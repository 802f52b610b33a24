"""Test factories for generating test data."""

from polyfactory.factories import DataclassFactory
from polyfactory.factories.pydantic_factory import ModelFactory

from device_suite_runner.models.result import SpecResult
from device_suite_runner.models.summary import RunSummary


class SpecResultFactory(DataclassFactory[SpecResult]):
    """Factory for finished SpecResult."""

    __model__ = SpecResult

    status = "passed"
    failed_expectations = ()


class RunSummaryFactory(ModelFactory[RunSummary]):
    """Factory for RunSummary."""

    __model__ = RunSummary

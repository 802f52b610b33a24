"""Models carried between the remote runner and the driver."""

from typing import Literal

from pydantic import ConfigDict, Field

from device_suite_runner.models.base import Model

COMPLETION_MAGIC = "[TEST-SUITE-END]"


class RunSummary(Model):
    """Final outcome of a run, written behind the completion marker."""

    magic: Literal["[TEST-SUITE-END]"] = Field(
        default=COMPLETION_MAGIC, description="Completion marker literal"
    )
    failed_count: int = Field(
        ..., alias="failed", ge=0, strict=True, description="Number of failed specs"
    )
    report_text: str = Field(
        default="", alias="results", description="Concatenated report lines"
    )


class CompletionPayload(RunSummary):
    """Run summary as decoded from the wire, where every field is required."""

    magic: Literal["[TEST-SUITE-END]"] = Field(
        ..., description="Completion marker literal"
    )
    report_text: str = Field(
        ..., alias="results", description="Concatenated report lines"
    )

    def to_summary(self) -> RunSummary:
        """Return the plain run summary carried by this payload."""
        return RunSummary.model_validate(self.model_dump())


class Manifest(Model):
    """Manifest document served for the test artifact.

    Only the identifying ``name`` is validated, everything else is kept as-is.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(..., description="Identifying name of the served artifact")

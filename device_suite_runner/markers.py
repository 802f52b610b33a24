"""Log markers used to synchronize the driver with the remote runner.

The serving process log is the only channel from the remote runner back to the
driver, so both sides agree on two literal markers:

- the ready marker, printed once the serving process finished initializing;
- the completion marker, a unique prefix immediately followed by the JSON
  encoded run summary.

Matching is evaluated per chunk. A marker split across two chunks is not
detected.
"""

from pydantic import ValidationError

from device_suite_runner.models.summary import (
    COMPLETION_MAGIC,
    CompletionPayload,
    RunSummary,
)

__all__ = [
    "COMPLETION_MAGIC",
    "READY_MARKER",
    "CompletionPayloadError",
    "format_completion",
    "is_completion",
    "is_ready",
    "parse_completion",
]

READY_MARKER = "<END>   Initializing Packager"


class CompletionPayloadError(Exception):
    """Raised when the completion marker carries an unreadable summary."""


def is_ready(chunk: str) -> bool:
    """Check if a chunk signals that the serving process is ready."""
    return READY_MARKER in chunk


def is_completion(chunk: str) -> bool:
    """Check if a chunk carries the completion marker."""
    return COMPLETION_MAGIC in chunk


def format_completion(summary: RunSummary) -> str:
    """Serialize a summary behind the completion marker."""
    return COMPLETION_MAGIC + summary.model_dump_json(by_alias=True)


def parse_completion(chunk: str) -> RunSummary:
    """Decode the run summary following the completion marker.

    Raises:
        CompletionPayloadError: If the chunk has no marker or the payload is
            not a valid summary

    """
    index = chunk.find(COMPLETION_MAGIC)
    if index < 0:
        raise CompletionPayloadError("Completion marker not found in chunk")

    payload = chunk[index + len(COMPLETION_MAGIC) :]
    try:
        decoded = CompletionPayload.model_validate_json(payload)
    except ValidationError as e:
        raise CompletionPayloadError(f"Malformed completion payload: {e}") from e
    return decoded.to_summary()

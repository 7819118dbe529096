"""Events published while a run is in progress.

Every event is one member of the closed ``RunEvent`` union, discriminated
on ``type``. Transports receive the event name and a JSON-ready payload.
"""

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from k6_orchestrator.models.base import Model


class _OutputEvent(Model):
    data: str
    run_id: str | None = Field(default=None, alias="testId")

    @property
    def name(self) -> str:
        return self.type  # type: ignore[attr-defined, no-any-return]

    def payload(self) -> dict[str, Any]:
        """Return the wire payload for this event."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LogEvent(_OutputEvent):
    """Informational line, including k6 progress lines."""

    type: Literal["log"] = "log"


class ErrorEvent(_OutputEvent):
    """Error output or a run failure."""

    type: Literal["error"] = "error"


class CompleteEvent(_OutputEvent):
    """Run finished with exit code 0."""

    type: Literal["complete"] = "complete"


class StoppedEvent(_OutputEvent):
    """Run was terminated by a signal."""

    type: Literal["stopped"] = "stopped"


class ResultsUpdatedEvent(Model):
    """Result artifacts should be re-read by clients."""

    type: Literal["resultsUpdated"] = "resultsUpdated"
    message: str
    test_name: str = Field(alias="testName")
    result_file: str | None = Field(default=None, alias="resultFile")
    timestamp: str

    @property
    def name(self) -> str:
        return self.type

    def payload(self) -> dict[str, Any]:
        """Return the wire payload for this event."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"type"}
        )


type RunEvent = Annotated[
    LogEvent | ErrorEvent | CompleteEvent | StoppedEvent | ResultsUpdatedEvent,
    Field(discriminator="type"),
]

run_event_adapter: TypeAdapter[RunEvent] = TypeAdapter(RunEvent)

"""Turn models for replay of a session log."""

from pydantic import Field

from .base import CamelCaseModel
from .records import LogRecord


class Segment(CamelCaseModel):
    """Activity records closed by one assistant text output."""

    activity_messages: list[LogRecord] = Field(default_factory=list)
    text_output: LogRecord | None = None


class Turn(CamelCaseModel):
    """One user input and the agent's full response to it.

    ``all_message_uuids`` lists every record uuid consumed into this turn in
    log order. It is the unit of idempotent replay.
    """

    user_input: LogRecord | None = Field(default=None, description="None only for records preceding any user input")
    segments: list[Segment] = Field(default_factory=list)
    trailing_activity: list[LogRecord] = Field(default_factory=list)
    all_message_uuids: list[str] = Field(default_factory=list)
    plan_file_path: str | None = None

    @property
    def records(self) -> list[LogRecord]:
        """Every record of the turn in log order."""
        ordered: list[LogRecord] = []
        if self.user_input is not None:
            ordered.append(self.user_input)
        for segment in self.segments:
            ordered.extend(segment.activity_messages)
            if segment.text_output is not None:
                ordered.append(segment.text_output)
        ordered.extend(self.trailing_activity)
        return ordered

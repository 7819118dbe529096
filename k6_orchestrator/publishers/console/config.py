"""Configuration for the console publisher."""

from pydantic import BaseModel


class ConsolePublisherConfig(BaseModel):
    """Configuration for the console publisher."""

    logger_name: str = "k6_orchestrator.events"
    # Show the raw event name in front of each line
    show_event_name: bool = False

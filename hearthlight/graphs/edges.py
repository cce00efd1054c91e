"""Edge logic and routing for the turn graph."""

from typing import Literal

from hearthlight.graphs.state import TurnState
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


def route_model_output(state: TurnState) -> Literal["extract", "compose"]:
    """Skip extraction when the model could not be reached."""
    if state.error:
        logger.warning(f"Model call failed for thread {state.thread_id}, composing apology")
        return "compose"
    return "extract"


def route_extraction_output(state: TurnState) -> Literal["execute", "compose"]:
    """Only run the execution node when the reply contained calls."""
    if state.parsed is not None and state.parsed.calls:
        return "execute"
    return "compose"

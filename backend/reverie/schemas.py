# backend/reverie/schemas.py
"""
Inbound WebSocket message models.

Every client message is a JSON object with a "type" discriminator. Numbers
must be finite: NaN and infinities are rejected before they can reach the
simulation.
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class IdentifyMessage(BaseModel):
    """Bind the connection to a character."""
    type: Literal["identify"]
    character_id: str = Field(..., min_length=1, max_length=64)


class IntentMessage(BaseModel):
    """Manual control: desired heading in radians and a thrust flag."""
    type: Literal["intent"]
    thrust: bool = False
    heading: float = Field(..., allow_inf_nan=False)


class MoveToMessage(BaseModel):
    """Autopilot destination in scene coordinates."""
    type: Literal["move_to"]
    x: float = Field(..., allow_inf_nan=False)
    y: float = Field(..., allow_inf_nan=False)


class CancelMoveMessage(BaseModel):
    type: Literal["cancel_move"]


class TravelMessage(BaseModel):
    """Step to the adjacent scene on the region grid."""
    type: Literal["travel"]
    direction: Literal["north", "south", "east", "west", "n", "s", "e", "w"]


InboundMessage = Annotated[
    Union[IdentifyMessage, IntentMessage, MoveToMessage, CancelMoveMessage, TravelMessage],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(data: object) -> InboundMessage:
    """Validate a decoded JSON message. Raises pydantic.ValidationError."""
    return inbound_adapter.validate_python(data)

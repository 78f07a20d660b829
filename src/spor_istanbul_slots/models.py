from __future__ import annotations

from pydantic import BaseModel, Field


class AppointmentRecord(BaseModel):
    """
    One bookable session card from the session selection page.

    Text fields default to "" when the card has no matching markup.
    """

    day: str = ""
    session_level: str = ""
    salon_name: str = ""
    time: str = ""
    gender: str = ""
    capacity: int = Field(default=0, ge=0)

    def has_capacity(self) -> bool:
        return self.capacity > 0

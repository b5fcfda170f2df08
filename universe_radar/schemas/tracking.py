from typing import Optional

from pydantic import BaseModel, Field, model_validator


class TrackRequest(BaseModel):
    universe_id: Optional[int] = Field(default=None, gt=0)
    place_id: Optional[int] = Field(default=None, gt=0)
    id: Optional[int] = Field(default=None, gt=0, description="Universe or place id; tried as a universe first")
    name: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def _require_identifier(self) -> "TrackRequest":
        if self.universe_id is None and self.place_id is None and self.id is None:
            raise ValueError("Provide universe_id, place_id or id")
        return self


class TrackResponse(BaseModel):
    ok: bool = True
    universe_id: int


class UntrackResponse(BaseModel):
    ok: bool = True

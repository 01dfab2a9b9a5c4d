"""
Data model for values produced by the interval emitter.
"""

from pydantic import BaseModel, ConfigDict, Field


class Tick(BaseModel):
    """A single periodic emission."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int = Field(
        ..., ge=0, description="Zero-based position of the tick in the emitter's sequence"
    )

"""Request and response schemas for speech synthesis."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

MIN_SPEED = 0.5
MAX_SPEED = 2.0
MIN_TEMPERATURE = 0.5
MAX_TEMPERATURE = 1.5


class SynthesisRequest(BaseModel):
    """Body of ``POST /api/pdf-to-speech``."""

    text: str = Field(default="")
    voice_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("voiceId", "voice", "voice_id"),
    )
    speed: float = Field(default=1.0, ge=MIN_SPEED, le=MAX_SPEED)
    temperature: float = Field(default=1.0, ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE)
    page_number: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("pageNumber", "pageNum", "page_number"),
    )
    is_continuous: bool = Field(
        default=False,
        validation_alias=AliasChoices("isContinuous", "is_continuous"),
    )
    document_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("documentId", "document_id"),
    )


class VoiceOptions(BaseModel):
    defaultVoice: str
    outputFormat: str
    sampleRate: int
    minSpeed: float = MIN_SPEED
    maxSpeed: float = MAX_SPEED
    minTemperature: float = MIN_TEMPERATURE
    maxTemperature: float = MAX_TEMPERATURE


__all__ = [
    "MAX_SPEED",
    "MAX_TEMPERATURE",
    "MIN_SPEED",
    "MIN_TEMPERATURE",
    "SynthesisRequest",
    "VoiceOptions",
]

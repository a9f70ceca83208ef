"""Pydantic models for the writing-tool API."""

from pydantic import BaseModel, Field

MAX_TEXT_LENGTH = 20000


class ParaphraseRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    style: str = "standard"


class SummarizeRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    style: str = "smart"
    length_percent: int = Field(50, ge=10, le=90)


class GrammarRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    style: str = "standard"


class PlagiarismRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)

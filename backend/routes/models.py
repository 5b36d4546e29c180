"""Pydantic request/response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class CreateSessionBody(BaseModel):
    story_id: str
    resume: bool = False


class ChooseBody(BaseModel):
    index: int


class CreateStoryBody(BaseModel):
    title: str
    description: str = ""
    start: str
    knots: dict[str, Any]
    variables: dict[str, Any] = {}
    global_tags: list[str] = []

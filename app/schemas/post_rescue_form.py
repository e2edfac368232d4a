# app/schemas/post_rescue_form.py
from pydantic import Field
from datetime import datetime
from typing import Any, Optional
from app.schemas.base import ApiModel


class PostRescueFormCreate(ApiModel):
    no_of_personnel_deployed: int = Field(ge=0)
    resources_used: Any
    action_taken: str = Field(min_length=1, max_length=255)


class PostRescueFormOut(ApiModel):
    id: int
    alert_id: str
    no_of_personnel_deployed: int
    resources_used: Any
    action_taken: str
    created_at: datetime
    completed_at: datetime
    archived_at: Optional[datetime]


class PostRescueFormCreated(ApiModel):
    message: str
    new_form: PostRescueFormOut


class Message(ApiModel):
    message: str


class FixStatusResult(ApiModel):
    message: str
    fixed: int
    alert_ids: list[str]


class MigrationResult(ApiModel):
    message: str
    updated_count: int

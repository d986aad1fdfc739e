"""Pydantic schemas for dispatch and task queries.

Learn: Request bodies accept camelCase (what the dashboard sends) as
well as snake_case. Responses for tasks are the Task model's own wire
shape, so there is no separate TaskRead schema.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DispatchCreate(_CamelIn):
    prompt: str = Field(..., min_length=1, max_length=4000)
    user_id: Optional[str] = Field(None, max_length=200)
    preferred_specialist: Optional[str] = None
    dry_run: bool = False
    callback_url: Optional[str] = Field(None, max_length=2048)
    hired_agents: Optional[list[str]] = None


class DispatchRead(_CamelIn):
    task_id: str
    status: str
    specialist: str


class VoteCreate(_CamelIn):
    task_id: str = Field(..., min_length=1)
    specialist: str = Field(..., min_length=1)
    vote: str = Field(..., pattern=r"^(up|down)$")


class SpecialistInvoke(_CamelIn):
    prompt: str = Field(..., min_length=1, max_length=4000)

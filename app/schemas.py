from datetime import datetime
from typing import Annotated

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, Strict

# 2..100 character audit / label strings
Name = Annotated[str, Field(min_length=2, max_length=100)]
# Strict: JSON true or 1.0 is not a state.
State = Annotated[int, Strict(), Field(ge=0, le=1)]
PositiveId = Annotated[int, Field(ge=1)]


# --- User ---

class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    display_name: str | None = None
    bio: str | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Tag ---

class TagCreate(BaseModel):
    # Older clients send the tag name under "title".
    name: Name = Field(validation_alias=AliasChoices("name", "title"))
    created_by: Name
    updated_by: Name


class TagUpdate(BaseModel):
    """
    Partial update: only fields present in the payload are written.
    Explicit ``null`` is treated the same as an absent field.
    """

    name: Name | None = Field(None, validation_alias=AliasChoices("name", "title"))
    status: State | None = None
    created_by: Name | None = None
    updated_by: Name | None = None


class TagResponse(BaseModel):
    id: int
    name: str
    status: int
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class TagBrief(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    title: Name
    desc: str | None = Field(None, max_length=255)
    content: str = Field(min_length=2)
    cover_image_url: str | None = Field(None, max_length=255)
    state: State = 1
    created_by: Name
    user_id: PositiveId | None = None
    tag_ids: list[PositiveId] = []


class ArticleUpdate(BaseModel):
    title: Name | None = None
    desc: str | None = Field(None, max_length=255)
    content: str | None = Field(None, min_length=2)
    cover_image_url: str | None = Field(None, max_length=255)
    state: State | None = None
    updated_by: Name | None = None
    tag_ids: list[PositiveId] | None = None


class ArticleResponse(BaseModel):
    id: int
    title: str
    desc: str | None
    content: str
    cover_image_url: str | None
    state: int
    created_by: str
    updated_by: str | None
    user_id: int | None
    author: UserResponse | None = None
    tags: list[TagBrief] = []
    created_at: datetime
    updated_at: datetime | None = None


# --- Upload ---

class UploadResponse(BaseModel):
    file_access_url: str


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int


# --- Errors ---

class FieldError(BaseModel):
    field: str
    constraint: str
    message: str


class ValidationErrorResponse(BaseModel):
    msg: str = "invalid params"
    details: list[FieldError]


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_articles: int
    total_tags: int
    total_users: int
    cache_info: dict = {}

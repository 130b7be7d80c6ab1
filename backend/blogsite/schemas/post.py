from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageRef(BaseModel):
    url: str
    storage_id: str


class AuthorSummary(BaseModel):
    id: str
    name: str


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=5000)


class CommentResponse(BaseModel):
    id: str
    user: str
    name: str
    text: str
    created_at: datetime


class PostResponse(BaseModel):
    id: str
    title: str
    description: str
    content: str
    category: str
    image: Optional[ImageRef] = None
    author: AuthorSummary
    likes: List[str] = []
    like_count: int = 0
    comments: List[CommentResponse] = []
    created_at: datetime
    updated_at: datetime


class PostEnvelope(BaseModel):
    message: str
    post: PostResponse


class CommentEnvelope(BaseModel):
    message: str
    comment: CommentResponse


class LikeToggleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    liked: bool
    like_count: int = Field(..., serialization_alias="likeCount")


class MessageResponse(BaseModel):
    message: str

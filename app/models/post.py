from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum

CONTENT_MAX_LENGTH = 1000


class PostType(str, Enum):
    NEED = "NEED"
    HAVE = "HAVE"


class PostTypeFilter(str, Enum):
    NEED = "NEED"
    HAVE = "HAVE"
    ALL = "ALL"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PostTypeFilter":
        """Case-insensitive parse; missing or unknown values mean ALL."""
        if not value:
            return cls.ALL
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.ALL


class PostCreate(BaseModel):
    type: PostType
    content: str = Field(..., min_length=1, max_length=CONTENT_MAX_LENGTH)

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, value):
        return value.strip() if isinstance(value, str) else value


class Post(BaseModel):
    """A stored listing."""
    id: str
    type: PostType
    content: str
    user_id: str
    image_url: Optional[str] = None
    created_at: datetime


class PostOut(BaseModel):
    """A feed entry as returned to clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: PostType
    content: str
    user_id: str = Field(..., alias="userId")
    user_name: str = Field(..., alias="userName")
    created_at: str = Field(..., alias="createdAt")
    image_url: Optional[str] = Field(None, alias="imageUrl")


class PostCreateResponse(BaseModel):
    success: bool = True
    message: str
    data: PostOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str

from datetime import datetime
from typing import Literal

from beanie import Document
from pydantic import Field


class Course(Document):
    id: int  # allocated from the "courseId" sequence
    title: str
    description: str = ""
    price: int = Field(default=0, ge=0)
    category_id: int | None = None
    instructor_id: int | None = None
    level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    status: Literal["draft", "published", "archived"] = "draft"
    enrollment_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "courses"

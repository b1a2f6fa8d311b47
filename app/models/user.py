from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import BaseModel, Field

EnrollmentStatus = Literal["active", "completed", "cancelled"]


class Enrollment(BaseModel):
    course_id: int
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)
    price: int = Field(ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    status: EnrollmentStatus = "active"
    last_accessed: datetime = Field(default_factory=datetime.utcnow)


class User(Document):
    id: int  # allocated from the "userId" sequence
    name: str
    email: Indexed(str, unique=True)
    role: str = "student"  # "student" | "instructor" | "admin"
    coins: int = Field(default=0, ge=0)
    enrolled_courses: list[Enrollment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        indexes = [
            [("enrolled_courses.course_id", 1)],
            [("role", 1)],
        ]

    def get_enrollment(self, course_id: int) -> Enrollment | None:
        return next((e for e in self.enrolled_courses if e.course_id == course_id), None)

    def is_enrolled_in(self, course_id: int) -> bool:
        """Only active enrollments count; cancelled ones may be re-purchased."""
        enrollment = self.get_enrollment(course_id)
        return enrollment is not None and enrollment.status == "active"

    def enrollment_stats(self) -> dict:
        stats = {"total": len(self.enrolled_courses), "active": 0, "completed": 0, "cancelled": 0}
        if not self.enrolled_courses:
            stats.update(averageProgress=0, recentActivity=None)
            return stats
        for e in self.enrolled_courses:
            stats[e.status] += 1
        stats["averageProgress"] = round(sum(e.progress for e in self.enrolled_courses) / len(self.enrolled_courses))
        stats["recentActivity"] = max(e.last_accessed for e in self.enrolled_courses)
        return stats

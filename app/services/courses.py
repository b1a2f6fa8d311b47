from beanie.operators import In

from app.core.exceptions import InvalidArgumentError, NotFoundError
from app.core.logging import get_logger
from app.models.course import Course
from app.services.counters import get_next_id

log = get_logger(__name__)


async def create_course(
    title: str,
    price: int,
    description: str = "",
    category_id: int | None = None,
    instructor_id: int | None = None,
    status: str = "published",
) -> Course:
    if price < 0:
        raise InvalidArgumentError("Price must be a non-negative number")
    course = Course(
        id=await get_next_id("courseId"),
        title=title,
        description=description,
        price=price,
        category_id=category_id,
        instructor_id=instructor_id,
        status=status,
    )
    await course.insert()
    log.info("course_created", course_id=course.id, price=price)
    return course


async def get_course(course_id: int) -> Course:
    course = await Course.get(course_id)
    if not course:
        raise NotFoundError("Course not found")
    return course


async def courses_by_id(course_ids: list[int]) -> dict[int, Course]:
    if not course_ids:
        return {}
    courses = await Course.find(In(Course.id, course_ids)).to_list()
    return {c.id: c for c in courses}

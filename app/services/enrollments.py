"""Pay-with-coins course enrollment.

Validation (course, user, enrollment state, balance) happens before any write. The
debit, the enrollment record, the ledger entry and the course counter are then
written inside one transaction, so either all of them land or none do.
"""

from datetime import datetime
from typing import Any

from beanie import UpdateResponse
from beanie.operators import Inc, Push, Set

from app.core.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from app.core.logging import get_logger
from app.db.transactions import transaction
from app.models.course import Course
from app.models.user import Enrollment, User
from app.services import courses as courses_service
from app.services import ledger as ledger_service

log = get_logger(__name__)


def _check_course_id(course_id: Any) -> int:
    if isinstance(course_id, bool) or not isinstance(course_id, int) or course_id <= 0:
        raise InvalidArgumentError("Invalid course ID format")
    return course_id


async def _load_user(user_id: int, session: Any = None) -> User:
    user = await User.get(user_id, session=session)
    if not user:
        raise NotFoundError("User not found")
    return user


def _insufficient(price: int, coins: int) -> InvalidStateError:
    return InvalidStateError("Insufficient coins", details={"requiredCoins": price, "currentCoins": coins})


async def _debit_and_enroll(user: User, course: Course, session: Any) -> User | None:
    """Guarded single-document write: debit plus push (or reactivate) the enrollment."""
    now = datetime.utcnow()
    price = course.price
    existing = user.get_enrollment(course.id)
    if existing is None:
        record = Enrollment(course_id=course.id, enrolled_at=now, price=price, last_accessed=now)
        return await User.find_one(
            User.id == user.id,
            User.coins >= price,
            {"enrolled_courses.course_id": {"$ne": course.id}},
            session=session,
        ).update(
            Inc({User.coins: -price}),
            Push({User.enrolled_courses: record.model_dump()}),
            Set({User.updated_at: now}),
            session=session,
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
    return await User.find_one(
        User.id == user.id,
        User.coins >= price,
        {"enrolled_courses": {"$elemMatch": {"course_id": course.id, "status": "cancelled"}}},
        session=session,
    ).update(
        Inc({User.coins: -price}),
        Set(
            {
                "enrolled_courses.$.status": "active",
                "enrolled_courses.$.price": price,
                "enrolled_courses.$.last_accessed": now,
                User.updated_at: now,
            }
        ),
        session=session,
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def _bump_enrollment_count(course_id: int, session: Any) -> None:
    bumped = await Course.find_one(Course.id == course_id, session=session).update(
        Inc({Course.enrollment_count: 1}),
        session=session,
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if bumped is None:
        raise NotFoundError("Course not found")


async def enroll(user_id: int, course_id: Any) -> dict:
    """Charge course.price coins and enroll. Returns {coinsRemaining, courseId}."""
    course_id = _check_course_id(course_id)
    course = await Course.get(course_id)
    if not course:
        raise NotFoundError("Course not found")
    user = await _load_user(user_id)
    if user.is_enrolled_in(course_id):
        raise InvalidStateError("Already enrolled in this course")
    existing = user.get_enrollment(course_id)
    if existing is not None and existing.status == "completed":
        raise InvalidStateError("Course already completed")
    if user.coins < course.price:
        raise _insufficient(course.price, user.coins)

    async with transaction() as session:
        updated = await _debit_and_enroll(user, course, session)
        if updated is None:
            # a concurrent request enrolled or spent coins since validation
            current = await _load_user(user_id, session=session)
            raced = current.get_enrollment(course_id)
            if raced is not None and raced.status != "cancelled":
                raise InvalidStateError("Already enrolled in this course")
            raise _insufficient(course.price, current.coins)
        if course.price > 0:
            await ledger_service.record(
                user_id,
                course.price,
                "debit",
                f"Enrolled in course: {course.title}",
                reference_id=course_id,
                reference_type="course_enrollment",
                metadata={"courseTitle": course.title, "price": course.price},
                session=session,
            )
        await _bump_enrollment_count(course_id, session)

    log.info("course_enrolled", user_id=user_id, course_id=course_id, price=course.price, coins=updated.coins)
    return {"coinsRemaining": updated.coins, "courseId": course_id}


async def enrollment_status(user_id: int, course_id: int) -> bool:
    user = await _load_user(user_id)
    return user.is_enrolled_in(course_id)


async def list_enrollments(user_id: int) -> dict:
    """Enrollment records joined with course summaries, plus per-status stats."""
    user = await _load_user(user_id)
    courses = await courses_service.courses_by_id([e.course_id for e in user.enrolled_courses])
    out = []
    for e in user.enrolled_courses:
        course = courses.get(e.course_id)
        out.append(
            {
                "courseId": e.course_id,
                "enrolledAt": e.enrolled_at.isoformat(),
                "price": e.price,
                "progress": e.progress,
                "status": e.status,
                "lastAccessed": e.last_accessed.isoformat(),
                "course": {
                    "title": course.title,
                    "description": course.description,
                    "level": course.level,
                    "instructorId": course.instructor_id,
                }
                if course
                else None,
            }
        )
    return {"enrollments": out, "stats": user.enrollment_stats()}


async def _require_enrollment(user_id: int, course_id: int) -> Enrollment:
    user = await _load_user(user_id)
    enrollment = user.get_enrollment(course_id)
    if enrollment is None:
        raise InvalidStateError("Not enrolled in this course")
    return enrollment


async def cancel_enrollment(user_id: int, course_id: int) -> Enrollment:
    """Mark the enrollment cancelled. Coins are not refunded."""
    enrollment = await _require_enrollment(user_id, course_id)
    if enrollment.status == "cancelled":
        raise InvalidStateError("Enrollment already cancelled")
    now = datetime.utcnow()
    updated = await User.find_one(
        User.id == user_id,
        {"enrolled_courses": {"$elemMatch": {"course_id": course_id, "status": {"$ne": "cancelled"}}}},
    ).update(
        Set({"enrolled_courses.$.status": "cancelled", "enrolled_courses.$.last_accessed": now, User.updated_at: now}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is None:
        # cancelled by a concurrent request since the read
        raise InvalidStateError("Enrollment already cancelled")
    log.info("enrollment_cancelled", user_id=user_id, course_id=course_id)
    return updated.get_enrollment(course_id)


async def update_progress(user_id: int, course_id: int, progress: Any) -> Enrollment:
    """Set progress 0..100 on an active enrollment; 100 completes it."""
    if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
        raise InvalidArgumentError("Progress must be an integer between 0 and 100")
    enrollment = await _require_enrollment(user_id, course_id)
    if enrollment.status != "active":
        raise InvalidStateError("Cannot update progress for inactive enrollment")
    now = datetime.utcnow()
    status = "completed" if progress >= 100 else "active"
    updated = await User.find_one(
        User.id == user_id,
        {"enrolled_courses": {"$elemMatch": {"course_id": course_id, "status": "active"}}},
    ).update(
        Set(
            {
                "enrolled_courses.$.progress": progress,
                "enrolled_courses.$.status": status,
                "enrolled_courses.$.last_accessed": now,
                User.updated_at: now,
            }
        ),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is None:
        # status changed by a concurrent request since the read
        raise InvalidStateError("Cannot update progress for inactive enrollment")
    log.info("enrollment_progress", user_id=user_id, course_id=course_id, progress=progress, status=status)
    return updated.get_enrollment(course_id)

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.deps import CurrentUser, get_current_user
from app.services import enrollments as enrollment_service

router = APIRouter()


class ProgressRequest(BaseModel):
    progress: int = Field(strict=True)


@router.post("/courses/{course_id}/enroll")
async def enroll_in_course(course_id: int, user: CurrentUser = Depends(get_current_user)):
    """Pay the course price in coins and enroll."""
    result = await enrollment_service.enroll(user.user_id, course_id)
    return {
        "success": True,
        "message": "Successfully enrolled in course",
        "coins": result["coinsRemaining"],
        "courseId": result["courseId"],
    }


@router.get("/users/me/courses")
async def my_enrollments(user: CurrentUser = Depends(get_current_user)):
    """Enrolled courses with course summaries."""
    out = await enrollment_service.list_enrollments(user.user_id)
    return {"success": True, **out}


@router.get("/status/{course_id}")
async def enrollment_status(course_id: int, user: CurrentUser = Depends(get_current_user)):
    is_enrolled = await enrollment_service.enrollment_status(user.user_id, course_id)
    return {"success": True, "isEnrolled": is_enrolled, "courseId": course_id}


@router.post("/courses/{course_id}/cancel")
async def cancel_enrollment(course_id: int, user: CurrentUser = Depends(get_current_user)):
    """Cancel an enrollment (no refund)."""
    enrollment = await enrollment_service.cancel_enrollment(user.user_id, course_id)
    return {"success": True, "message": "Enrollment cancelled", "courseId": course_id, "status": enrollment.status}


@router.put("/courses/{course_id}/progress")
async def update_progress(course_id: int, body: ProgressRequest, user: CurrentUser = Depends(get_current_user)):
    enrollment = await enrollment_service.update_progress(user.user_id, course_id, body.progress)
    return {
        "success": True,
        "courseId": course_id,
        "progress": enrollment.progress,
        "status": enrollment.status,
    }

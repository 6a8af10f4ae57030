"""
Enrollment lifecycle endpoints (students only)
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress.courses.dependencies import get_db, require_student
from lms_progress.courses.models import UpdateProgressRequest
from lms_progress.enrollment.lifecycle import (
    enrolled_courses, update_progress, mark_completed, investment_stats
)

router = APIRouter(tags=["Enrollments"])


@router.get("/enrolled-courses")
async def get_enrolled_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_student)
):
    """Enrolled courses split into active / completed / not started"""
    return {"success": True, "data": await enrolled_courses(db, user_id)}


@router.put("/progress")
async def put_progress(
    body: UpdateProgressRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_student)
):
    """Manually set progress on an enrollment"""
    data = await update_progress(db, user_id, body.course_id, body.progress)
    return {"success": True, "message": "Course progress updated", "data": data}


@router.put("/complete/{course_id}")
async def complete_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_student)
):
    """Mark a course as completed regardless of computed progress"""
    data = await mark_completed(db, user_id, course_id)
    return {"success": True, "message": "Course marked as completed", "data": data}


@router.get("/investment-stats")
async def get_investment_stats(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(require_student)
):
    return {"success": True, "data": await investment_stats(db, user_id)}

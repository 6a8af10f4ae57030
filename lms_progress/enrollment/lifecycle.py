"""
Completion & enrollment lifecycle

not_started (0) -> active (0 < p < 100) -> completed (100).
Reaching 100 puts the course on the student's completed list once.
The manual paths here bypass the aggregator and write the enrollment directly.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress.courses.database import (
    get_courses, get_user_enrollments, require_enrollment, set_enrollment_progress
)
from lms_progress.courses.models import Course, Enrollment
from lms_progress.errors import ValidationError
from lms_progress.progress.models import StudentProgress
from lms_progress.progress.store import student_progress

logger = logging.getLogger(__name__)


class EnrollmentStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"


def enrollment_status(progress: int) -> EnrollmentStatus:
    if progress >= 100:
        return EnrollmentStatus.COMPLETED
    if progress > 0:
        return EnrollmentStatus.ACTIVE
    return EnrollmentStatus.NOT_STARTED


def record_completion_if_done(state: StudentProgress, course_id: str, progress: int, now: datetime) -> bool:
    if enrollment_status(progress) != EnrollmentStatus.COMPLETED:
        return False
    added = state.record_completion(course_id, now)
    if added:
        logger.info("Student %s completed course %s", state.student_id, course_id)
    return added


async def update_progress(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    progress: int,
    now: Optional[datetime] = None,
) -> dict:
    """Manually set the enrollment progress"""
    now = now or datetime.utcnow()
    if progress < 0 or progress > 100:
        raise ValidationError("Progress must be between 0 and 100", progress=progress)

    await require_enrollment(db, course_id, student_id)

    if enrollment_status(progress) == EnrollmentStatus.COMPLETED:
        async with student_progress(db, student_id) as state:
            record_completion_if_done(state, course_id, progress, now)

    await set_enrollment_progress(db, course_id, student_id, progress, now)
    return {
        "courseId": course_id,
        "progress": progress,
        "status": enrollment_status(progress).value,
        "lastAccessed": now,
    }


async def mark_completed(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    now: Optional[datetime] = None,
) -> dict:
    """Force the course to 100%, refreshing the completion date on repeat"""
    now = now or datetime.utcnow()
    await require_enrollment(db, course_id, student_id)

    async with student_progress(db, student_id) as state:
        added = state.record_completion(course_id, now, refresh=True)

    await set_enrollment_progress(db, course_id, student_id, 100, now)
    logger.info(
        "Course %s marked completed by student %s (%s)",
        course_id, student_id, "new" if added else "refreshed",
    )
    return {"courseId": course_id, "completedOn": now}

# ==================== REPORTING ====================

def _format_course(course: Course, enrollment: Enrollment) -> dict:
    return {
        "courseId": course.course_id,
        "title": course.title,
        "instructorId": course.instructor_id,
        "progress": enrollment.progress,
        "status": enrollment_status(enrollment.progress).value,
        "purchasedAt": enrollment.purchased_at,
        "enrolledAt": enrollment.enrolled_at,
        "lastAccessed": enrollment.last_accessed,
        "paymentAmount": enrollment.payment_amount,
        "isPurchased": enrollment.payment_amount is not None,
        "totalDuration": course.total_duration,
        "totalChapters": len(course.chapters),
    }


async def enrolled_courses(db: AsyncIOMotorDatabase, student_id: str) -> dict:
    enrollments = await get_user_enrollments(db, student_id)
    courses = {c.course_id: c for c in await get_courses(db, [e.course_id for e in enrollments])}

    all_courses = [
        _format_course(courses[e.course_id], e)
        for e in enrollments
        if e.course_id in courses
    ]
    completed = [c for c in all_courses if c["status"] == EnrollmentStatus.COMPLETED.value]
    active = [c for c in all_courses if c["status"] == EnrollmentStatus.ACTIVE.value]
    not_started = [c for c in all_courses if c["status"] == EnrollmentStatus.NOT_STARTED.value]

    return {
        "all": all_courses,
        "active": active + not_started,
        "completed": completed,
        "notStarted": not_started,
        "stats": {
            "total": len(all_courses),
            "completed": len(completed),
            "active": len(active),
            "notStarted": len(not_started),
            "totalInvestment": sum(e.payment_amount or 0 for e in enrollments),
        },
    }


async def investment_stats(db: AsyncIOMotorDatabase, student_id: str) -> dict:
    purchases: List[Enrollment] = [
        e for e in await get_user_enrollments(db, student_id) if e.payment_amount is not None
    ]
    courses = {c.course_id: c for c in await get_courses(db, [p.course_id for p in purchases])}

    recent = sorted(purchases, key=lambda p: p.purchased_at or datetime.min, reverse=True)[:5]
    return {
        "totalInvestment": sum(p.payment_amount for p in purchases),
        "courseCount": len(purchases),
        "recentPurchases": [
            {
                "enrollmentId": p.enrollment_id,
                "courseId": p.course_id,
                "title": courses[p.course_id].title if p.course_id in courses else None,
                "amount": p.payment_amount,
                "purchaseDate": p.purchased_at,
            }
            for p in recent
        ],
    }

from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional
import logging

from lms_progress.config import DONE_SUBMISSION_STATUSES
from lms_progress.courses.models import Course, Enrollment
from lms_progress.errors import NotFound, AccessDenied

logger = logging.getLogger(__name__)

# ==================== COURSES (read-only) ====================

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[Course]:
    """Get course by ID"""
    doc = await db.courses.find_one({"course_id": course_id})
    return Course(**doc) if doc else None


async def load_course(db: AsyncIOMotorDatabase, course_id: str) -> Course:
    course = await get_course(db, course_id)
    if not course:
        raise NotFound("Course not found", courseId=course_id)
    return course


async def get_courses(db: AsyncIOMotorDatabase, course_ids: List[str]) -> List[Course]:
    cursor = db.courses.find({"course_id": {"$in": course_ids}})
    return [Course(**doc) for doc in await cursor.to_list(length=None)]


async def get_instructor_courses(
    db: AsyncIOMotorDatabase, instructor_id: str, course_id: Optional[str] = None
) -> List[Course]:
    query = {"instructor_id": instructor_id}
    if course_id:
        query["course_id"] = course_id
    cursor = db.courses.find(query)
    return [Course(**doc) for doc in await cursor.to_list(length=None)]

# ==================== ENROLLMENTS ====================

async def get_enrollment(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> Optional[Enrollment]:
    """Get user enrollment"""
    doc = await db.course_enrollments.find_one({
        "course_id": course_id,
        "user_id": user_id,
        "is_active": True
    })
    return Enrollment(**doc) if doc else None


async def require_enrollment(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> Enrollment:
    enrollment = await get_enrollment(db, course_id, user_id)
    if not enrollment:
        logger.warning("User %s is not enrolled in course %s", user_id, course_id)
        raise AccessDenied(
            "Access denied. You need to enroll in this course first.",
            courseId=course_id,
        )
    return enrollment


async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[Enrollment]:
    """Get all enrollments for user"""
    cursor = db.course_enrollments.find({"user_id": user_id, "is_active": True})
    return [Enrollment(**doc) for doc in await cursor.to_list(length=None)]


async def set_enrollment_progress(
    db: AsyncIOMotorDatabase, course_id: str, user_id: str, progress: int, now: datetime
) -> bool:
    """Mirror course progress onto the enrollment record"""
    result = await db.course_enrollments.update_one(
        {"course_id": course_id, "user_id": user_id},
        {"$set": {"progress": progress, "last_accessed": now}}
    )
    return result.matched_count > 0

# ==================== ASSIGNMENT SUBMISSIONS (read-only) ====================

async def count_submitted_assignments(db: AsyncIOMotorDatabase, course: Course, student_id: str) -> int:
    """Distinct course assignments the student has submitted or had graded"""
    if not course.assignment_ids:
        return 0
    assignment_ids = await db.assignment_submissions.distinct("assignment_id", {
        "student_id": student_id,
        "assignment_id": {"$in": course.assignment_ids},
        "status": {"$in": DONE_SUBMISSION_STATUSES}
    })
    return len(assignment_ids)

# ==================== INDEXES ====================

async def create_progress_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for performance"""
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("instructor_id")

    await db.course_enrollments.create_index("enrollment_id", unique=True)
    await db.course_enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True)

    await db.student_progress.create_index("student_id", unique=True)

    await db.assignment_submissions.create_index([("student_id", 1), ("assignment_id", 1)])

    logger.info("Progress system indexes created")

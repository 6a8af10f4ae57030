from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from lms_progress.courses.dependencies import (
    get_db, get_current_user_id, require_instructor, require_admin
)
from lms_progress.courses.models import SubmitQuizRequest, ResetQuizProgressRequest
from lms_progress.progress.quiz_engine import submit_quiz, get_attempt_decision
from lms_progress.progress.reports import (
    quiz_status, course_quiz_attempts, all_quiz_attempts, quiz_summary,
    instructor_quiz_analytics, instructor_student_progress,
    reset_quiz_progress, repair_attempt_counts
)

router = APIRouter(tags=["Quiz Progress"])


# ==================== STUDENT ====================

@router.post("/submit")
async def submit(
    body: SubmitQuizRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Submit quiz answers for a chapter"""
    result = await submit_quiz(db, user_id, body.course_id, body.chapter_id, body.answers)
    data = result.model_dump(by_alias=True)
    return {
        "success": True,
        "message": "Quiz passed!" if result.passed else "Quiz completed, but not passed",
        "score": result.score,
        "passed": result.passed,
        "data": data,
    }


@router.get("/attempt-allowed/{course_id}/{chapter_id}")
async def attempt_allowed(
    course_id: str,
    chapter_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Whether a new attempt is allowed right now"""
    decision = await get_attempt_decision(db, user_id, course_id, chapter_id)
    return {"success": True, "data": decision.model_dump(by_alias=True)}


@router.get("/status/{course_id}/{chapter_id}")
async def status(
    course_id: str,
    chapter_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    data = await quiz_status(db, user_id, course_id, chapter_id)
    return {
        "success": True,
        "completed": data["completed"],
        "score": data["bestScore"],
        "data": data,
    }


@router.get("/attempts-all")
async def attempts_all(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """All attempts across enrolled courses, newest first"""
    return {"success": True, "data": await all_quiz_attempts(db, user_id)}


@router.get("/attempts/{course_id}")
async def attempts(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return {"success": True, "data": await course_quiz_attempts(db, user_id, course_id)}


@router.get("/summary")
async def summary(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return {"success": True, "data": await quiz_summary(db, user_id)}


# ==================== INSTRUCTOR ====================

@router.get("/instructor/analytics")
async def analytics(
    course_id: Optional[str] = Query(None, alias="courseId"),
    db: AsyncIOMotorDatabase = Depends(get_db),
    instructor_id: str = Depends(require_instructor)
):
    data = await instructor_quiz_analytics(db, instructor_id, course_id)
    return {"success": True, "data": data}


@router.get("/instructor/student-progress")
async def student_progress_view(
    course_id: Optional[str] = Query(None, alias="courseId"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    db: AsyncIOMotorDatabase = Depends(get_db),
    instructor_id: str = Depends(require_instructor)
):
    data = await instructor_student_progress(db, instructor_id, course_id, student_id)
    return {"success": True, "data": data, "total": len(data)}


@router.post("/instructor/reset-progress")
async def reset_progress(
    body: ResetQuizProgressRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    instructor_id: str = Depends(require_instructor)
):
    removed = await reset_quiz_progress(
        db, instructor_id, body.student_id, body.course_id, body.chapter_id
    )
    return {
        "success": True,
        "message": "Chapter quiz progress reset successfully" if body.chapter_id
        else "Course quiz progress reset successfully",
        "removed": removed,
    }


# ==================== MAINTENANCE ====================

@router.post("/migrate-data")
async def migrate_data(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(require_admin)
):
    """Fix total_attempts drift on stored quiz progress"""
    repaired = await repair_attempt_counts(db)
    return {
        "success": True,
        "message": f"Migration completed successfully. Updated {repaired} users.",
        "migratedUsers": repaired,
    }

"""
Quiz progress read models, instructor analytics and maintenance
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress.courses.database import (
    get_courses, get_instructor_courses, get_user_enrollments
)
from lms_progress.errors import AccessDenied, NotFound
from lms_progress.progress.aggregator import round_half_up
from lms_progress.progress.models import StudentProgress
from lms_progress.progress.restrictions import RestrictionState, restriction_state
from lms_progress.progress.store import load_student_progress, student_progress

logger = logging.getLogger(__name__)


def _percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def _average(values: List[int]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0

# ==================== STUDENT VIEWS ====================

async def quiz_status(db: AsyncIOMotorDatabase, student_id: str, course_id: str, chapter_id: str) -> dict:
    state = await load_student_progress(db, student_id)
    progress = state.find_quiz(course_id, chapter_id) if state else None
    if not progress:
        return {"completed": False, "attempts": 0, "bestScore": 0, "passed": False, "totalAttempts": 0}

    return {
        "completed": len(progress.attempts) > 0,
        "attempts": len(progress.attempts),
        "bestScore": progress.best_score,
        "passed": progress.passed,
        "lastAttemptAt": progress.last_attempt_at,
        "totalAttempts": progress.total_attempts,
    }


async def course_quiz_attempts(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> List[dict]:
    state = await load_student_progress(db, student_id)
    if not state:
        return []
    return [q.model_dump(by_alias=True) for q in state.quizzes_for(course_id).values()]


async def all_quiz_attempts(db: AsyncIOMotorDatabase, student_id: str) -> List[dict]:
    """Every attempt across enrolled courses, newest first"""
    state = await load_student_progress(db, student_id)
    if not state:
        return []
    enrollments = await get_user_enrollments(db, student_id)
    courses = await get_courses(db, [e.course_id for e in enrollments])

    rows = []
    for course in courses:
        for chapter_id, progress in state.quizzes_for(course.course_id).items():
            chapter = course.find_chapter(chapter_id)
            if not chapter:
                continue
            total_questions = len(chapter.quiz)
            for index, attempt in enumerate(progress.attempts):
                rows.append({
                    "id": f"{course.course_id}_{chapter_id}_{index}",
                    "course": {"courseId": course.course_id, "title": course.title},
                    "chapter": {"chapterId": chapter_id, "title": chapter.title},
                    "quiz": {"title": f"{chapter.title} Quiz", "totalQuestions": total_questions},
                    "attempt": {
                        "score": attempt.score,
                        "passed": attempt.passed,
                        "attemptedAt": attempt.attempted_at,
                        "correctAnswers": round_half_up(attempt.score / 100 * total_questions),
                        "totalQuestions": total_questions,
                        "status": "passed" if attempt.passed else "failed",
                    },
                    "bestScore": progress.best_score,
                    "totalAttempts": len(progress.attempts),
                })

    rows.sort(key=lambda r: r["attempt"]["attemptedAt"], reverse=True)
    return rows


async def quiz_summary(db: AsyncIOMotorDatabase, student_id: str) -> dict:
    state = await load_student_progress(db, student_id)
    enrolled = {e.course_id for e in await get_user_enrollments(db, student_id)}
    progresses = []
    if state:
        progresses = [
            q for course_id in enrolled for q in state.quizzes_for(course_id).values()
        ]

    passed = sum(1 for q in progresses if q.passed)
    return {
        "totalQuizzes": len(progresses),
        "passedQuizzes": passed,
        "failedQuizzes": len(progresses) - passed,
        "totalAttempts": sum(len(q.attempts) for q in progresses),
        "averageScore": _average([q.best_score for q in progresses]),
        "passRate": _percent(passed, len(progresses)),
    }

# ==================== INSTRUCTOR ====================

async def _students_with_quiz_progress(db: AsyncIOMotorDatabase, course_ids: List[str], student_id: Optional[str] = None) -> List[StudentProgress]:
    if not course_ids:
        return []
    query = {"$or": [{f"quiz_progress.{cid}": {"$exists": True}} for cid in course_ids]}
    if student_id:
        query["student_id"] = student_id
    docs = await db.student_progress.find(query).to_list(length=None)
    return [StudentProgress(**doc) for doc in docs]


async def instructor_quiz_analytics(
    db: AsyncIOMotorDatabase, instructor_id: str, course_id: Optional[str] = None, now: Optional[datetime] = None
) -> dict:
    now = now or datetime.utcnow()
    courses = await get_instructor_courses(db, instructor_id, course_id)
    students = await _students_with_quiz_progress(db, [c.course_id for c in courses])

    overview = []
    all_students = set()
    total_passed = total_attempted = total_attempts = 0
    all_scores: List[int] = []
    in_cooldown = 0

    for course in courses:
        progresses = []
        enrolled = 0
        for state in students:
            quizzes = list(state.quizzes_for(course.course_id).values())
            if quizzes:
                enrolled += 1
                all_students.add(state.student_id)
                progresses.extend(quizzes)

        passed = sum(1 for q in progresses if q.passed)
        scores = [q.best_score for q in progresses]
        attempts = sum(len(q.attempts) for q in progresses)
        in_cooldown += sum(
            1 for q in progresses if restriction_state(q, now) == RestrictionState.COOLING_DOWN
        )

        overview.append({
            "courseId": course.course_id,
            "courseName": course.title,
            "totalChapters": len(course.chapters),
            "studentsEnrolled": enrolled,
            "completionStats": {
                "quizzesPassed": passed,
                "quizzesAttempted": len(progresses),
                "averageScore": _average(scores),
                "passRate": _percent(passed, len(progresses)),
            },
        })
        total_passed += passed
        total_attempted += len(progresses)
        total_attempts += attempts
        all_scores.extend(scores)

    return {
        "courseOverview": overview,
        "restrictionStats": {
            "studentsInTimeRestriction": in_cooldown,
            "totalStudentsWithRestrictions": in_cooldown,
        },
        "performanceMetrics": {
            "averagePassRate": _percent(total_passed, total_attempted),
            "averageScore": _average(all_scores),
            "totalQuizAttempts": total_attempts,
            "totalStudents": len(all_students),
        },
    }


async def instructor_student_progress(
    db: AsyncIOMotorDatabase,
    instructor_id: str,
    course_id: Optional[str] = None,
    student_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[dict]:
    now = now or datetime.utcnow()
    courses = await get_instructor_courses(db, instructor_id, course_id)
    students = await _students_with_quiz_progress(db, [c.course_id for c in courses], student_id)

    result = []
    for state in students:
        student_courses = []
        for course in courses:
            quizzes = state.quizzes_for(course.course_id)
            if not quizzes:
                continue
            course_progress = state.find_course(course.course_id)
            course_row = {
                "courseId": course.course_id,
                "courseName": course.title,
                "totalChapters": len(course.chapters),
                "overallProgress": course_progress.overall_progress if course_progress else 0,
                "quizProgress": [],
                "restrictionStatus": {"hasTimeRestriction": False, "nextAttemptAllowed": None},
            }
            for chapter_id, q in quizzes.items():
                cooling = restriction_state(q, now) == RestrictionState.COOLING_DOWN
                course_row["quizProgress"].append({
                    "chapterId": chapter_id,
                    "attempts": [a.model_dump(by_alias=True) for a in q.attempts],
                    "attemptsCount": len(q.attempts),
                    "bestScore": q.best_score,
                    "passed": q.passed,
                    "lastAttemptAt": q.last_attempt_at,
                    "totalAttempts": q.total_attempts,
                    "restrictionStatus": {
                        "timeRestricted": cooling,
                        "videoReWatchRequired": q.must_rewatch_video,
                        "instructorApprovalRequired": q.instructor_approval_required,
                        "nextAttemptAllowedAt": q.next_attempt_allowed_at if cooling else None,
                    },
                })
                if cooling:
                    course_row["restrictionStatus"] = {
                        "hasTimeRestriction": True,
                        "nextAttemptAllowed": q.next_attempt_allowed_at,
                    }
            student_courses.append(course_row)

        if student_courses:
            result.append({"studentId": state.student_id, "courses": student_courses})
    return result


async def reset_quiz_progress(
    db: AsyncIOMotorDatabase,
    instructor_id: str,
    student_id: str,
    course_id: str,
    chapter_id: Optional[str] = None,
) -> int:
    """Drop a student's quiz progress for one chapter or a whole course; returns records removed"""
    owned = await get_instructor_courses(db, instructor_id, course_id)
    if not owned:
        raise AccessDenied("You do not have permission to modify this course", courseId=course_id)
    if not await load_student_progress(db, student_id):
        raise NotFound("Student progress not found", studentId=student_id)

    async with student_progress(db, student_id) as state:
        chapters = state.quiz_progress.get(course_id, {})
        if chapter_id:
            removed = 1 if chapters.pop(chapter_id, None) else 0
        else:
            removed = len(chapters)
            state.quiz_progress.pop(course_id, None)

    logger.info(
        "Instructor %s reset %d quiz record(s) of student %s in course %s",
        instructor_id, removed, student_id, course_id,
    )
    return removed

# ==================== MAINTENANCE ====================

async def repair_attempt_counts(db: AsyncIOMotorDatabase) -> int:
    """Rewrite total_attempts wherever it drifted from the attempt list; returns students updated"""
    cursor = db.student_progress.find({}, {"student_id": 1, "quiz_progress": 1})
    repaired = 0
    async for doc in cursor:
        updates = {}
        for course_id, chapters in (doc.get("quiz_progress") or {}).items():
            for chapter_id, qp in chapters.items():
                actual = len(qp.get("attempts") or [])
                if qp.get("total_attempts") != actual:
                    updates[f"quiz_progress.{course_id}.{chapter_id}.total_attempts"] = actual
        if updates:
            await db.student_progress.update_one(
                {"_id": doc["_id"]}, {"$set": updates, "$inc": {"version": 1}}
            )
            repaired += 1

    logger.info("Attempt count repair finished, %d student(s) updated", repaired)
    return repaired

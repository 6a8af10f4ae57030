"""
Quiz attempt engine

Scores a chapter quiz submission, records the attempt on the student's quiz
progress, applies the retry restriction and, on a pass, completes the chapter
and recomputes course progress.
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress import config
from lms_progress.courses.database import (
    load_course, require_enrollment, count_submitted_assignments, set_enrollment_progress
)
from lms_progress.courses.models import CamelModel, QuizQuestion
from lms_progress.errors import NotFound, RestrictionActive
from lms_progress.progress.aggregator import (
    ProgressBreakdown, apply_breakdown, compute_weighted_breakdown, round_half_up
)
from lms_progress.progress.restrictions import (
    AttemptDecision, apply_attempt_outcome, check_attempt_allowed
)
from lms_progress.progress.store import load_student_progress, student_progress
from lms_progress.enrollment.lifecycle import record_completion_if_done

logger = logging.getLogger(__name__)


class QuizScore(CamelModel):
    score: int
    passed: bool
    correct_answers: int
    total_questions: int


class QuizResult(QuizScore):
    attempts: int
    best_score: int
    next_attempt_allowed_at: Optional[datetime] = None
    progress: Optional[ProgressBreakdown] = None


def score_answers(questions: List[QuizQuestion], answers: List[str]) -> QuizScore:
    """Positional exact-match scoring; extra answers or unanswered questions are ignored"""
    correct = 0
    for i in range(min(len(answers), len(questions))):
        if answers[i] == questions[i].correct_answer:
            correct += 1

    total = len(questions)
    score = round_half_up((correct / total) * 100) if total else 0
    return QuizScore(
        score=score,
        passed=score >= config.QUIZ_PASS_THRESHOLD,
        correct_answers=correct,
        total_questions=total,
    )


async def submit_quiz(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    chapter_id: str,
    answers: List[str],
    now: Optional[datetime] = None,
) -> QuizResult:
    now = now or datetime.utcnow()

    course = await load_course(db, course_id)
    chapter = course.find_chapter(chapter_id)
    if not chapter or not chapter.has_quiz:
        raise NotFound("Chapter or quiz not found", courseId=course_id, chapterId=chapter_id)
    await require_enrollment(db, course_id, student_id)

    result = score_answers(chapter.quiz, answers)
    breakdown = None
    # Read outside the lock, only needed when the attempt passes
    submitted = await count_submitted_assignments(db, course, student_id) if result.passed else 0

    async with student_progress(db, student_id) as state:
        progress = state.find_quiz(course_id, chapter_id)
        if config.ENFORCE_QUIZ_COOLDOWN:
            decision = check_attempt_allowed(progress, now)
            if not decision.allowed:
                logger.warning(
                    "Quiz submission refused for student %s chapter %s: cooldown until %s",
                    student_id, chapter_id, decision.restrictions.next_attempt_allowed_at,
                )
                raise RestrictionActive(
                    decision.restrictions.time_remaining,
                    decision.restrictions.next_attempt_allowed_at,
                )

        progress = state.quiz(course_id, chapter_id)
        progress.record_attempt(result.score, answers, result.passed, now)
        apply_attempt_outcome(progress, result.passed, now)

        if result.passed:
            course_progress = state.course(course_id)
            course_progress.mark_chapter_completed(chapter_id)
            breakdown = compute_weighted_breakdown(
                course, course_progress, state.quizzes_for(course_id), submitted
            )
            apply_breakdown(course_progress, breakdown, now)
            record_completion_if_done(state, course_id, breakdown.overall_progress, now)

    logger.info(
        "Quiz %s for student %s chapter %s: score %d (attempt %d)",
        "passed" if result.passed else "failed",
        student_id, chapter_id, result.score, progress.total_attempts,
    )

    if breakdown is not None:
        await set_enrollment_progress(db, course_id, student_id, breakdown.overall_progress, now)

    return QuizResult(
        **result.model_dump(),
        attempts=progress.total_attempts,
        best_score=progress.best_score,
        next_attempt_allowed_at=progress.next_attempt_allowed_at,
        progress=breakdown,
    )


async def get_attempt_decision(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    chapter_id: str,
    now: Optional[datetime] = None,
) -> AttemptDecision:
    now = now or datetime.utcnow()
    state = await load_student_progress(db, student_id)
    progress = state.find_quiz(course_id, chapter_id) if state else None
    return check_attempt_allowed(progress, now)

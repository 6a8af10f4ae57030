"""
Video completion and watch-time tracking

Two completion strategies share the "mark lesson watched" entry point:
ChapterCompletion when the client sends a chapter id, VideoCompletion when it
sends a vimeo id. They keep their own data (completed_chapters vs
completed_videos) and their own progress formula.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress import config
from lms_progress.courses.database import (
    load_course, require_enrollment, count_submitted_assignments, set_enrollment_progress
)
from lms_progress.courses.models import CamelModel, Course
from lms_progress.enrollment.lifecycle import record_completion_if_done
from lms_progress.errors import NotFound, ValidationError
from lms_progress.progress.aggregator import (
    CompletionMode, ProgressBreakdown, apply_breakdown,
    compute_video_breakdown, compute_weighted_breakdown, round_half_up
)
from lms_progress.progress.models import ChapterWatchTime, CourseProgress, StudentProgress
from lms_progress.progress.store import load_student_progress, student_progress

logger = logging.getLogger(__name__)


class ChapterCompletion:
    mode = CompletionMode.CHAPTER

    def validate(self, course: Course, identifier: str):
        if not course.find_chapter(identifier):
            raise NotFound("Chapter not found", courseId=course.course_id, chapterId=identifier)

    def mark(self, course: Course, progress: CourseProgress, identifier: str):
        progress.mark_chapter_completed(identifier)

    def compute(self, course: Course, state: StudentProgress, submitted_assignments: int) -> ProgressBreakdown:
        return compute_weighted_breakdown(
            course, state.course(course.course_id), state.quizzes_for(course.course_id), submitted_assignments
        )


class VideoCompletion:
    mode = CompletionMode.VIDEO

    def validate(self, course: Course, identifier: str):
        if not course.find_chapter_by_video(identifier):
            raise NotFound("Video not found", courseId=course.course_id, vimeoId=identifier)

    def mark(self, course: Course, progress: CourseProgress, identifier: str):
        progress.mark_video_completed(identifier)
        chapter = course.find_chapter_by_video(identifier)
        # A chapter is done only when every one of its videos is done
        if all(vid in progress.completed_videos for vid in chapter.video_ids):
            progress.mark_chapter_completed(chapter.chapter_id)

    def compute(self, course: Course, state: StudentProgress, submitted_assignments: int) -> ProgressBreakdown:
        return compute_video_breakdown(course, state.course(course.course_id))


STRATEGIES = {
    CompletionMode.CHAPTER: ChapterCompletion(),
    CompletionMode.VIDEO: VideoCompletion(),
}


def select_strategy(chapter_id: Optional[str], vimeo_id: Optional[str]):
    if bool(chapter_id) == bool(vimeo_id):
        raise ValidationError("Provide either chapterId or vimeoId")
    if chapter_id:
        return STRATEGIES[CompletionMode.CHAPTER], chapter_id
    return STRATEGIES[CompletionMode.VIDEO], vimeo_id


async def mark_lesson_watched(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    chapter_id: Optional[str] = None,
    vimeo_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProgressBreakdown:
    now = now or datetime.utcnow()
    strategy, identifier = select_strategy(chapter_id, vimeo_id)

    course = await load_course(db, course_id)
    await require_enrollment(db, course_id, student_id)
    strategy.validate(course, identifier)
    submitted = await count_submitted_assignments(db, course, student_id)

    async with student_progress(db, student_id) as state:
        progress = state.course(course_id)
        strategy.mark(course, progress, identifier)
        breakdown = apply_breakdown(progress, strategy.compute(course, state, submitted), now)
        record_completion_if_done(state, course_id, breakdown.overall_progress, now)

    await set_enrollment_progress(db, course_id, student_id, breakdown.overall_progress, now)
    logger.info(
        "Student %s watched %s %s in course %s, progress now %d%%",
        student_id, strategy.mode.value, identifier, course_id, breakdown.overall_progress,
    )
    return breakdown

# ==================== WATCH TIME ====================

class WatchTimeResult(CamelModel):
    chapter_id: str
    watch_time: float
    total_duration: float
    watch_percentage: int
    is_completed: bool
    progress: Optional[ProgressBreakdown] = None


def accumulate_watch_time(
    progress: CourseProgress, chapter_id: str, watch_time: float, total_duration: float
) -> ChapterWatchTime:
    """Keeps the max watch time ever reported; returns the stored entry"""
    entry = progress.chapter_watch_times.get(chapter_id)
    if entry is None:
        entry = ChapterWatchTime(watch_time=0, total_duration=total_duration or 0)
        progress.chapter_watch_times[chapter_id] = entry

    entry.watch_time = max(entry.watch_time, watch_time)
    if total_duration:
        entry.total_duration = total_duration
    return entry


def watch_ratio(entry: ChapterWatchTime) -> float:
    return entry.watch_time / entry.total_duration if entry.total_duration > 0 else 0.0


async def update_watch_time(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    chapter_id: str,
    watch_time: float,
    total_duration: float = 0,
    now: Optional[datetime] = None,
) -> WatchTimeResult:
    now = now or datetime.utcnow()
    if watch_time < 0 or total_duration < 0:
        raise ValidationError("Watch time and duration must not be negative")

    course = await load_course(db, course_id)
    await require_enrollment(db, course_id, student_id)
    strategy = STRATEGIES[CompletionMode.CHAPTER]
    strategy.validate(course, chapter_id)
    submitted = await count_submitted_assignments(db, course, student_id)

    breakdown = None
    async with student_progress(db, student_id) as state:
        progress = state.course(course_id)
        entry = accumulate_watch_time(progress, chapter_id, watch_time, total_duration)
        ratio = watch_ratio(entry)

        if ratio >= config.WATCH_COMPLETION_RATIO and chapter_id not in progress.completed_chapters:
            strategy.mark(course, progress, chapter_id)
            breakdown = apply_breakdown(progress, strategy.compute(course, state, submitted), now)
            record_completion_if_done(state, course_id, breakdown.overall_progress, now)
            logger.info(
                "Chapter %s auto-completed for student %s at %.0f%% watched",
                chapter_id, student_id, ratio * 100,
            )
        else:
            progress.last_accessed_at = now
        is_completed = chapter_id in progress.completed_chapters

    if breakdown is not None:
        await set_enrollment_progress(db, course_id, student_id, breakdown.overall_progress, now)

    return WatchTimeResult(
        chapter_id=chapter_id,
        watch_time=entry.watch_time,
        total_duration=entry.total_duration,
        watch_percentage=round_half_up(ratio * 100),
        is_completed=is_completed,
        progress=breakdown,
    )

# ==================== SNAPSHOT ====================

async def get_course_snapshot(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> dict:
    course = await load_course(db, course_id)
    state = await load_student_progress(db, student_id)
    progress = state.find_course(course_id) if state else None
    quizzes: Dict = state.quizzes_for(course_id) if state else {}

    snapshot = {
        "courseId": course_id,
        "completedChapters": [],
        "completedVideos": [],
        "chapterWatchTimes": {},
        "overallProgress": 0,
        "totalChapters": len(course.chapters),
        "totalVideos": course.total_videos,
        "lastAccessedAt": None,
        "quizProgress": [q.model_dump(by_alias=True) for q in quizzes.values()],
    }
    if progress:
        snapshot.update({
            "completedChapters": progress.completed_chapters,
            "completedVideos": progress.completed_videos,
            "chapterWatchTimes": {
                cid: w.model_dump(by_alias=True) for cid, w in progress.chapter_watch_times.items()
            },
            "overallProgress": progress.overall_progress,
            "lastAccessedAt": progress.last_accessed_at,
        })
    return snapshot

"""
Course progress aggregation

Weighted mode (chapter completion + quiz passes + assignment submissions) and
video-count mode (completed videos / total videos) are separate strategies.
Both return a ProgressBreakdown and write overall_progress onto the
CourseProgress record they are given.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Dict, NamedTuple

from lms_progress.courses.models import CamelModel, Course
from lms_progress.progress.models import CourseProgress, QuizProgress


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(done: int, total: int) -> float:
    return (done / total) * 100 if total > 0 else 0.0


class ProgressWeights(NamedTuple):
    video: float
    quiz: float
    assignment: float


_WEIGHTS = {
    (False, False): ProgressWeights(1.0, 0.0, 0.0),
    (True, False): ProgressWeights(0.7, 0.3, 0.0),
    (False, True): ProgressWeights(0.9, 0.0, 0.1),
    (True, True): ProgressWeights(0.6, 0.3, 0.1),
}


def weights_for(has_quizzes: bool, has_assignments: bool) -> ProgressWeights:
    return _WEIGHTS[(bool(has_quizzes), bool(has_assignments))]


class CompletionMode(str, Enum):
    CHAPTER = "chapter"
    VIDEO = "video"


class ProgressBreakdown(CamelModel):
    mode: CompletionMode = CompletionMode.CHAPTER
    overall_progress: int = 0
    completed_chapters: int = 0
    total_chapters: int = 0
    completed_videos: int = 0
    total_videos: int = 0
    video_progress: int = 0
    quiz_progress: int = 0
    assignment_progress: int = 0
    passed_quizzes: int = 0
    total_quizzes: int = 0
    submitted_assignments: int = 0
    total_assignments: int = 0


def compute_weighted_breakdown(
    course: Course,
    progress: CourseProgress,
    quizzes: Dict[str, QuizProgress],
    submitted_assignments: int,
) -> ProgressBreakdown:
    # Only count ids that still exist in the course so no ratio goes past 100
    chapter_ids = set(course.chapter_ids)
    completed = len(chapter_ids.intersection(progress.completed_chapters))
    total_chapters = len(chapter_ids)

    quiz_chapters = course.quiz_chapter_ids
    passed = sum(1 for cid in quiz_chapters if cid in quizzes and quizzes[cid].passed)

    total_assignments = len(course.assignment_ids)
    submitted = min(submitted_assignments, total_assignments)

    weights = weights_for(len(quiz_chapters) > 0, total_assignments > 0)
    video_pct = percent(completed, total_chapters)
    quiz_pct = percent(passed, len(quiz_chapters))
    assignment_pct = percent(submitted, total_assignments)

    overall = round_half_up(
        video_pct * weights.video
        + quiz_pct * weights.quiz
        + assignment_pct * weights.assignment
    )

    return ProgressBreakdown(
        mode=CompletionMode.CHAPTER,
        overall_progress=min(100, max(0, overall)),
        completed_chapters=completed,
        total_chapters=total_chapters,
        completed_videos=len(set(course.video_ids).intersection(progress.completed_videos)),
        total_videos=course.total_videos,
        video_progress=round_half_up(video_pct),
        quiz_progress=round_half_up(quiz_pct),
        assignment_progress=round_half_up(assignment_pct),
        passed_quizzes=passed,
        total_quizzes=len(quiz_chapters),
        submitted_assignments=submitted,
        total_assignments=total_assignments,
    )


def compute_video_breakdown(course: Course, progress: CourseProgress) -> ProgressBreakdown:
    video_ids = set(course.video_ids)
    completed = len(video_ids.intersection(progress.completed_videos))
    total = len(video_ids)
    chapter_ids = set(course.chapter_ids)
    video_pct = percent(completed, total)

    return ProgressBreakdown(
        mode=CompletionMode.VIDEO,
        overall_progress=min(100, round_half_up(video_pct)),
        completed_chapters=len(chapter_ids.intersection(progress.completed_chapters)),
        total_chapters=len(chapter_ids),
        completed_videos=completed,
        total_videos=total,
        video_progress=round_half_up(video_pct),
    )


def apply_breakdown(progress: CourseProgress, breakdown: ProgressBreakdown, now: datetime) -> ProgressBreakdown:
    progress.overall_progress = breakdown.overall_progress
    progress.last_accessed_at = now
    return breakdown

"""
Student progress documents

One `student_progress` document per student holds every course and quiz
progress record of that student, keyed by course id (and chapter id for
quizzes). The whole document is rewritten on each change; `version` is bumped
on every write and used as the compare-and-swap guard.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from lms_progress.courses.models import CamelModel


class ChapterWatchTime(CamelModel):
    watch_time: float = 0  # seconds watched (max ever reported)
    total_duration: float = 0


class CourseProgress(CamelModel):
    course_id: str
    completed_chapters: List[str] = []
    completed_videos: List[str] = []
    chapter_watch_times: Dict[str, ChapterWatchTime] = {}
    overall_progress: int = 0
    last_accessed_at: datetime = Field(default_factory=datetime.utcnow)

    def mark_chapter_completed(self, chapter_id: str) -> bool:
        """Returns True if the chapter was not complete before"""
        if chapter_id in self.completed_chapters:
            return False
        self.completed_chapters.append(chapter_id)
        return True

    def mark_video_completed(self, vimeo_id: str) -> bool:
        if vimeo_id in self.completed_videos:
            return False
        self.completed_videos.append(vimeo_id)
        return True


class QuizAttempt(CamelModel):
    score: int
    answers: List[str] = []
    attempted_at: datetime = Field(default_factory=datetime.utcnow)
    passed: bool = False


class QuizProgress(CamelModel):
    course_id: str
    chapter_id: str
    attempts: List[QuizAttempt] = []
    best_score: int = 0
    passed: bool = False
    last_attempt_at: Optional[datetime] = None
    total_attempts: int = 0

    # Restriction levers. Only next_attempt_allowed_at is enforced,
    # the rest are stored and reported as-is.
    next_attempt_allowed_at: Optional[datetime] = None
    must_rewatch_video: bool = False
    video_rewatched_at: Optional[datetime] = None
    instructor_approval_required: bool = False
    instructor_approval_granted: bool = False
    instructor_approval_granted_at: Optional[datetime] = None
    instructor_approval_granted_by: Optional[str] = None

    def record_attempt(self, score: int, answers: List[str], passed: bool, now: datetime) -> QuizAttempt:
        attempt = QuizAttempt(score=score, answers=list(answers), attempted_at=now, passed=passed)
        self.attempts.append(attempt)
        self.best_score = max(self.best_score, score)
        self.passed = self.passed or passed
        self.last_attempt_at = now
        self.total_attempts = len(self.attempts)
        return attempt


class CompletedCourse(CamelModel):
    course_id: str
    completed_on: datetime


class StudentProgress(CamelModel):
    student_id: str
    course_progress: Dict[str, CourseProgress] = {}
    quiz_progress: Dict[str, Dict[str, QuizProgress]] = {}
    completed_courses: List[CompletedCourse] = []
    version: int = 0

    def course(self, course_id: str) -> CourseProgress:
        """Get or lazily create the course progress record"""
        if course_id not in self.course_progress:
            self.course_progress[course_id] = CourseProgress(course_id=course_id)
        return self.course_progress[course_id]

    def find_course(self, course_id: str) -> Optional[CourseProgress]:
        return self.course_progress.get(course_id)

    def quiz(self, course_id: str, chapter_id: str) -> QuizProgress:
        """Get or lazily create the quiz progress record"""
        chapters = self.quiz_progress.setdefault(course_id, {})
        if chapter_id not in chapters:
            chapters[chapter_id] = QuizProgress(course_id=course_id, chapter_id=chapter_id)
        return chapters[chapter_id]

    def find_quiz(self, course_id: str, chapter_id: str) -> Optional[QuizProgress]:
        return self.quiz_progress.get(course_id, {}).get(chapter_id)

    def quizzes_for(self, course_id: str) -> Dict[str, QuizProgress]:
        return self.quiz_progress.get(course_id, {})

    def record_completion(self, course_id: str, now: datetime, refresh: bool = False) -> bool:
        """
        Add the course to the completed list once.
        refresh=True moves the completion date of an existing entry.
        Returns True if a new entry was added.
        """
        for entry in self.completed_courses:
            if entry.course_id == course_id:
                if refresh:
                    entry.completed_on = now
                return False
        self.completed_courses.append(CompletedCourse(course_id=course_id, completed_on=now))
        return True

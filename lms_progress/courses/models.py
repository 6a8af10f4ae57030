from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime


class CamelModel(BaseModel):
    """snake_case in MongoDB, camelCase on the API"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== COURSE CONTENT (read-only) ====================

class QuizQuestion(CamelModel):
    question: str
    options: List[str] = []
    correct_answer: str
    time_limit: Optional[int] = None  # seconds


class Video(CamelModel):
    vimeo_id: Optional[str] = None
    url: Optional[str] = None
    duration: float = 0  # seconds


class Lesson(CamelModel):
    lesson_id: str
    title: str = ""
    order: int = 0
    video: Optional[Video] = None
    quiz_id: Optional[str] = None


class Chapter(CamelModel):
    chapter_id: str
    title: str = ""
    order: int = 0
    lessons: List[Lesson] = []
    quiz: List[QuizQuestion] = []

    @property
    def has_quiz(self) -> bool:
        return len(self.quiz) > 0

    @property
    def video_ids(self) -> List[str]:
        return [l.video.vimeo_id for l in self.lessons if l.video and l.video.vimeo_id]


class Course(CamelModel):
    course_id: str
    title: str = ""
    instructor_id: Optional[str] = None
    chapters: List[Chapter] = []
    assignment_ids: List[str] = []

    def find_chapter(self, chapter_id: str) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.chapter_id == chapter_id:
                return chapter
        return None

    def find_chapter_by_video(self, vimeo_id: str) -> Optional[Chapter]:
        for chapter in self.chapters:
            if vimeo_id in chapter.video_ids:
                return chapter
        return None

    @property
    def chapter_ids(self) -> List[str]:
        return [c.chapter_id for c in self.chapters]

    @property
    def quiz_chapter_ids(self) -> List[str]:
        return [c.chapter_id for c in self.chapters if c.has_quiz]

    @property
    def video_ids(self) -> List[str]:
        return [vid for c in self.chapters for vid in c.video_ids]

    @property
    def total_videos(self) -> int:
        return len(set(self.video_ids))

    @property
    def total_duration(self) -> float:
        return sum(l.video.duration for c in self.chapters for l in c.lessons if l.video)


# ==================== ENROLLMENT ====================

class Enrollment(CamelModel):
    enrollment_id: str
    course_id: str
    user_id: str
    enrolled_at: Optional[datetime] = None
    purchased_at: Optional[datetime] = None
    progress: int = 0
    last_accessed: Optional[datetime] = None
    is_active: bool = True
    payment_amount: Optional[float] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


# ==================== REQUEST BODIES ====================

class CompleteVideoRequest(CamelModel):
    course_id: str
    chapter_id: Optional[str] = None
    vimeo_id: Optional[str] = None


class WatchTimeRequest(CamelModel):
    course_id: str
    chapter_id: str
    watch_time: float
    total_duration: float = 0


class SubmitQuizRequest(CamelModel):
    course_id: str
    chapter_id: str
    answers: List[str]


class UpdateProgressRequest(CamelModel):
    course_id: str
    progress: int


class ResetQuizProgressRequest(CamelModel):
    student_id: str
    course_id: str
    chapter_id: Optional[str] = None

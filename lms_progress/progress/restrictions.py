"""
Quiz retry restrictions

unrestricted -> cooling_down after a failed attempt once the student has used
COOLDOWN_AFTER_ATTEMPTS attempts; back to unrestricted on a pass or once the
cooldown has elapsed. Expiry is checked lazily, nothing runs in the background.
"""

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import Field

from lms_progress.config import COOLDOWN_AFTER_ATTEMPTS, COOLDOWN_HOURS
from lms_progress.courses.models import CamelModel
from lms_progress.progress.models import QuizProgress

logger = logging.getLogger(__name__)


class RestrictionState(str, Enum):
    UNRESTRICTED = "unrestricted"
    COOLING_DOWN = "cooling_down"


class RestrictionReason(str, Enum):
    TIME = "time_restriction"
    # Reserved, not enforced
    VIDEO_REWATCH = "video_rewatch_required"
    INSTRUCTOR_APPROVAL = "instructor_approval_required"


class RestrictionStatus(CamelModel):
    total_attempts: int = 0
    next_attempt_allowed_at: Optional[datetime] = None
    must_re_watch_video: bool = False
    instructor_approval_required: bool = False
    time_remaining: int = 0  # hours, rounded up


class AttemptDecision(CamelModel):
    allowed: bool = True
    reason: Optional[RestrictionReason] = None
    restrictions: RestrictionStatus = Field(default_factory=RestrictionStatus)


def restriction_state(progress: Optional[QuizProgress], now: datetime) -> RestrictionState:
    if progress and progress.next_attempt_allowed_at and now < progress.next_attempt_allowed_at:
        return RestrictionState.COOLING_DOWN
    return RestrictionState.UNRESTRICTED


def hours_until(moment: datetime, now: datetime) -> int:
    return max(0, math.ceil((moment - now).total_seconds() / 3600))


def apply_attempt_outcome(progress: QuizProgress, passed: bool, now: datetime) -> RestrictionState:
    """Restriction transition after an attempt has been recorded"""
    if passed:
        progress.next_attempt_allowed_at = None
        return RestrictionState.UNRESTRICTED

    if progress.total_attempts >= COOLDOWN_AFTER_ATTEMPTS:
        progress.next_attempt_allowed_at = now + timedelta(hours=COOLDOWN_HOURS)
        logger.info(
            "Quiz cooldown started for chapter %s after %d attempts, until %s",
            progress.chapter_id, progress.total_attempts, progress.next_attempt_allowed_at,
        )
        return RestrictionState.COOLING_DOWN

    return restriction_state(progress, now)


def check_attempt_allowed(progress: Optional[QuizProgress], now: datetime) -> AttemptDecision:
    decision = AttemptDecision()
    if progress is None:
        return decision

    decision.restrictions.total_attempts = progress.total_attempts
    decision.restrictions.must_re_watch_video = progress.must_rewatch_video
    decision.restrictions.instructor_approval_required = progress.instructor_approval_required

    if restriction_state(progress, now) == RestrictionState.COOLING_DOWN:
        decision.allowed = False
        decision.reason = RestrictionReason.TIME
        decision.restrictions.next_attempt_allowed_at = progress.next_attempt_allowed_at
        decision.restrictions.time_remaining = hours_until(progress.next_attempt_allowed_at, now)

    return decision

from datetime import timedelta

import pytest

from lms_progress.courses.models import Course, QuizQuestion
from lms_progress.progress.aggregator import (
    ProgressWeights, compute_video_breakdown, compute_weighted_breakdown,
    round_half_up, weights_for
)
from lms_progress.progress.models import CourseProgress, QuizProgress
from lms_progress.progress.quiz_engine import score_answers
from lms_progress.progress.restrictions import (
    RestrictionReason, RestrictionState, apply_attempt_outcome, check_attempt_allowed
)
from lms_progress.progress.tracking import accumulate_watch_time, watch_ratio

from conftest import NOW, make_course


@pytest.mark.parametrize("has_quizzes,has_assignments,expected", [
    (False, False, ProgressWeights(1.0, 0.0, 0.0)),
    (True, False, ProgressWeights(0.7, 0.3, 0.0)),
    (False, True, ProgressWeights(0.9, 0.0, 0.1)),
    (True, True, ProgressWeights(0.6, 0.3, 0.1)),
])
def test_weights_table(has_quizzes, has_assignments, expected):
    assert weights_for(has_quizzes, has_assignments) == expected
    assert sum(expected) == pytest.approx(1.0)


def test_round_half_up_matches_client_rounding():
    assert round_half_up(12.5) == 13
    assert round_half_up(66.66) == 67
    assert round_half_up(0.4) == 0


class TestScoring:

    def setup_method(self):
        self.questions = [
            QuizQuestion(question="q1", correct_answer="A"),
            QuizQuestion(question="q2", correct_answer="B"),
            QuizQuestion(question="q3", correct_answer="C"),
        ]

    def test_all_correct(self):
        result = score_answers(self.questions, ["A", "B", "C"])
        assert (result.score, result.passed, result.correct_answers) == (100, True, 3)

    def test_exact_match_is_case_sensitive(self):
        result = score_answers(self.questions, ["a", "B", "C"])
        assert result.correct_answers == 2
        assert result.score == 67
        assert result.passed is True

    def test_missing_answers_count_as_wrong(self):
        result = score_answers(self.questions, ["A"])
        assert result.score == 33
        assert result.passed is False
        assert result.total_questions == 3

    def test_extra_answers_ignored(self):
        result = score_answers(self.questions, ["A", "B", "C", "D", "E"])
        assert result.correct_answers == 3
        assert result.score == 100

    def test_threshold_is_sixty(self):
        questions = [QuizQuestion(question=str(i), correct_answer="x") for i in range(5)]
        assert score_answers(questions, ["x", "x", "x", "-", "-"]).passed is True
        assert score_answers(questions, ["x", "x", "-", "-", "-"]).passed is False


class TestRestrictions:

    def _failed(self, attempts):
        qp = QuizProgress(course_id="C", chapter_id="CH")
        for _ in range(attempts):
            qp.record_attempt(0, [], False, NOW)
        return qp

    def test_no_cooldown_before_fourth_failure(self):
        qp = self._failed(3)
        assert apply_attempt_outcome(qp, False, NOW) == RestrictionState.UNRESTRICTED
        assert qp.next_attempt_allowed_at is None

    def test_fourth_failure_starts_24h_cooldown(self):
        qp = self._failed(4)
        assert apply_attempt_outcome(qp, False, NOW) == RestrictionState.COOLING_DOWN
        assert qp.next_attempt_allowed_at == NOW + timedelta(hours=24)

        decision = check_attempt_allowed(qp, NOW + timedelta(hours=1))
        assert decision.allowed is False
        assert decision.reason == RestrictionReason.TIME
        assert decision.restrictions.time_remaining == 23
        assert decision.restrictions.total_attempts == 4

    def test_time_remaining_rounds_up(self):
        qp = self._failed(4)
        apply_attempt_outcome(qp, False, NOW)
        decision = check_attempt_allowed(qp, NOW + timedelta(hours=23, minutes=59))
        assert decision.restrictions.time_remaining == 1

    def test_cooldown_expires_lazily(self):
        qp = self._failed(4)
        apply_attempt_outcome(qp, False, NOW)
        decision = check_attempt_allowed(qp, NOW + timedelta(hours=24))
        assert decision.allowed is True
        assert decision.reason is None

    def test_pass_clears_cooldown(self):
        qp = self._failed(6)
        apply_attempt_outcome(qp, False, NOW)
        qp.record_attempt(100, [], True, NOW)
        assert apply_attempt_outcome(qp, True, NOW) == RestrictionState.UNRESTRICTED
        assert qp.next_attempt_allowed_at is None

    def test_reserved_levers_reported_not_enforced(self):
        qp = self._failed(1)
        qp.must_rewatch_video = True
        qp.instructor_approval_required = True
        decision = check_attempt_allowed(qp, NOW)
        assert decision.allowed is True
        assert decision.restrictions.must_re_watch_video is True
        assert decision.model_dump(by_alias=True)["restrictions"]["mustReWatchVideo"] is True

    def test_no_progress_is_allowed(self):
        decision = check_attempt_allowed(None, NOW)
        assert decision.allowed is True
        assert decision.restrictions.total_attempts == 0


class TestBreakdown:

    def setup_method(self):
        self.course = Course(**make_course())

    def test_nothing_done_is_zero(self):
        breakdown = compute_weighted_breakdown(self.course, CourseProgress(course_id="COURSE_1"), {}, 0)
        assert breakdown.overall_progress == 0

    def test_everything_done_is_hundred(self):
        progress = CourseProgress(course_id="COURSE_1", completed_chapters=["CH_1", "CH_2"])
        quiz = QuizProgress(course_id="COURSE_1", chapter_id="CH_1", passed=True)
        breakdown = compute_weighted_breakdown(self.course, progress, {"CH_1": quiz}, 1)
        assert breakdown.overall_progress == 100

    def test_stale_ids_do_not_exceed_bounds(self):
        progress = CourseProgress(course_id="COURSE_1", completed_chapters=["CH_1", "CH_2", "GONE"])
        breakdown = compute_weighted_breakdown(self.course, progress, {}, 5)
        assert breakdown.completed_chapters == 2
        assert breakdown.submitted_assignments == 1
        assert 0 <= breakdown.overall_progress <= 100

    def test_course_without_chapters(self):
        course = Course(course_id="EMPTY")
        breakdown = compute_weighted_breakdown(course, CourseProgress(course_id="EMPTY"), {}, 0)
        assert breakdown.overall_progress == 0
        assert compute_video_breakdown(course, CourseProgress(course_id="EMPTY")).overall_progress == 0

    def test_video_mode_counts_videos_only(self):
        course = Course(**make_course(videos_per_chapter=2))
        progress = CourseProgress(course_id="COURSE_1", completed_videos=["V_1_1", "V_1_2", "V_2_1"])
        breakdown = compute_video_breakdown(course, progress)
        assert breakdown.total_videos == 4
        assert breakdown.overall_progress == 75


class TestWatchTime:

    def test_watch_time_never_decreases(self):
        progress = CourseProgress(course_id="C")
        accumulate_watch_time(progress, "CH_1", 300, 600)
        entry = accumulate_watch_time(progress, "CH_1", 120, 600)
        assert entry.watch_time == 300
        assert watch_ratio(entry) == 0.5

    def test_duration_kept_when_not_reported(self):
        progress = CourseProgress(course_id="C")
        accumulate_watch_time(progress, "CH_1", 100, 600)
        entry = accumulate_watch_time(progress, "CH_1", 200, 0)
        assert entry.total_duration == 600

    def test_zero_duration_ratio(self):
        progress = CourseProgress(course_id="C")
        assert watch_ratio(accumulate_watch_time(progress, "CH_1", 100, 0)) == 0.0

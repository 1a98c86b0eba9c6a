"""
Tests for progress tracking and adaptive recommendations.

Covers:
- Severity trend classification
- Issue patterns: persistent, resolved and new issues
- Score improvement over the recent window
- Progress notes and trend sentences on feedback
- Drill adaptation and adaptive priority
"""

import pytest

from analysis_service.models.types import (
    AnalysisTier,
    FormIssueType,
    FormScore,
    IssueSeverity,
)
from feedback_service.models.adaptive_recommendations import (
    ALTERNATIVE_DRILLS,
    IssueProgressPattern,
    SeverityTrend,
    UserProgressSummary,
    adapt_drill_recommendations,
    analyze_issue_progress,
    build_progress_summary,
    calculate_adaptive_priority,
    calculate_severity_score,
    classify_severity_trend,
    generate_alternative_drills,
    generate_progress_aware_feedback,
    should_change_strategy,
)
from feedback_service.models.feedback_generator import generate_feedback


ELBOW = FormIssueType.ELBOW_FLARE
MAJOR = IssueSeverity.MAJOR
MODERATE = IssueSeverity.MODERATE
MINOR = IssueSeverity.MINOR


@pytest.fixture
def history(make_session, make_issue):
    """Build sessions from per-session lists of (issue_type, severity)."""
    def build(issue_lists, scores=None):
        scores = scores or [FormScore.C] * len(issue_lists)
        return [
            make_session(i, score=scores[i], issues=[make_issue(t, s) for t, s in issues])
            for i, issues in enumerate(issue_lists)
        ]
    return build


# ============================================
# Trends
# ============================================

class TestSeverityScore:

    def test_scores(self):
        assert calculate_severity_score(MAJOR) == 0
        assert calculate_severity_score(MODERATE) == 50
        assert calculate_severity_score(MINOR) == 75


class TestClassifySeverityTrend:

    def test_improving(self):
        # major, major, moderate, minor
        assert classify_severity_trend([0, 0, 50, 75]) == SeverityTrend.IMPROVING

    def test_worsening(self):
        assert classify_severity_trend([75, 50, 0, 0]) == SeverityTrend.WORSENING

    def test_small_change_is_stable(self):
        assert classify_severity_trend([50, 50, 50, 75]) == SeverityTrend.STABLE

    def test_single_occurrence_is_stable(self):
        assert classify_severity_trend([50]) == SeverityTrend.STABLE
        assert classify_severity_trend([]) == SeverityTrend.STABLE

    def test_odd_length_puts_middle_in_second_half(self):
        assert classify_severity_trend([0, 50, 75]) == SeverityTrend.IMPROVING


class TestAnalyzeIssueProgress:

    def test_never_seen(self, history):
        assert analyze_issue_progress(ELBOW, history([[], []])) is None

    def test_pattern_fields(self, history):
        sessions = history([
            [(ELBOW, MAJOR)],
            [],
            [(ELBOW, MAJOR)],
            [(ELBOW, MODERATE)],
            [(ELBOW, MINOR)],
        ])
        result = analyze_issue_progress(ELBOW, sessions)

        assert result.occurrence_count == 4
        assert result.first_detected == sessions[0].timestamp
        assert result.last_detected == sessions[4].timestamp
        assert result.severity_trend == SeverityTrend.IMPROVING
        assert result.average_severity_score == pytest.approx(31.25)
        assert result.resolved is False

    def test_resolved_after_two_clean_sessions(self, history):
        sessions = history([[(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [], []])
        assert analyze_issue_progress(ELBOW, sessions).resolved is True

    def test_one_clean_session_is_not_resolved(self, history):
        sessions = history([[(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [(ELBOW, MAJOR)], []])
        assert analyze_issue_progress(ELBOW, sessions).resolved is False


# ============================================
# Summary
# ============================================

class TestBuildProgressSummary:

    def test_empty_history(self):
        summary = build_progress_summary("player_1", [])

        assert summary.total_sessions == 0
        assert summary.average_score == 0
        assert summary.persistent_issues == []

    def test_issue_classification(self, history):
        sessions = history([
            [(ELBOW, MAJOR), (FormIssueType.STANCE, MINOR)],
            [(ELBOW, MAJOR), (FormIssueType.STANCE, MINOR)],
            [(ELBOW, MAJOR), (FormIssueType.STANCE, MINOR)],
            [(ELBOW, MAJOR)],
            [(ELBOW, MAJOR), (FormIssueType.WRIST_ANGLE, MODERATE)],
        ])
        summary = build_progress_summary("player_1", sessions)

        assert [p.issue_type for p in summary.persistent_issues] == [ELBOW]
        assert [p.issue_type for p in summary.resolved_issues] == [FormIssueType.STANCE]
        assert [p.issue_type for p in summary.new_issues] == [FormIssueType.WRIST_ANGLE]

    def test_categories_are_disjoint(self, history):
        sessions = history([
            [(ELBOW, MAJOR)],
            [(ELBOW, MAJOR), (FormIssueType.FOLLOW_THROUGH, MAJOR)],
            [(FormIssueType.FOLLOW_THROUGH, MAJOR)],
        ])
        summary = build_progress_summary("player_1", sessions)

        groups = [summary.persistent_issues, summary.resolved_issues, summary.new_issues]
        types = [p.issue_type for group in groups for p in group]
        assert len(types) == len(set(types))

    def test_score_improvement_uses_recent_window(self, history):
        scores = [FormScore.F, FormScore.F] + [FormScore.B] * 5
        summary = build_progress_summary("player_1", history([[]] * 7, scores=scores))

        assert summary.score_improvement == pytest.approx(35)
        assert summary.average_score == pytest.approx((50 * 2 + 85 * 5) / 7)

    def test_short_history_has_no_improvement(self, history):
        scores = [FormScore.F, FormScore.C, FormScore.A]
        summary = build_progress_summary("player_1", history([[]] * 3, scores=scores))

        assert summary.score_improvement == 0

    def test_to_dict(self, history):
        summary = build_progress_summary("player_1", history([[(ELBOW, MAJOR)]]))
        data = summary.to_dict()

        assert data["user_id"] == "player_1"
        assert data["new_issues"][0]["issue_type"] == "elbow_flare"


# ============================================
# Adaptive feedback
# ============================================

class TestProgressAwareFeedback:

    def test_resolved_issue_is_celebrated(self, history, make_result):
        sessions = history([[(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [], []])
        summary = build_progress_summary("player_1", sessions)
        base = generate_feedback(make_result(score=FormScore.B), AnalysisTier.BASIC)

        adapted = generate_progress_aware_feedback(base, summary)

        assert adapted.overall_message.endswith("Great job resolving: elbow flare!")
        # Input feedback is not modified
        assert "Great job" not in base.overall_message

    def test_no_trend_sentences_below_three_sessions(self, history, make_result):
        sessions = history([[(ELBOW, MAJOR)], [(ELBOW, MAJOR)]])
        summary = build_progress_summary("player_1", sessions)
        base = generate_feedback(make_result(), AnalysisTier.BASIC)

        assert generate_progress_aware_feedback(base, summary).overall_message == base.overall_message

    def test_score_trend_sentences(self, make_result):
        base = generate_feedback(make_result(), AnalysisTier.BASIC)

        up = UserProgressSummary(user_id="p", total_sessions=8, score_improvement=10)
        down = UserProgressSummary(user_id="p", total_sessions=8, score_improvement=-10)

        assert "improving nicely" in generate_progress_aware_feedback(base, up).overall_message
        assert "regression" in generate_progress_aware_feedback(base, down).overall_message

    def test_persistent_improving_issue(self, history, make_result, make_issue):
        sessions = history([[(ELBOW, MAJOR)], [(ELBOW, MAJOR)], [(ELBOW, MODERATE)], [(ELBOW, MINOR)]])
        summary = build_progress_summary("player_1", sessions)
        base = generate_feedback(
            make_result(score=FormScore.C, issues=[make_issue(ELBOW, MINOR)]),
            AnalysisTier.LIGHTWEIGHT_ML,
        )

        adapted = generate_progress_aware_feedback(base, summary)
        rec = adapted.recommendations[0]

        assert rec.is_persistent is True
        assert rec.is_new is False
        assert rec.progress_note == "You're making progress on this! Keep practicing these drills."
        assert adapted.encouragement.endswith("keep it up!")
        assert base.recommendations[0].progress_note is None

    def test_persistent_worsening_and_stable_notes(self, history, make_result, make_issue):
        worsening = build_progress_summary("p", history([[(ELBOW, MINOR)], [(ELBOW, MINOR)], [(ELBOW, MAJOR)], [(ELBOW, MAJOR)]]))
        stable = build_progress_summary("p", history([[(ELBOW, MAJOR)]] * 3))
        base = generate_feedback(make_result(issues=[make_issue(ELBOW, MAJOR)]), AnalysisTier.BASIC)

        assert generate_progress_aware_feedback(base, worsening).recommendations[0].progress_note.startswith(
            "This issue needs more attention"
        )
        assert generate_progress_aware_feedback(base, stable).recommendations[0].progress_note.startswith(
            "You've been working on this"
        )

    def test_new_and_returning_issues(self, history, make_result, make_issue):
        sessions = history([[(ELBOW, MAJOR)], [], [(FormIssueType.STANCE, MINOR)], [], []])
        summary = build_progress_summary("player_1", sessions)
        base = generate_feedback(
            make_result(issues=[make_issue(ELBOW, MAJOR), make_issue(FormIssueType.WRIST_ANGLE, MODERATE)]),
            AnalysisTier.LIGHTWEIGHT_ML,
        )

        recs = generate_progress_aware_feedback(base, summary).recommendations

        assert recs[0].progress_note == "This issue has returned. Review the drills that helped you before."
        assert recs[1].progress_note is None
        assert recs[1].is_new is False

    def test_new_issue_note(self, history, make_result, make_issue):
        summary = build_progress_summary("player_1", history([[], [(ELBOW, MODERATE)]]))
        base = generate_feedback(make_result(issues=[make_issue(ELBOW, MODERATE)]), AnalysisTier.BASIC)

        rec = generate_progress_aware_feedback(base, summary).recommendations[0]

        assert rec.is_new is True
        assert rec.progress_note == "This is a new area to work on. Start with the first drill."


# ============================================
# Drills and priority
# ============================================

def make_pattern(trend, count, make_session):
    first = make_session(0)
    return IssueProgressPattern(
        issue_type=ELBOW,
        first_detected=first.timestamp,
        last_detected=first.timestamp,
        occurrence_count=count,
        severity_trend=trend,
        average_severity_score=25.0,
        resolved=False,
    )


class TestDrillAdaptation:

    def test_no_pattern_keeps_drills(self):
        assert adapt_drill_recommendations(["A"], None) == ["A"]

    def test_improving_adds_progressions(self, make_session):
        drills = adapt_drill_recommendations(["A"], make_pattern(SeverityTrend.IMPROVING, 3, make_session))
        assert drills == ["A", "Progress to game-speed practice", "Add movement to your drills"]

    def test_stuck_issue_changes_strategy(self, make_session):
        stuck = make_pattern(SeverityTrend.STABLE, 4, make_session)
        drills = adapt_drill_recommendations(["A"], stuck)

        assert should_change_strategy(stuck) is True
        assert drills[0] == "Try a different approach - vary your practice routine"
        assert drills[1] == "A"
        assert len(drills) == 4

    def test_improving_never_changes_strategy(self, make_session):
        assert should_change_strategy(make_pattern(SeverityTrend.IMPROVING, 6, make_session)) is False

    def test_alternative_drills_are_copies(self):
        drills = generate_alternative_drills(ELBOW)
        drills.append("extra")
        assert len(ALTERNATIVE_DRILLS[ELBOW]) == 4


class TestAdaptivePriority:

    def test_base_priorities(self, make_issue):
        summary = UserProgressSummary(user_id="p")
        assert calculate_adaptive_priority(make_issue(ELBOW, MAJOR), None, summary) == 3
        assert calculate_adaptive_priority(make_issue(ELBOW, MODERATE), None, summary) == 2
        assert calculate_adaptive_priority(make_issue(ELBOW, MINOR), None, summary) == 1

    def test_worsening_and_frequent(self, make_issue, make_session):
        summary = UserProgressSummary(user_id="p")
        pattern = make_pattern(SeverityTrend.WORSENING, 5, make_session)
        assert calculate_adaptive_priority(make_issue(ELBOW, MAJOR), pattern, summary) == 6

    def test_improving_floor(self, make_issue, make_session):
        summary = UserProgressSummary(user_id="p")
        pattern = make_pattern(SeverityTrend.IMPROVING, 2, make_session)
        assert calculate_adaptive_priority(make_issue(ELBOW, MINOR), pattern, summary) == 1

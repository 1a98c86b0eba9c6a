"""
Tests for combining session feedback with progress history.

Covers:
- Plain feedback without history
- Adaptive feedback with history
- History read failures degrading to plain feedback
- Combined display and progress insights
"""

from analysis_service.models.types import AnalysisTier, FormIssueType, FormScore, IssueSeverity
from feedback_service.models.adaptive_recommendations import UserProgressSummary, build_progress_summary
from feedback_service.models.feedback_integration import (
    format_complete_feedback,
    generate_adaptive_feedback,
    generate_session_feedback,
    get_feedback_for_session,
    get_progress_insights,
)


class TestGetFeedbackForSession:

    def test_no_history_is_plain(self, make_result):
        feedback = get_feedback_for_session(
            "player_1", make_result(), AnalysisTier.BASIC, lambda user_id: []
        )

        assert feedback.is_adaptive is False
        assert feedback.progress_summary is None

    def test_history_makes_feedback_adaptive(self, make_result, make_session, make_issue):
        sessions = [make_session(i, issues=[make_issue()]) for i in range(3)]
        feedback = get_feedback_for_session(
            "player_1",
            make_result(issues=[make_issue()]),
            AnalysisTier.LIGHTWEIGHT_ML,
            lambda user_id: sessions,
        )

        assert feedback.is_adaptive is True
        assert feedback.progress_summary.total_sessions == 3
        assert feedback.session_feedback.recommendations[0].is_persistent is True

    def test_history_failure_degrades(self, make_result):
        def broken_history(user_id):
            raise ConnectionError("firestore unavailable")

        feedback = get_feedback_for_session(
            "player_1", make_result(score=FormScore.A), AnalysisTier.BASIC, broken_history
        )

        assert feedback.is_adaptive is False
        assert feedback.session_feedback.form_score == FormScore.A

    def test_history_is_requested_for_user(self, make_result):
        requested = []
        get_feedback_for_session(
            "player_9", make_result(), AnalysisTier.BASIC, lambda user_id: requested.append(user_id) or []
        )
        assert requested == ["player_9"]


class TestFormatting:

    def test_plain_feedback_has_no_progress_header(self, make_result):
        text = format_complete_feedback(generate_session_feedback(make_result(), AnalysisTier.BASIC))

        assert not text.startswith("Session")
        assert "Form Score: B" in text

    def test_adaptive_header(self, make_result, make_session):
        scores = [FormScore.F] * 2 + [FormScore.B] * 5
        history = [make_session(i, score=score) for i, score in enumerate(scores)]
        feedback = generate_adaptive_feedback("player_1", make_result(), AnalysisTier.BASIC, history)

        text = format_complete_feedback(feedback)

        assert text.startswith("Session 8\n")
        assert "Recent Trend: ↑ 35.0 points" in text

    def test_to_dict(self, make_result):
        data = generate_session_feedback(make_result(), AnalysisTier.BASIC).to_dict()

        assert data["is_adaptive"] is False
        assert data["progress_summary"] is None
        assert data["session_feedback"]["form_score"] == "B"


class TestProgressInsights:

    def test_labels(self):
        assert get_progress_insights(UserProgressSummary(user_id="p", score_improvement=10))["improvement"] == "Improving"
        assert get_progress_insights(UserProgressSummary(user_id="p", score_improvement=-10))["improvement"] == "Needs attention"
        assert get_progress_insights(UserProgressSummary(user_id="p"))["improvement"] == "Stable"

    def test_strengths_and_areas(self, make_session, make_issue):
        sessions = [
            make_session(0, issues=[make_issue(FormIssueType.STANCE, IssueSeverity.MINOR)]),
            make_session(1, issues=[make_issue(FormIssueType.ELBOW_FLARE)]),
            make_session(2, issues=[make_issue(FormIssueType.ELBOW_FLARE)]),
            make_session(3, issues=[make_issue(FormIssueType.ELBOW_FLARE)]),
        ]
        insights = get_progress_insights(build_progress_summary("player_1", sessions))

        assert insights["strengths"] == ["stance (resolved)"]
        assert insights["areas_to_work"] == ["elbow flare (persistent)"]

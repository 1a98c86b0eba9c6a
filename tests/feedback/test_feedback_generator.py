"""
Tests for single-session feedback generation.

Covers:
- Recommendation cap per tier and severity ordering
- Tier-dependent messages and explanations
- Encouragement and next steps
- Drill suggestions and display formatting
"""

import pytest

from analysis_service.models.types import (
    AnalysisTier,
    FormIssueType,
    FormScore,
    IssueSeverity,
)
from feedback_service.models.feedback_generator import (
    ELABORATIONS,
    FeedbackRecommendation,
    create_recommendations,
    format_feedback_for_display,
    generate_drill_suggestions,
    generate_encouragement,
    generate_explanation,
    generate_feedback,
    generate_next_steps,
    generate_overall_message,
    max_recommendations,
)


@pytest.fixture
def four_issues(make_issue):
    return [
        make_issue(FormIssueType.STANCE, IssueSeverity.MINOR),
        make_issue(FormIssueType.WRIST_ANGLE, IssueSeverity.MODERATE),
        make_issue(FormIssueType.ELBOW_FLARE, IssueSeverity.MAJOR),
        make_issue(FormIssueType.FOLLOW_THROUGH, IssueSeverity.MAJOR),
    ]


# ============================================
# Recommendations
# ============================================

class TestRecommendationCap:

    @pytest.mark.parametrize("tier,expected", [
        (AnalysisTier.BASIC, 2),
        (AnalysisTier.LIGHTWEIGHT_ML, 3),
        (AnalysisTier.FULL_ML, 3),
        (AnalysisTier.CLOUD, 3),
    ])
    def test_cap_by_tier(self, tier, expected, four_issues, make_result):
        feedback = generate_feedback(make_result(score=FormScore.D, issues=four_issues), tier)

        assert max_recommendations(tier) == expected
        assert len(feedback.recommendations) == expected

    def test_most_severe_first(self, four_issues):
        recs = create_recommendations(four_issues, 3, AnalysisTier.LIGHTWEIGHT_ML)

        assert [r.issue.type for r in recs] == [
            FormIssueType.ELBOW_FLARE,
            FormIssueType.FOLLOW_THROUGH,
            FormIssueType.WRIST_ANGLE,
        ]
        assert [r.priority for r in recs] == [1, 2, 3]

    def test_no_issues_no_recommendations(self, make_result):
        feedback = generate_feedback(make_result(score=FormScore.A), AnalysisTier.BASIC)
        assert feedback.recommendations == []

    def test_recommendation_carries_drills(self, make_issue):
        issue = make_issue(drills=["Wall shooting", "Mirror practice"])
        rec = create_recommendations([issue], 3, AnalysisTier.BASIC)[0]

        assert rec.drills == ["Wall shooting", "Mirror practice"]
        assert rec.is_new is False
        assert rec.progress_note is None


class TestMessages:

    def test_overall_message_depends_on_tier(self):
        basic = generate_overall_message(FormScore.A, AnalysisTier.BASIC)
        advanced = generate_overall_message(FormScore.A, AnalysisTier.LIGHTWEIGHT_ML)

        assert basic == "Excellent form! Your shooting technique is strong."
        assert advanced.startswith("Outstanding form!")

    def test_basic_explanation_is_description(self, make_issue):
        issue = make_issue(FormIssueType.WRIST_ANGLE, IssueSeverity.MINOR)
        assert generate_explanation(issue, AnalysisTier.BASIC) == issue.description

    def test_advanced_explanation_elaborates(self, make_issue):
        issue = make_issue(FormIssueType.WRIST_ANGLE, IssueSeverity.MINOR)
        explanation = generate_explanation(issue, AnalysisTier.CLOUD)

        assert explanation.startswith(issue.description)
        assert explanation.endswith(ELABORATIONS[FormIssueType.WRIST_ANGLE][IssueSeverity.MINOR])

    @pytest.mark.parametrize("score,count,prefix", [
        (FormScore.A, 5, "Keep up the excellent work"),
        (FormScore.B, 0, "You're on the right track"),
        (FormScore.C, 2, "You're making progress"),
        (FormScore.F, 3, "Every great shooter"),
    ])
    def test_encouragement(self, score, count, prefix):
        assert generate_encouragement(score, count).startswith(prefix)


class TestNextSteps:

    def _rec(self, make_issue, drills):
        return FeedbackRecommendation(
            priority=1,
            issue=make_issue(drills=drills),
            explanation="",
            drills=drills,
            why_it_matters="",
        )

    def test_good_score_steps(self, make_issue):
        steps = generate_next_steps([self._rec(make_issue, ["Wall shooting"])], FormScore.B)
        assert steps == ["Start with: Wall shooting", "Record another session to track your consistency"]

    def test_low_score_steps(self, make_issue):
        recs = [self._rec(make_issue, ["Wall shooting"]), self._rec(make_issue, ["Freeze drill"])]
        steps = generate_next_steps(recs, FormScore.D)

        assert steps == [
            "Start with: Wall shooting",
            "Then practice: Freeze drill",
            "Practice these drills for 10-15 minutes daily",
            "Record a new session in 2-3 days to check progress",
        ]

    def test_no_recommendations(self):
        assert generate_next_steps([], FormScore.A) == ["Record another session to track your consistency"]


# ============================================
# Drills and display
# ============================================

class TestDrillSuggestions:

    def test_empty(self):
        assert generate_drill_suggestions([]) == ["Continue practicing your current form"]

    def test_shared_drills_first_and_unique(self, make_issue):
        issues = [
            make_issue(FormIssueType.ELBOW_FLARE, drills=["Wall shooting", "Form shooting"]),
            make_issue(FormIssueType.WRIST_ANGLE, drills=["Wrist flicks", "Form shooting"]),
        ]
        assert generate_drill_suggestions(issues) == ["Form shooting", "Wall shooting", "Wrist flicks"]


class TestDisplay:

    def test_format_feedback(self, four_issues, make_result):
        feedback = generate_feedback(make_result(score=FormScore.C, issues=four_issues), AnalysisTier.BASIC)
        text = format_feedback_for_display(feedback)

        assert text.startswith(feedback.overall_message)
        assert "Form Score: C" in text
        assert "1. ELBOW FLARE" in text
        assert "2. FOLLOW THROUGH" in text
        assert "Next Steps:" in text
        assert text.endswith("\n")

    def test_progress_note_in_heading(self, make_issue, make_result):
        feedback = generate_feedback(
            make_result(score=FormScore.C, issues=[make_issue()]), AnalysisTier.BASIC
        )
        feedback.recommendations[0].progress_note = "Improving!"

        assert "1. ELBOW FLARE [Improving!]" in format_feedback_for_display(feedback)

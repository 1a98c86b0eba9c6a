"""
SHOTCOACH Feedback Service - Feedback Generator

Turns one form analysis into prioritized, tier-appropriate coaching
feedback: an overall message, up to three recommendations with
explanations and drills, encouragement and next steps.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from analysis_service.models.types import (
    AnalysisTier,
    FormAnalysisResult,
    FormIssue,
    FormIssueType,
    FormScore,
    IssueSeverity,
    sort_by_severity,
)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FeedbackRecommendation:
    priority: int  # 1 = highest
    issue: FormIssue
    explanation: str
    drills: List[str]
    why_it_matters: str
    # Set by the adaptive recommendation system
    is_new: bool = False
    is_persistent: bool = False
    progress_note: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority,
            "issue": self.issue.to_dict(),
            "explanation": self.explanation,
            "drills": list(self.drills),
            "why_it_matters": self.why_it_matters,
            "is_new": self.is_new,
            "is_persistent": self.is_persistent,
            "progress_note": self.progress_note,
        }


@dataclass
class SessionFeedback:
    overall_message: str
    form_score: FormScore
    recommendations: List[FeedbackRecommendation] = field(default_factory=list)
    encouragement: str = ""
    next_steps: List[str] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_message": self.overall_message,
            "form_score": self.form_score.value,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "encouragement": self.encouragement,
            "next_steps": list(self.next_steps),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# CANNED TEXT
# ═══════════════════════════════════════════════════════════════════════════════

OVERALL_MESSAGES: Dict[FormScore, Dict[str, str]] = {
    FormScore.A: {
        "basic": "Excellent form! Your shooting technique is strong.",
        "advanced": "Outstanding form! Your biomechanics show excellent alignment and consistency.",
    },
    FormScore.B: {
        "basic": "Good form with room for improvement.",
        "advanced": "Solid form with good fundamentals. A few adjustments will take you to the next level.",
    },
    FormScore.C: {
        "basic": "Decent form, but focus on the key issues below.",
        "advanced": "Your form shows potential but needs work in several areas. Focus on the recommendations below.",
    },
    FormScore.D: {
        "basic": "Your form needs work. Practice the recommended drills.",
        "advanced": "Significant form issues detected. Consistent practice with these drills will help build better habits.",
    },
    FormScore.F: {
        "basic": "Major form issues detected. Focus on fundamentals.",
        "advanced": "Your shooting form needs fundamental corrections. Start with the basics and build from there.",
    },
}

ELABORATIONS: Dict[FormIssueType, Dict[IssueSeverity, str]] = {
    FormIssueType.ELBOW_FLARE: {
        IssueSeverity.MAJOR: (
            "When your elbow flares out, it creates inconsistent release angles and reduces shooting "
            "accuracy. Proper elbow alignment ensures the ball travels in a straight line toward the basket."
        ),
        IssueSeverity.MODERATE: "Better elbow alignment will improve your shot consistency and make it easier to repeat your form.",
        IssueSeverity.MINOR: "Small adjustments to elbow position can significantly improve accuracy.",
    },
    FormIssueType.WRIST_ANGLE: {
        IssueSeverity.MAJOR: (
            "Proper wrist snap generates backspin and controls the ball's trajectory. Without correct "
            "wrist mechanics, your shots will lack consistency and touch."
        ),
        IssueSeverity.MODERATE: "Improving wrist mechanics will give you better control over shot arc and backspin.",
        IssueSeverity.MINOR: "Fine-tuning wrist position will enhance your shooting touch.",
    },
    FormIssueType.STANCE: {
        IssueSeverity.MAJOR: (
            "Your base provides stability and power for your shot. Poor stance leads to balance issues "
            "and inconsistent release points."
        ),
        IssueSeverity.MODERATE: "Better stance alignment will improve your balance and shooting consistency.",
        IssueSeverity.MINOR: "Small stance adjustments can improve your overall shooting rhythm.",
    },
    FormIssueType.FOLLOW_THROUGH: {
        IssueSeverity.MAJOR: (
            "Follow-through is crucial for shot consistency and accuracy. It ensures complete energy "
            "transfer and proper backspin on the ball."
        ),
        IssueSeverity.MODERATE: "Extending your follow-through will improve shot consistency and help develop muscle memory.",
        IssueSeverity.MINOR: "A complete follow-through adds the finishing touch to good shooting form.",
    },
}

WHY_IT_MATTERS: Dict[FormIssueType, str] = {
    FormIssueType.ELBOW_FLARE: (
        "Proper elbow alignment is the foundation of consistent shooting. It ensures the ball travels "
        "in a straight line and makes your shot repeatable."
    ),
    FormIssueType.WRIST_ANGLE: (
        "Wrist mechanics control ball rotation and arc. Good wrist form creates the backspin needed "
        "for soft shots that drop through the net."
    ),
    FormIssueType.STANCE: (
        "Your stance provides the stable base for your entire shot. Good balance allows you to shoot "
        "consistently from any position on the court."
    ),
    FormIssueType.FOLLOW_THROUGH: (
        "Follow-through completes the shooting motion and ensures full energy transfer. "
        "It's the signature of every great shooter."
    ),
}


def _is_advanced(tier: AnalysisTier) -> bool:
    return tier != AnalysisTier.BASIC


def max_recommendations(tier: AnalysisTier) -> int:
    return 2 if tier == AnalysisTier.BASIC else 3


# ═══════════════════════════════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════════════════════════════

def generate_overall_message(score: FormScore, tier: AnalysisTier) -> str:
    return OVERALL_MESSAGES[score]["advanced" if _is_advanced(tier) else "basic"]


def generate_explanation(issue: FormIssue, tier: AnalysisTier) -> str:
    """Basic tier repeats the description; other tiers add an elaboration."""
    if not _is_advanced(tier):
        return issue.description
    return f"{issue.description} {ELABORATIONS[issue.type][issue.severity]}"


def generate_why_it_matters(issue_type: FormIssueType) -> str:
    return WHY_IT_MATTERS[issue_type]


def create_recommendations(
    issues: List[FormIssue],
    max_count: int,
    tier: AnalysisTier,
) -> List[FeedbackRecommendation]:
    return [
        FeedbackRecommendation(
            priority=index + 1,
            issue=issue,
            explanation=generate_explanation(issue, tier),
            drills=list(issue.recommended_drills),
            why_it_matters=generate_why_it_matters(issue.type),
        )
        for index, issue in enumerate(sort_by_severity(issues)[:max_count])
    ]


def generate_encouragement(score: FormScore, issue_count: int) -> str:
    if score == FormScore.A:
        return "Keep up the excellent work! Your dedication to proper form is paying off."
    if score == FormScore.B:
        return "You're on the right track! Focus on these areas and you'll see great improvement."
    if issue_count <= 2:
        return "You're making progress! Work on these specific areas and your form will improve quickly."
    return (
        "Every great shooter started where you are now. "
        "Consistent practice with these drills will build the muscle memory you need."
    )


def generate_next_steps(recommendations: List[FeedbackRecommendation], score: FormScore) -> List[str]:
    steps = []
    
    if recommendations and recommendations[0].drills:
        steps.append(f"Start with: {recommendations[0].drills[0]}")
    if len(recommendations) > 1 and recommendations[1].drills:
        steps.append(f"Then practice: {recommendations[1].drills[0]}")
    
    if score in (FormScore.A, FormScore.B):
        steps.append("Record another session to track your consistency")
    else:
        steps.append("Practice these drills for 10-15 minutes daily")
        steps.append("Record a new session in 2-3 days to check progress")
    
    return steps


def generate_feedback(result: FormAnalysisResult, tier: AnalysisTier) -> SessionFeedback:
    """Feedback for one analysis; at most 2 recommendations on the basic tier, 3 otherwise."""
    recommendations = create_recommendations(result.detected_issues, max_recommendations(tier), tier)
    
    return SessionFeedback(
        overall_message=generate_overall_message(result.overall_score, tier),
        form_score=result.overall_score,
        recommendations=recommendations,
        encouragement=generate_encouragement(result.overall_score, len(result.detected_issues)),
        next_steps=generate_next_steps(recommendations, result.overall_score),
    )


def generate_drill_suggestions(issues: List[FormIssue]) -> List[str]:
    """Unique drills, those covering the most issues first."""
    if not issues:
        return ["Continue practicing your current form"]
    
    coverage = Counter()
    ordered: List[str] = []
    for issue in issues:
        for drill in dict.fromkeys(issue.recommended_drills):
            if drill not in coverage:
                ordered.append(drill)
            coverage[drill] += 1
    
    return sorted(ordered, key=lambda drill: -coverage[drill])


# ═══════════════════════════════════════════════════════════════════════════════
# DISPLAY
# ═══════════════════════════════════════════════════════════════════════════════

def format_recommendation(rec: FeedbackRecommendation) -> List[str]:
    heading = f"{rec.priority}. {rec.issue.type.label.upper()}"
    if rec.progress_note:
        heading += f" [{rec.progress_note}]"
    
    lines = [
        "",
        heading,
        f"   {rec.explanation}",
        f"   Why it matters: {rec.why_it_matters}",
        "   Recommended drills:",
    ]
    lines.extend(f"   - {drill}" for drill in rec.drills)
    return lines


def format_feedback_for_display(feedback: SessionFeedback) -> str:
    lines = [feedback.overall_message, "", f"Form Score: {feedback.form_score.value}", ""]
    
    if feedback.recommendations:
        lines.append("Key Areas to Improve:")
        for rec in feedback.recommendations:
            lines.extend(format_recommendation(rec))
    
    lines.extend(["", feedback.encouragement, "", "Next Steps:"])
    lines.extend(f"{index + 1}. {step}" for index, step in enumerate(feedback.next_steps))
    return "\n".join(lines) + "\n"

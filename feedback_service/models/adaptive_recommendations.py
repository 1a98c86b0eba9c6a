"""
SHOTCOACH Feedback Service - Adaptive Recommendation System

Reads a user's session history, classifies each recurring issue as
improving, stable or worsening, and annotates the current session's
recommendations with that progress.

Everything here is a pure view over the session list; nothing is cached.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from analysis_service.models.types import (
    FormIssue,
    FormIssueType,
    GRADE_VALUES,
    IssueSeverity,
    ShootingSession,
)
from .feedback_generator import FeedbackRecommendation, SessionFeedback

logger = logging.getLogger(__name__)

RECENT_WINDOW = 5  # sessions used for the score trend
RESOLVED_WINDOW = 2  # issue must be absent from this many latest sessions
TREND_THRESHOLD = 15.0
SCORE_TREND_THRESHOLD = 5.0
MIN_SESSIONS_FOR_TREND_MESSAGE = 3


class SeverityTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


@dataclass
class IssueProgressPattern:
    issue_type: FormIssueType
    first_detected: datetime
    last_detected: datetime
    occurrence_count: int
    severity_trend: SeverityTrend
    average_severity_score: float  # 0-75 (major=0, moderate=50, minor=75)
    resolved: bool
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_type": self.issue_type.value,
            "first_detected": self.first_detected.isoformat(),
            "last_detected": self.last_detected.isoformat(),
            "occurrence_count": self.occurrence_count,
            "severity_trend": self.severity_trend.value,
            "average_severity_score": round(self.average_severity_score, 1),
            "resolved": self.resolved,
        }


@dataclass
class UserProgressSummary:
    user_id: str
    total_sessions: int = 0
    average_score: float = 0.0
    score_improvement: float = 0.0
    persistent_issues: List[IssueProgressPattern] = field(default_factory=list)
    resolved_issues: List[IssueProgressPattern] = field(default_factory=list)
    new_issues: List[IssueProgressPattern] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_sessions": self.total_sessions,
            "average_score": round(self.average_score, 1),
            "score_improvement": round(self.score_improvement, 1),
            "persistent_issues": [p.to_dict() for p in self.persistent_issues],
            "resolved_issues": [p.to_dict() for p in self.resolved_issues],
            "new_issues": [p.to_dict() for p in self.new_issues],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# PROGRESS ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_severity_score(severity: IssueSeverity) -> int:
    if severity == IssueSeverity.MAJOR:
        return 0
    if severity == IssueSeverity.MODERATE:
        return 50
    if severity == IssueSeverity.MINOR:
        return 75
    raise ValueError(f"Unknown severity: {severity}")


def _find_issue(session: ShootingSession, issue_type: FormIssueType) -> Optional[FormIssue]:
    for issue in session.detected_issues:
        if issue.type == issue_type:
            return issue
    return None


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def classify_severity_trend(severity_scores: List[float]) -> SeverityTrend:
    """
    Compare the mean severity score of the second half of occurrences
    with the first half. A single occurrence has no trend.
    """
    if len(severity_scores) < 2:
        return SeverityTrend.STABLE
    
    midpoint = len(severity_scores) // 2
    change = _mean(severity_scores[midpoint:]) - _mean(severity_scores[:midpoint])
    if change > TREND_THRESHOLD:
        return SeverityTrend.IMPROVING
    if change < -TREND_THRESHOLD:
        return SeverityTrend.WORSENING
    return SeverityTrend.STABLE


def analyze_issue_progress(
    issue_type: FormIssueType,
    sessions: List[ShootingSession],
) -> Optional[IssueProgressPattern]:
    """Pattern over the sessions containing the issue, or None if it never occurred."""
    occurrences = [(s, _find_issue(s, issue_type)) for s in sessions]
    occurrences = [(s, issue) for s, issue in occurrences if issue is not None]
    if not occurrences:
        return None
    
    scores = [calculate_severity_score(issue.severity) for _, issue in occurrences]
    recent = sessions[-RESOLVED_WINDOW:]
    resolved = all(_find_issue(s, issue_type) is None for s in recent)
    
    return IssueProgressPattern(
        issue_type=issue_type,
        first_detected=occurrences[0][0].timestamp,
        last_detected=occurrences[-1][0].timestamp,
        occurrence_count=len(occurrences),
        severity_trend=classify_severity_trend(scores),
        average_severity_score=_mean(scores),
        resolved=resolved,
    )


def build_progress_summary(user_id: str, sessions: List[ShootingSession]) -> UserProgressSummary:
    """Aggregate a user's history (oldest first)."""
    if not sessions:
        return UserProgressSummary(user_id=user_id)
    
    scores = [GRADE_VALUES[s.form_score] for s in sessions]
    recent = scores[-RECENT_WINDOW:]
    previous = scores[:-RECENT_WINDOW]
    recent_avg = _mean(recent)
    previous_avg = _mean(previous) if previous else recent_avg
    
    patterns = [analyze_issue_progress(issue_type, sessions) for issue_type in FormIssueType]
    patterns = [p for p in patterns if p is not None]
    
    active = [p for p in patterns if not p.resolved]
    persistent = [p for p in active if p.occurrence_count >= 3]
    
    return UserProgressSummary(
        user_id=user_id,
        total_sessions=len(sessions),
        average_score=_mean(scores),
        score_improvement=recent_avg - previous_avg,
        persistent_issues=persistent,
        resolved_issues=[p for p in patterns if p.resolved],
        new_issues=[p for p in active if p.occurrence_count <= 2 and p not in persistent],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# ADAPTIVE FEEDBACK
# ═══════════════════════════════════════════════════════════════════════════════

def _progress_note(
    resolved: Optional[IssueProgressPattern],
    persistent: Optional[IssueProgressPattern],
    new: Optional[IssueProgressPattern],
) -> Optional[str]:
    if resolved is not None:
        return "This issue has returned. Review the drills that helped you before."
    if persistent is not None:
        if persistent.severity_trend == SeverityTrend.IMPROVING:
            return "You're making progress on this! Keep practicing these drills."
        if persistent.severity_trend == SeverityTrend.WORSENING:
            return "This issue needs more attention. Consider focusing extra time on these drills."
        return "You've been working on this. Try varying your practice approach."
    if new is not None:
        return "This is a new area to work on. Start with the first drill."
    return None


def _pattern_for(patterns: List[IssueProgressPattern], issue_type: FormIssueType) -> Optional[IssueProgressPattern]:
    return next((p for p in patterns if p.issue_type == issue_type), None)


def generate_adaptive_recommendations(
    feedback: SessionFeedback,
    summary: UserProgressSummary,
) -> List[FeedbackRecommendation]:
    adapted = []
    for rec in feedback.recommendations:
        issue_type = rec.issue.type
        persistent = _pattern_for(summary.persistent_issues, issue_type)
        new = _pattern_for(summary.new_issues, issue_type)
        resolved = _pattern_for(summary.resolved_issues, issue_type)
        
        adapted.append(replace(
            rec,
            drills=list(rec.drills),
            is_new=new is not None,
            is_persistent=persistent is not None,
            progress_note=_progress_note(resolved, persistent, new),
        ))
    return adapted


def generate_progress_aware_feedback(
    feedback: SessionFeedback,
    summary: UserProgressSummary,
) -> SessionFeedback:
    """New feedback with trend sentences and annotated recommendations."""
    message = feedback.overall_message
    
    if summary.total_sessions >= MIN_SESSIONS_FOR_TREND_MESSAGE:
        if summary.score_improvement > SCORE_TREND_THRESHOLD:
            message += " Your form is improving nicely over recent sessions!"
        elif summary.score_improvement < -SCORE_TREND_THRESHOLD:
            message += " Your recent sessions show some regression. Focus on fundamentals."
        
        if summary.resolved_issues:
            resolved_types = ", ".join(p.issue_type.label for p in summary.resolved_issues)
            message += f" Great job resolving: {resolved_types}!"
    
    encouragement = feedback.encouragement
    if any(p.severity_trend == SeverityTrend.IMPROVING for p in summary.persistent_issues):
        encouragement += " Your consistent practice is paying off - keep it up!"
    
    return replace(
        feedback,
        overall_message=message,
        recommendations=generate_adaptive_recommendations(feedback, summary),
        encouragement=encouragement,
        next_steps=list(feedback.next_steps),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# DRILL ADAPTATION
# ═══════════════════════════════════════════════════════════════════════════════

ALTERNATIVE_DRILLS: Dict[FormIssueType, List[str]] = {
    FormIssueType.ELBOW_FLARE: [
        "Try the towel drill - hold towel under shooting arm",
        "Practice with a shooting sleeve for awareness",
        "Use a chair to restrict elbow movement",
        "Film yourself from the side to see the issue",
    ],
    FormIssueType.WRIST_ANGLE: [
        "Practice lying on your back shooting upward",
        "Use a smaller/lighter ball to focus on wrist",
        "Exaggerate the follow-through motion",
        "Practice wrist snaps without the ball",
    ],
    FormIssueType.STANCE: [
        "Use tape on floor to mark foot positions",
        "Practice stance in front of mirror",
        "Do balance exercises before shooting",
        "Start from a seated position to isolate upper body",
    ],
    FormIssueType.FOLLOW_THROUGH: [
        "Count to 3 while holding follow-through",
        "Practice with eyes closed to feel the motion",
        "Use a target on the wall for form practice",
        "Record and compare your follow-through to pros",
    ],
}


def should_change_strategy(pattern: IssueProgressPattern) -> bool:
    """Seen four or more times without improving."""
    return pattern.occurrence_count >= 4 and pattern.severity_trend != SeverityTrend.IMPROVING


def adapt_drill_recommendations(drills: List[str], pattern: Optional[IssueProgressPattern]) -> List[str]:
    if pattern is None:
        return list(drills)
    
    if pattern.severity_trend == SeverityTrend.IMPROVING and pattern.occurrence_count >= 3:
        return list(drills) + ["Progress to game-speed practice", "Add movement to your drills"]
    
    if should_change_strategy(pattern):
        return (
            ["Try a different approach - vary your practice routine"]
            + list(drills)
            + ["Consider recording yourself to see the issue", "Practice in slow motion to build muscle memory"]
        )
    
    return list(drills)


def generate_alternative_drills(issue_type: FormIssueType) -> List[str]:
    return list(ALTERNATIVE_DRILLS[issue_type])


def calculate_adaptive_priority(
    issue: FormIssue,
    pattern: Optional[IssueProgressPattern],
    summary: UserProgressSummary,
) -> int:
    """Severity base (3/2/1), +2 worsening, +1 at 5+ occurrences, -1 improving; at least 1."""
    if issue.severity == IssueSeverity.MAJOR:
        priority = 3
    elif issue.severity == IssueSeverity.MODERATE:
        priority = 2
    elif issue.severity == IssueSeverity.MINOR:
        priority = 1
    else:
        raise ValueError(f"Unknown severity: {issue.severity}")
    
    if pattern is not None:
        if pattern.severity_trend == SeverityTrend.WORSENING:
            priority += 2
        if pattern.occurrence_count >= 5:
            priority += 1
        if pattern.severity_trend == SeverityTrend.IMPROVING:
            priority -= 1
    
    return max(1, priority)

"""
SHOTCOACH Feedback Service - Feedback Integration

Chooses between plain and progress-aware feedback for a session and
renders the combined result.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from analysis_service.models.types import AnalysisTier, FormAnalysisResult, ShootingSession
from .adaptive_recommendations import (
    SCORE_TREND_THRESHOLD,
    UserProgressSummary,
    build_progress_summary,
    generate_progress_aware_feedback,
)
from .feedback_generator import SessionFeedback, format_recommendation, generate_feedback

logger = logging.getLogger(__name__)

SessionHistoryFn = Callable[[str], List[ShootingSession]]


@dataclass
class CompleteFeedback:
    session_feedback: SessionFeedback
    progress_summary: Optional[UserProgressSummary] = None
    is_adaptive: bool = False
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_feedback": self.session_feedback.to_dict(),
            "progress_summary": self.progress_summary.to_dict() if self.progress_summary else None,
            "is_adaptive": self.is_adaptive,
        }


def generate_session_feedback(result: FormAnalysisResult, tier: AnalysisTier) -> CompleteFeedback:
    return CompleteFeedback(session_feedback=generate_feedback(result, tier))


def generate_adaptive_feedback(
    user_id: str,
    result: FormAnalysisResult,
    tier: AnalysisTier,
    history: List[ShootingSession],
) -> CompleteFeedback:
    """Progress-aware feedback; plain feedback when there is no history."""
    base = generate_feedback(result, tier)
    if not history:
        return CompleteFeedback(session_feedback=base)
    
    summary = build_progress_summary(user_id, history)
    return CompleteFeedback(
        session_feedback=generate_progress_aware_feedback(base, summary),
        progress_summary=summary,
        is_adaptive=True,
    )


def get_feedback_for_session(
    user_id: str,
    result: FormAnalysisResult,
    tier: AnalysisTier,
    get_session_history: SessionHistoryFn,
) -> CompleteFeedback:
    """
    Feedback for a freshly analysed session.
    
    The history read is best effort: if the store fails the user still
    gets non-adaptive feedback.
    """
    try:
        history = get_session_history(user_id)
    except Exception as e:
        logger.warning(f"⚠️ Could not load session history for {user_id}: {e}")
        return generate_session_feedback(result, tier)
    
    return generate_adaptive_feedback(user_id, result, tier, history)


def format_complete_feedback(feedback: CompleteFeedback) -> str:
    lines: List[str] = []
    
    summary = feedback.progress_summary
    if feedback.is_adaptive and summary is not None:
        lines.append(f"Session {summary.total_sessions + 1}")
        lines.append(f"Average Score: {summary.average_score:.1f}")
        if summary.score_improvement != 0:
            direction = "↑" if summary.score_improvement > 0 else "↓"
            lines.append(f"Recent Trend: {direction} {abs(summary.score_improvement):.1f} points")
        lines.append("")
    
    session = feedback.session_feedback
    lines.extend([session.overall_message, "", f"Form Score: {session.form_score.value}", ""])
    
    if session.recommendations:
        lines.append("Key Areas to Improve:")
        for rec in session.recommendations:
            lines.extend(format_recommendation(rec))
    
    lines.extend(["", session.encouragement, "", "Next Steps:"])
    lines.extend(f"{index + 1}. {step}" for index, step in enumerate(session.next_steps))
    return "\n".join(lines) + "\n"


def get_progress_insights(summary: UserProgressSummary) -> Dict[str, Any]:
    if summary.score_improvement > SCORE_TREND_THRESHOLD:
        improvement = "Improving"
    elif summary.score_improvement < -SCORE_TREND_THRESHOLD:
        improvement = "Needs attention"
    else:
        improvement = "Stable"
    
    return {
        "total_sessions": summary.total_sessions,
        "average_score": summary.average_score,
        "improvement": improvement,
        "strengths": [f"{p.issue_type.label} (resolved)" for p in summary.resolved_issues],
        "areas_to_work": (
            [f"{p.issue_type.label} (persistent)" for p in summary.persistent_issues]
            + [f"{p.issue_type.label} (new)" for p in summary.new_issues]
        ),
    }

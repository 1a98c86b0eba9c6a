"""
SHOTCOACH Feedback Service Models

Coaching feedback for a single analysis and progress-aware adaptation
across a user's session history.
"""

from .feedback_generator import (
    FeedbackRecommendation,
    SessionFeedback,
    format_feedback_for_display,
    generate_feedback,
)

from .adaptive_recommendations import (
    IssueProgressPattern,
    SeverityTrend,
    UserProgressSummary,
    build_progress_summary,
    calculate_adaptive_priority,
    generate_progress_aware_feedback,
)

from .feedback_integration import (
    CompleteFeedback,
    format_complete_feedback,
    get_feedback_for_session,
    get_progress_insights,
)

__all__ = [
    # Feedback Generator
    "FeedbackRecommendation",
    "SessionFeedback",
    "format_feedback_for_display",
    "generate_feedback",
    # Adaptive Recommendations
    "IssueProgressPattern",
    "SeverityTrend",
    "UserProgressSummary",
    "build_progress_summary",
    "calculate_adaptive_priority",
    "generate_progress_aware_feedback",
    # Integration
    "CompleteFeedback",
    "format_complete_feedback",
    "get_feedback_for_session",
    "get_progress_insights",
]

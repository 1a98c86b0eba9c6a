"""
Shared fixtures: factories for results, sessions and configs.
"""

from datetime import datetime, timedelta, timezone

import pytest

from analysis_service.models.types import (
    AnalysisTier,
    BiomechanicalMetrics,
    ConnectionType,
    ConnectivityStatus,
    DeviceCapabilities,
    DeviceTier,
    FormAnalysisResult,
    FormIssue,
    FormIssueType,
    FormScore,
    IssueSeverity,
    ProcessingConfig,
    ShootingSession,
    UserConsent,
)


BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _issue(issue_type=FormIssueType.ELBOW_FLARE, severity=IssueSeverity.MODERATE, drills=None):
    return FormIssue(
        type=issue_type,
        severity=severity,
        description=f"{issue_type.label} problem",
        recommended_drills=drills if drills is not None else [f"{issue_type.label} drill"],
    )


def _result(score=FormScore.B, issues=None, metrics=(80, 80, 80, 80)):
    return FormAnalysisResult(
        overall_score=score,
        detected_issues=list(issues or []),
        biomechanical_metrics=BiomechanicalMetrics(*metrics),
    )


def _session(index, score=FormScore.C, issues=None, user_id="player_1"):
    return ShootingSession(
        id=f"session_{index}",
        user_id=user_id,
        timestamp=BASE_TIME + timedelta(days=index),
        form_score=score,
        detected_issues=list(issues or []),
    )


def _capabilities(tier=DeviceTier.MID, ml=True, ram=4096, cores=4, benchmark=60):
    return DeviceCapabilities(
        tier=tier,
        available_ram=ram,
        cpu_cores=cores,
        has_gpu=False,
        ml_framework_supported=ml,
        benchmark_score=benchmark,
    )


def _connectivity(connected=True, connection_type=ConnectionType.WIFI, metered=False):
    return ConnectivityStatus(
        is_connected=connected,
        connection_type=connection_type if connected else ConnectionType.NONE,
        is_metered=metered,
    )


def _config(tier=AnalysisTier.LIGHTWEIGHT_ML, capabilities=None, connected=True, cloud_consent=False):
    return ProcessingConfig(
        selected_tier=tier,
        device_capabilities=capabilities or _capabilities(),
        has_connectivity=connected,
        user_consent=UserConsent(cloud_processing=cloud_consent),
    )


@pytest.fixture
def make_issue():
    return _issue


@pytest.fixture
def make_result():
    return _result


@pytest.fixture
def make_session():
    return _session


@pytest.fixture
def make_capabilities():
    return _capabilities


@pytest.fixture
def make_connectivity():
    return _connectivity


@pytest.fixture
def make_config():
    return _config

"""
SHOTCOACH Analysis Service Router

Endpoints for device capability assessment, processing configuration and
shot video analysis. Uploaded videos, network probes and capability
benchmarks run on the analysis worker pool so the event loop never blocks.
"""

import logging
import os
import tempfile
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from core.config import settings
from core.threading import analysis_worker_pool
from shared.utils import success_response
from analysis_service.pipeline import cleanup_session_video, get_analysis_pipeline
from analysis_service.models.errors import AnalysisExhaustedError
from analysis_service.models.strategies import (
    estimate_processing_time,
    get_recommended_analysis_tier,
    is_ml_analysis_available,
)
from analysis_service.models.types import (
    AnalysisTier,
    ConnectionType,
    ConnectivityStatus,
    UserConsent,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============= Pydantic Models =============

class ConnectivityUpdateRequest(BaseModel):
    # Omit every field to re-probe the network
    is_connected: Optional[bool] = None
    connection_type: Optional[str] = None
    is_metered: bool = False


class ConsentUpdateRequest(BaseModel):
    cloud_processing: bool = False
    data_sharing: bool = False


# ============= REST Endpoints =============

@router.get("/capabilities")
async def get_capabilities(force_refresh: bool = False):
    """Device capabilities, from cache unless stale or a refresh is forced."""
    pipeline = get_analysis_pipeline()
    if force_refresh:
        config = await analysis_worker_pool.submit_async(pipeline.refresh_capabilities, force_refresh=True)
    else:
        config = pipeline.config

    capabilities = config.device_capabilities
    return success_response(
        data={
            "capabilities": capabilities.to_dict(),
            "ml_available": is_ml_analysis_available(config.selected_tier),
        },
        message="Device capabilities"
    )


@router.get("/config")
async def get_processing_config():
    """Current processing configuration."""
    return success_response(data=get_analysis_pipeline().config.to_dict())


@router.post("/config/connectivity")
async def update_connectivity(request: ConnectivityUpdateRequest):
    """Re-select the processing tier after a connectivity change."""
    pipeline = get_analysis_pipeline()

    if request.is_connected is None:
        config = await analysis_worker_pool.submit_async(pipeline.update_connectivity)
    else:
        try:
            connection_type = ConnectionType(
                request.connection_type
                or (ConnectionType.WIFI.value if request.is_connected else ConnectionType.NONE.value)
            )
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid connection type. Valid types: {[c.value for c in ConnectionType]}"
            )
        config = await analysis_worker_pool.submit_async(
            pipeline.update_connectivity,
            ConnectivityStatus(
                is_connected=request.is_connected,
                connection_type=connection_type,
                is_metered=request.is_metered,
            ),
        )

    return success_response(data=config.to_dict(), message="Connectivity updated")


@router.post("/config/consent")
async def update_consent(request: ConsentUpdateRequest):
    """Record the user's processing consent and re-select the tier."""
    # Re-selection probes the network
    config = await analysis_worker_pool.submit_async(
        get_analysis_pipeline().update_consent,
        UserConsent(
            cloud_processing=request.cloud_processing,
            data_sharing=request.data_sharing,
        ),
    )
    return success_response(data=config.to_dict(), message="Consent updated")


@router.post("/analyze")
async def analyze_shot(
    video: UploadFile = File(...),
    user_id: str = Form(...),
):
    """
    Analyse a recorded shot.

    The video is routed through the configured tier with fallback; the
    response carries the form analysis, coaching feedback and the stored
    session.
    """
    pipeline = get_analysis_pipeline()

    suffix = os.path.splitext(video.filename or "")[1] or ".mp4"
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False, dir=settings.UPLOAD_TEMP_DIR) as tmp:
        content = await video.read()
        tmp.write(content)
        tmp_path = tmp.name

    logger.info(f"🏀 Analysing shot for user {user_id} ({len(content)} bytes)")

    try:
        outcome = await analysis_worker_pool.submit_async(pipeline.analyze_video, user_id, tmp_path)
    except AnalysisExhaustedError as e:
        logger.error(f"❌ Analysis unavailable for user {user_id}: {e}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": "analysis unavailable",
                "attempted_tiers": e.attempted_tiers,
            }
        )
    finally:
        cleanup_session_video(tmp_path)

    return success_response(data=outcome.to_dict(), message="Analysis complete")


@router.get("/tiers/{tier}/estimate")
async def estimate_tier(tier: str, duration_ms: float = 3000):
    """Expected processing time for a tier and the tier it would really run as."""
    try:
        analysis_tier = AnalysisTier(tier)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid analysis tier. Valid tiers: {[t.value for t in AnalysisTier]}"
        )

    if duration_ms <= 0:
        raise HTTPException(status_code=400, detail="duration_ms must be positive")

    return success_response(data={
        "tier": analysis_tier.value,
        "recommended_tier": get_recommended_analysis_tier(analysis_tier).value,
        "ml_available": is_ml_analysis_available(analysis_tier),
        "estimated_ms": estimate_processing_time(analysis_tier, duration_ms),
    })

"""
SHOTCOACH Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Application
    APP_NAME: str = "SHOTCOACH"
    DEBUG: bool = True
    
    # Firebase
    FIREBASE_PROJECT_ID: str = "shotcoach-dev"
    FIREBASE_CREDENTIALS_PATH: str = "service-account.json"
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://10.0.2.2:8000"]
    
    # Thread Pool
    THREAD_POOL_SIZE: int = 4
    # A timed-out strategy keeps its worker until it returns, so the
    # strategy pool is sized to absorb a few hung pose runs
    STRATEGY_POOL_SIZE: int = 8
    
    # Device capability cache
    CAPABILITY_CACHE_MAX_AGE_DAYS: int = 7
    
    # Router budgets (soft, warning only)
    BASIC_TIER_BUDGET_MS: float = 2000.0
    ML_TIER_BUDGET_MS: float = 5000.0
    STRATEGY_TIMEOUT_SECONDS: Optional[float] = 60.0
    
    # Pose estimation
    POSE_MODEL_PATH: str = "ml_models/pose_landmarker_lite.task"
    POSE_SAMPLE_FPS: float = 10.0
    POSE_MIN_CONFIDENCE: float = 0.5
    
    # Minimum video quality for ML tiers
    ML_MIN_WIDTH: int = 640
    ML_MIN_HEIGHT: int = 480
    ML_MIN_FPS: float = 15.0
    ML_MIN_DURATION_MS: float = 1000.0
    ML_MAX_DURATION_MS: float = 10000.0
    
    # Connectivity probe
    CONNECTIVITY_CHECK_HOST: str = "8.8.8.8"
    CONNECTIVITY_CHECK_PORT: int = 53
    CONNECTIVITY_TIMEOUT_SECONDS: float = 2.0
    CONNECTION_TYPE: str = "wifi"  # wifi, cellular
    CONNECTION_METERED: bool = False
    
    # Default consent (host application may override at config init)
    CLOUD_PROCESSING_CONSENT: bool = False
    DATA_SHARING_CONSENT: bool = False
    
    # Uploads
    UPLOAD_TEMP_DIR: Optional[str] = None
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

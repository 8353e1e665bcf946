"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Job queue
    max_jobs: int = 100
    max_retries: int = 3
    inter_job_delay_seconds: float = 1.0
    retry_backoff_seconds: float = 0.0  # 0 disables backoff, retries re-queue immediately

    # Render service (headless model-viewer capture)
    render_service_url: str = "http://localhost:3001"
    render_angles: List[str] = ["front", "back", "left", "right", "isometric"]
    render_timeout_seconds: float = 120.0

    # Vision analysis
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    analysis_timeout_seconds: float = 90.0

    # Annotation overlay service
    annotator_url: Optional[str] = None
    annotator_timeout_seconds: float = 60.0
    image_fetch_timeout_seconds: float = 30.0

    # Report artifacts
    artifact_store_mode: str = "local"  # "local" or "supabase"
    report_dir: str = "/tmp/qa_reports"
    report_ttl_hours: int = 72
    public_base_url: str = "http://localhost:8000"
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    report_bucket: str = "qa-reports"

    # Spreadsheet publishing (Apps Script web app)
    sheets_web_app_url: Optional[str] = None
    publish_timeout_seconds: float = 30.0

    log_level: str = "INFO"
    port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

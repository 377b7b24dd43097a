"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="AlbumCraft Pro API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        # DEBUG 환경 변수가 명시적으로 설정되지 않은 경우에만 환경 모드에 따라 설정
        import os
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Database (빈 문자열이면 기본값 사용)
    database_url: str = Field(default="sqlite+aiosqlite:///./albumcraft.db")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return "sqlite+aiosqlite:///./albumcraft.db"
        return v

    # JWT
    jwt_secret_key: str = Field(default="jwt-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)

    # AWS S3 (네 값이 모두 있어야 S3 모드, 하나라도 없으면 Base64 fallback / 삭제 skip)
    aws_access_key_id: str = Field(default="")
    aws_secret_access_key: str = Field(default="")
    aws_region: str = Field(default="")
    aws_s3_bucket: str = Field(default="")
    aws_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3 호환 스토리지 엔드포인트 (비우면 AWS 기본 엔드포인트)",
    )
    s3_presigned_url_expire_seconds: int = Field(default=3600)
    # S3 DeleteObjects API는 요청당 최대 1000개
    delete_batch_size: int = Field(default=1000, ge=1, le=1000)

    @property
    def is_s3_configured(self) -> bool:
        """True only when all four S3 settings are present."""
        return bool(
            self.aws_access_key_id
            and self.aws_secret_access_key
            and self.aws_region
            and self.aws_s3_bucket
        )

    # Upload / image processing
    max_upload_size_bytes: int = Field(default=50 * 1024 * 1024)
    gallery_max_upload_size_bytes: int = Field(default=20 * 1024 * 1024)
    upload_concurrency: int = Field(default=4, ge=1)
    image_max_dimension: int = Field(default=2048)
    image_medium_dimension: int = Field(default=1200)
    image_thumbnail_dimension: int = Field(default=300)
    image_fallback_dimension: int = Field(default=1200)
    image_jpeg_quality: int = Field(default=85)
    image_fallback_quality: int = Field(default=80)
    image_webp_quality: int = Field(default=80)

    # Plan storage quota (bytes, 0 = unlimited)
    plan_quota_free_bytes: int = Field(default=1024 ** 3)
    plan_quota_pro_bytes: int = Field(default=50 * 1024 ** 3)
    plan_quota_enterprise_bytes: int = Field(default=0)

    # Read cache
    photo_cache_ttl_seconds: int = Field(default=60)
    photo_cache_max_entries: int = Field(default=1024, ge=1)

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=120)
    auth_rate_limit: str = Field(default="10/minute")

    # Logging. 비우면 파일 로그 비활성화
    log_dir: str = Field(default="/var/log/albumcraft")

    # 인스턴스 식별용 (로그·메트릭용)
    instance_ip: str = Field(default="", description="서버 사설 IP (비우면 hostname)")
    node_name: str = Field(default="", description="Node/Pod identifier for Prometheus labels")

    class Config:
        # 환경변수만 사용 (.env 파일 미사용)
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid reading the environment on every request.
    """
    return Settings()

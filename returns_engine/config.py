"""Application configuration using Pydantic Settings"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App
    app_name: str = "Returns Engine API"
    debug: bool = False

    # Database
    mongodb_url: str
    mongodb_db_name: str = "returns_engine"

    # Security
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days
    refund_callback_secret: Optional[str] = None

    # Stripe
    stripe_secret_key: str
    stripe_webhook_secret: str

    # Email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    email_from: Optional[str] = None
    email_notifications_enabled: bool = False

    # Media storage
    media_root: str = "./media"
    media_base_url: str = "/media"
    orphan_media_ttl_minutes: int = 60

    # Evidence limits
    max_image_bytes: int = 10 * 1024 * 1024  # 10MB
    max_video_bytes: int = 50 * 1024 * 1024  # 50MB
    max_video_seconds: float = 15.0
    max_return_images: int = 5
    max_return_videos: int = 1
    max_appeal_files: int = 5

    # Return policy
    appeal_window_days: int = 7
    max_item_reason_length: int = 500
    max_return_reason_length: int = 1000
    refund_shipping_on_full_return: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()

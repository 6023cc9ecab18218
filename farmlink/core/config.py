from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "FarmLink API"
    log_level: str = "INFO"

    jwt_secret: str = "dev"
    jwt_alg: str = "HS256"
    access_ttl_min: int = 60 * 24

    use_mongo: bool = False
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "farmlink"

    upload_dir: str = "uploads"
    max_upload_mb: int = 5

    cors_origins: List[str] = ["*"]

    geocoder_url: str = "https://nominatim.openstreetmap.org"
    admin_contact: str = "mailto:admin@example.com"

    # pricing applied at checkout
    transport_fee: float = 100.0
    platform_fee_rate: float = 0.02

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

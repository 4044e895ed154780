from pydantic_settings import BaseSettings
from typing import List
import os
import json


class Settings(BaseSettings):
    database_url: str
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    log_level: str = "INFO"
    environment: str = "local"
    api_prefix: str = "/api/v1"
    # CORS origins - can be JSON array or comma-separated string
    cors_origins: str = "*"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_schema: str = "public"

    # Cloudinary image hosting
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_api_base_url: str = "https://api.cloudinary.com/v1_1"
    cloudinary_upload_folder: str = "Bidding/Product"
    cloudinary_timeout: float = 30.0

    # Products
    slug_max_attempts: int = 5

    def get_cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        try:
            origins = json.loads(self.cors_origins)
        except (json.JSONDecodeError, ValueError):
            # Comma-separated
            origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]

        return origins if isinstance(origins, list) else [origins]

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith("postgresql")

    class Config:
        env_file = f"config/{os.getenv('ENV', 'local')}.env"
        case_sensitive = False


settings = Settings()

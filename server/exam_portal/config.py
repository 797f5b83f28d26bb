from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    app_name: str = "Exam Portal"
    debug: bool = True
    api_version: str = "v1"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Persisted storage (single namespaced key holding the JSON state blob)
    database_url: str = "sqlite:///./exam_portal.db"
    storage_key: str = "exam-app-storage"
    seed_demo_data: bool = True

    # Security
    password_hash_method: str = "scrypt"

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # REST client
    api_base_url: str = "http://localhost:8000"

    # Exams
    timer_tick_seconds: float = 1.0
    pass_percentage: float = 60.0

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()

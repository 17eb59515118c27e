from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_path: Path = Path.home() / "IntakeDesk"
    session_ttl_seconds: int = 8 * 60 * 60
    # Uploads are read fully into memory before being stored.
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB
    allowed_upload_types: list[str] = [
        "image/jpeg",
        "image/png",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]
    api_prefix: str = "/api/v1"
    # Prepended to stored file URLs; empty keeps them relative to the API host.
    public_base_url: str = ""
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def db_path(self) -> Path:
        return self.data_path / "db.sqlite"

    @property
    def uploads_dir(self) -> Path:
        return self.data_path / "uploads"

    model_config = {"env_prefix": "INTAKE_"}


settings = Settings()

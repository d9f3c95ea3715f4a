"""Application configuration loaded from environment variables."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///modelshift.sqlite"

    # Loader
    loader_config: Optional[str] = None
    upload_dir: str = "data/uploads"
    target_models: list[str] = []

    # Delimiters for association cells: "size:large|colour:red,green"
    multi_assoc_delim: str = "|"
    multi_value_delim: str = ","
    name_value_delim: str = ":"

    # Backend
    backend_host: str = "0.0.0.0"
    backend_port: int = 9200

    @property
    def project_root(self) -> Path:
        return Path(__file__).parent.parent.parent

    model_config = {"env_file": ".env", "env_prefix": "MODELSHIFT_", "extra": "ignore"}


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///ideaboard.db"
    encryption_key: str = "change-me-in-production"
    ollama_url: str = "http://host.docker.internal:11434"
    ollama_model: str = "llama3.1:8b"
    request_timeout: float | None = None
    seed_demo_project: bool = True
    log_level: str = "INFO"

    class Config:
        env_prefix = "IDEABOARD_"


settings = Settings()

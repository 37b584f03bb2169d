from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"
    completion_redirect: str = "/app/overview"

    # Upstream services
    progress_api_url: str = "http://localhost:5000"
    provisioning_api_url: str = "http://localhost:5000"
    staff_api_url: str = "http://localhost:5000"
    request_timeout_seconds: float = 15.0  # provisioning start is never timed out

    # Provisioning poll loop
    poll_interval_seconds: float = 3.0
    max_poll_cycles: int = 40

    # Tenant sessions idle this long are closed and their token forgotten
    session_idle_seconds: float = 1800.0

    # Auth / JWT
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'EduTrack Gradebook'
    app_env: str = 'local'
    database_url: str = 'sqlite:///./gradebook.db'
    auth_secret: str = 'change-me'
    auth_session_expiry_hours: int = 24 * 30
    auth_password_min_length: int = 8
    auth_password_iterations: int = 260000
    auth_owner_open_id: str = ''
    auth_enable_google_login: bool = False
    auth_google_client_id: str = ''
    auth_google_tokeninfo_url: str = 'https://oauth2.googleapis.com/tokeninfo'
    auth_google_timeout_seconds: float = 10.0
    auth_admin_email: str = ''
    auth_admin_password: str = ''
    auth_admin_name: str = 'Administrator'
    max_classes_per_teacher: int = 3
    default_alert_threshold: int = 60
    # 48 bytes encode to 64 URL-safe characters, the width of students.share_token.
    share_token_bytes: int = Field(default=16, ge=16, le=48)
    upload_max_bytes: int = 10 * 1024 * 1024
    storage_backend: str = 'local'
    storage_local_dir: str = 'uploads'
    storage_public_base_url: str = 'http://127.0.0.1:8000/files'
    storage_http_endpoint: str = ''
    storage_http_token: str = ''
    narrative_enabled: bool = False
    narrative_api_base: str = 'https://api.openai.com/v1'
    narrative_api_key: str = ''
    narrative_model: str = 'gpt-4o-mini'
    narrative_timeout_seconds: float = 30.0
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()

"""Configuration settings using Pydantic."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SMTPSettings(BaseSettings):
    """SMTP email configuration."""
    model_config = SettingsConfigDict(env_prefix="SMTP_")

    host: str = "smtp.gmail.com"
    port: int = 587
    username: str = ""
    password: str = ""
    sender_email: str = ""
    use_tls: bool = True


class ServerSettings(BaseSettings):
    """Bot WebSocket server configuration."""
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 8765
    health_port: int = 8080


class StorageSettings(BaseSettings):
    """Storage backend configuration."""
    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: str = "local"  # local, supabase
    data_path: str = "./data"
    upload_dir: str = "./uploads"


class SupabaseSettings(BaseSettings):
    """Supabase configuration."""
    model_config = SettingsConfigDict(env_prefix="SUPABASE_")

    url: str = ""
    key: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


class ApprovalSettings(BaseSettings):
    """Polling for company approval after the geo hand-off."""
    model_config = SettingsConfigDict(env_prefix="APPROVAL_")

    poll_attempts: int = 30
    poll_interval_seconds: float = 2.0


class CredentialSettings(BaseSettings):
    """Temporary password lengths."""
    model_config = SettingsConfigDict(env_prefix="CREDENTIALS_")

    team_password_length: int = 10
    company_password_length: int = 12


class AdminSettings(BaseSettings):
    """Organizer account. Admin sign-in is refused while the password is empty."""
    model_config = SettingsConfigDict(env_prefix="ADMIN_")

    username: str = "admin"
    password: str = ""


class LogSettings(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    approval: ApprovalSettings = Field(default_factory=ApprovalSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    log: LogSettings = Field(default_factory=LogSettings)

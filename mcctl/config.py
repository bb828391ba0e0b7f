"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class MCCtlSettings(BaseSettings):
    # Managed server process
    workdir: Path = Path("minecraft_server")
    java_command: str = "java"
    java_args: list[str] = ["-jar", "server.jar", "nogui"]
    stop_command: str = "stop\n"
    shutdown_grace_seconds: float = 30.0

    # HTTP control API
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Vendor APIs
    paper_api_url: str = "https://api.papermc.io"
    fabric_meta_url: str = "https://meta.fabricmc.net"
    http_timeout: float | None = None  # no timeout unless configured

    # Observability
    audit_db_path: Path | None = None  # in-memory audit only when unset
    event_history_limit: int = 500

    model_config = {"env_prefix": "MCCTL_"}


settings = MCCtlSettings()

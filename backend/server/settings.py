"""Process settings via environment variables.

Everything about what is served lives in the configuration file at
``config_path``; these settings only locate it and tune the process.
"""

from pathlib import Path

from pydantic_settings import BaseSettings


class ServerSettings(BaseSettings):
    model_config = {"env_prefix": "TIDDLYSERVER_"}

    config_path: Path = Path("settings.yaml")
    log_dir: str | None = None
    # Secure flag on the auth cookie: True behind HTTPS, False for local HTTP
    cookie_secure: bool = False

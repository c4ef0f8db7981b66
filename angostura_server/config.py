"""Runtime configuration from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Settings for the client and the servers."""

    api_url: str = Field(default="http://localhost:3001", description="Base URL of the REST API")
    state_file: Optional[str] = Field(None, description="Where cart and session are persisted")
    phone: Optional[str] = Field(None, description="Default phone number for code login")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from ANGOSTURA_* environment variables."""
        values = {
            "api_url": os.environ.get("ANGOSTURA_API_URL"),
            "state_file": os.environ.get("ANGOSTURA_STATE_FILE"),
            "phone": os.environ.get("ANGOSTURA_PHONE"),
            "timeout": os.environ.get("ANGOSTURA_TIMEOUT"),
            "log_level": os.environ.get("ANGOSTURA_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in values.items() if v})

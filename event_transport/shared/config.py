"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.
Where it fits: Both the server (stream factory, polling endpoints) and the CLI read from here.

WHAT IS HAPPENING HERE:
Every transport timing and the fallback policy live in one place. A deployment on shared
hosting that buffers responses flips `SSE_SUPPORTED=false` and `DEFAULT_MODE=short` in the
environment; no route or engine has to change.
"""
import tempfile

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from event_transport.shared.models import TransportMode


class TransportConfig(BaseModel):
    """The process-wide resolution policy handed to the stream factory."""

    # Plain strings, not TransportMode: an unknown mode must be representable so it can fall through.
    default_mode: str = TransportMode.SSE.value
    auto_fallback_enabled: bool = True
    fallback_order: list[str] = [TransportMode.SHORT.value, TransportMode.NOSTREAM.value]


class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Transport negotiation
    DEFAULT_MODE: str = "sse"
    AUTO_FALLBACK: bool = True
    FALLBACK_ORDER: list[str] = ["short", "nostream"]

    # SSE
    SSE_SUPPORTED: bool = True
    SSE_PING_INTERVAL_S: float = 15.0
    SSE_PADDING_EVERY: int = 0
    SSE_PADDING_BYTES: int = 2048

    # Queue store (short + long polling)
    QUEUE_BACKEND: str = "file"
    QUEUE_DIR: str = tempfile.gettempdir()

    # Short Polling
    SHORT_POLL_INTERVAL_MS: int = 120

    # Long Polling
    LONG_POLL_TIMEOUT_S: float = 20.0
    LONG_POLL_SLEEP_S: float = 0.05

    # POST-SSE bridge
    HANDOFF_TTL_S: float = 300.0

    # Demo producer
    DEMO_TOKEN_DELAY_S: float = 0.05

    class Config:
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            default_mode=self.DEFAULT_MODE,
            auto_fallback_enabled=self.AUTO_FALLBACK,
            fallback_order=list(self.FALLBACK_ORDER),
        )


settings = Settings()

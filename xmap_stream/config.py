import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from xmap_stream.codec import MAX_COLLECTION_LEN
from xmap_stream.framing import MAX_FRAME_LENGTH

ENV_PREFIX = "XMAP_STREAM_"


class Settings(BaseModel):
    api_url: str = Field(
        default="http://localhost:8080/api/match",
        description="Matching service endpoint accepting the multipart upload"
    )

    # Timeout parameters (seconds)
    connect_timeout: float = Field(default=10.0, description="Connection timeout")
    read_timeout: Optional[float] = Field(
        default=None,
        description="Timeout between body chunks (None waits as long as the server does)"
    )

    # Stream parameters
    chunk_size: int = Field(default=64 * 1024, description="Bytes requested per body read")
    max_frame_length: int = Field(
        default=MAX_FRAME_LENGTH,
        description="Largest accepted frame payload; larger prefixes abort the stream"
    )
    max_collection_len: int = Field(
        default=MAX_COLLECTION_LEN,
        description="Largest file_indices / records count accepted in one match"
    )

    log_dir: Optional[str] = Field(default=None, description="Directory for log files")

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid api_url: {v}. Must start with http:// or https://")
        return v.rstrip("/")

    @field_validator('chunk_size', 'max_frame_length', 'max_collection_len')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Must be a positive integer, got {v}")
        return v

    @field_validator('connect_timeout', 'read_timeout')
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator('log_dir')
    @classmethod
    def validate_log_dir(cls, v: Optional[str]) -> Optional[str]:
        return os.path.expanduser(v) if v else v

    @property
    def timeout(self) -> tuple[float, Optional[float]]:
        """(connect, read) tuple in the form requests expects."""
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Create settings from XMAP_STREAM_* environment variables.

        Explicit keyword overrides win over the environment; None values
        are ignored so CLI options left unset fall through.
        """
        values = {}
        for name in cls.model_fields:
            env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if env_value is not None and env_value != "":
                values[name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

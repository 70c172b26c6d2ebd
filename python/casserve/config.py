"""
casserve server configuration.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Optional

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class StoreConfig:
    """casserve server configuration."""

    # Storage root holding content/, refs/ and tmp/
    root: str = "./data"

    # Service parameters
    host: str = "0.0.0.0"
    port: int = 8080

    # Landing page served at GET / (None = bundled page)
    index_path: Optional[str] = None

    # Reject uploads whose bytes do not hash to the content key
    verify_digests: bool = True

    # Read size when streaming content back out
    chunk_size: int = 64 * 1024

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "info"

    @classmethod
    def from_yaml(cls, path: str) -> "StoreConfig":
        """Load configuration from a YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_env(cls, base: Optional["StoreConfig"] = None) -> "StoreConfig":
        """
        Overlay environment variables on ``base`` (or the defaults).

        PORT, CASSERVE_ROOT, CASSERVE_HOST, CASSERVE_INDEX,
        CASSERVE_VERIFY_DIGESTS, CASSERVE_LOG_LEVEL
        """
        cfg = base or cls()
        env = os.environ
        if "PORT" in env:
            cfg.port = int(env["PORT"])
        if "CASSERVE_ROOT" in env:
            cfg.root = env["CASSERVE_ROOT"]
        if "CASSERVE_HOST" in env:
            cfg.host = env["CASSERVE_HOST"]
        if "CASSERVE_INDEX" in env:
            cfg.index_path = env["CASSERVE_INDEX"]
        if "CASSERVE_VERIFY_DIGESTS" in env:
            cfg.verify_digests = env["CASSERVE_VERIFY_DIGESTS"].lower() not in ("0", "false", "no", "off")
        if "CASSERVE_LOG_LEVEL" in env:
            cfg.log_level = env["CASSERVE_LOG_LEVEL"].lower()
        return cfg

    def validate(self) -> None:
        """Validate configuration."""
        if not self.root:
            raise ValueError("root is required")
        for name in ("port", "chunk_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.port < 1 or self.port > 65535:
            raise ValueError("port must be between 1 and 65535")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if self.index_path is not None and not os.path.isfile(self.index_path):
            raise FileNotFoundError(f"Index file not found: {self.index_path}")

"""
Session configuration.

Defaults can be overridden through environment variables (also read from a
.env file when present):
    COLORPIE_MAX_QUESTIONS: stopping bound (int > 0)
    COLORPIE_TEMPERATURE: softmax temperature (float > 0)
    COLORPIE_SHRINKAGE_FACTOR: per-step pull toward uniform (float in [0, 1))
"""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

ENV_PREFIX = "COLORPIE_"


@dataclass(frozen=True)
class SessionConfig:
    """Options recognised by the session driver."""
    max_questions: int = 12
    temperature: float = 0.5
    shrinkage_factor: float = 0.05

    def __post_init__(self):
        if isinstance(self.max_questions, bool) or not isinstance(self.max_questions, int):
            raise ConfigurationError(
                f"max_questions must be an int, got {self.max_questions!r}"
            )
        if self.max_questions <= 0:
            raise ConfigurationError(f"max_questions must be > 0, got {self.max_questions}")
        if not math.isfinite(self.temperature) or self.temperature <= 0.0:
            raise ConfigurationError(f"temperature must be > 0, got {self.temperature}")
        if not 0.0 <= self.shrinkage_factor < 1.0:
            raise ConfigurationError(
                f"shrinkage_factor must be in [0, 1), got {self.shrinkage_factor}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "SessionConfig":
        """Build a config from COLORPIE_* variables, falling back to defaults."""
        if environ is None:
            _load_dotenv()
            environ = dict(os.environ)
        overrides: Dict[str, Any] = {}
        parsers = {
            "max_questions": int,
            "temperature": float,
            "shrinkage_factor": float,
        }
        for name, parse in parsers.items():
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or not raw.strip():
                continue
            try:
                overrides[name] = parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"{ENV_PREFIX + name.upper()}={raw!r} is not a valid {parse.__name__}"
                ) from e
        return cls(**overrides)

    def with_overrides(self, **overrides: Any) -> "SessionConfig":
        """Copy with the non-None overrides applied (re-validated)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _load_dotenv() -> None:
    """Load .env file into os.environ (only vars not already set)."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, value = line.split("=", 1)
            key, value = key.strip(), value.strip()
            if key.startswith(ENV_PREFIX) and key not in os.environ:
                os.environ[key] = value

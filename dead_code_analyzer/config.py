"""Configuration management for the Dead Code Analyzer.

Loads environment variables (optionally from a .env file) and provides the
per-run AnalysisConfig consumed by the engine.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

__version__ = "1.2.0"

# Directories never walked when looking for Dart sources
DEFAULT_EXCLUDED_DIRS = frozenset({
    '.dart_tool', 'build', '.idea', '.vscode', 'test', '.fvm', '.git',
    '.dead_code_trash',
})

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


class RedeclarationPolicy(str, Enum):
    """What happens when two files declare the same live name."""

    LAST_WINS = "last_wins"
    COEXIST = "coexist"


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_file: Optional[Path] = None):
        """Initialize config by loading a .env file.

        Args:
            env_file: Explicit .env path. Defaults to ./.env in the working directory.
        """
        env_path = env_file if env_file is not None else Path.cwd() / ".env"
        load_dotenv(env_path)

    @staticmethod
    def _bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} must be a boolean, got {raw!r}")

    @property
    def include_functions(self) -> bool:
        """Whether function/constructor analysis is enabled by default."""
        return self._bool("DEAD_CODE_INCLUDE_FUNCTIONS", False)

    @property
    def trace(self) -> bool:
        """Whether trace diagnostics are enabled by default."""
        return self._bool("DEAD_CODE_TRACE", False)

    @property
    def max_workers(self) -> int:
        """Get worker count for the scanning phases.

        Returns:
            Positive worker count (DEAD_CODE_MAX_WORKERS or min(8, cpu count))

        Raises:
            ValueError: If the variable is not a positive integer
        """
        raw = os.getenv("DEAD_CODE_MAX_WORKERS")
        if raw is None:
            return min(8, os.cpu_count() or 1)
        try:
            workers = int(raw)
        except ValueError:
            raise ValueError(f"DEAD_CODE_MAX_WORKERS must be an integer, got {raw!r}") from None
        if workers < 1:
            raise ValueError(f"DEAD_CODE_MAX_WORKERS must be >= 1, got {workers}")
        return workers

    @property
    def redeclaration_policy(self) -> RedeclarationPolicy:
        """Get the duplicate-name policy (last_wins or coexist)."""
        raw = os.getenv("DEAD_CODE_REDECLARATION", RedeclarationPolicy.LAST_WINS.value)
        try:
            return RedeclarationPolicy(raw.strip().lower())
        except ValueError:
            raise ValueError(
                f"DEAD_CODE_REDECLARATION must be one of "
                f"{', '.join(p.value for p in RedeclarationPolicy)}, got {raw!r}"
            ) from None

    @property
    def trash_path(self) -> str:
        """Get trash directory path.

        Returns:
            Path to .dead_code_trash directory
        """
        return os.getenv("DEAD_CODE_TRASH_PATH", ".dead_code_trash")

    @property
    def excluded_dirs(self) -> FrozenSet[str]:
        """Built-in excluded directories plus DEAD_CODE_EXCLUDED_DIRS entries."""
        extra = os.getenv("DEAD_CODE_EXCLUDED_DIRS", "")
        names = {part.strip() for part in extra.split(",") if part.strip()}
        return DEFAULT_EXCLUDED_DIRS | names


@dataclass
class AnalysisConfig:
    """Inputs for one analysis run."""

    project_path: Path
    include_functions: bool = False
    trace: bool = False
    redeclaration_policy: RedeclarationPolicy = RedeclarationPolicy.LAST_WINS
    max_workers: int = 1
    excluded_dirs: FrozenSet[str] = field(default_factory=lambda: DEFAULT_EXCLUDED_DIRS)
    max_unused_entities: int = 10

    @classmethod
    def from_config(cls, project_path: Path, config: Optional[Config] = None, **overrides) -> "AnalysisConfig":
        """Build a run config from environment defaults, then apply explicit overrides.

        Overrides whose value is None are ignored so CLI flags left unset fall
        back to the environment.
        """
        config = config or get_config()
        values = {
            'include_functions': config.include_functions,
            'trace': config.trace,
            'redeclaration_policy': config.redeclaration_policy,
            'max_workers': config.max_workers,
            'excluded_dirs': config.excluded_dirs,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(project_path=Path(project_path), **values)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config

"""Tracker configuration model.

Captures prompt_tracker.yaml fields with sensible defaults for
provider selection, function-call resolution, transport retries,
redaction and storage location. Config objects are passed explicitly
to the components that need them; there is no global instance.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

CONFIG_FILENAME = "prompt_tracker.yaml"


class FunctionCallConfig(BaseModel):
    """Limits for the tool-call resolution loop."""

    model_config = {"extra": "forbid"}

    max_iterations: int = Field(default=10, ge=1)
    tool_timeout_seconds: float | None = Field(default=None, gt=0)


class TransportConfig(BaseModel):
    """Retry and timeout settings applied by provider adapters."""

    model_config = {"extra": "forbid"}

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    request_timeout: float | None = Field(default=None, gt=0)


class RedactionConfig(BaseModel):
    """Controls how request details are summarized in errors and logs.

    custom_patterns extend the built-in secret patterns.
    """

    model_config = {"extra": "forbid"}

    max_prompt_chars: int = Field(default=500, ge=0)
    custom_patterns: list[str] = Field(default_factory=list)


class TrackerConfig(BaseModel):
    """Top-level configuration loaded from prompt_tracker.yaml."""

    model_config = {"extra": "forbid"}

    default_provider: str = "openai"
    default_api: str = "chat_completions"
    default_model: str = "gpt-4o"
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    storage_dir: str = ".prompt_tracker"
    function_calls: FunctionCallConfig = Field(default_factory=FunctionCallConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    redaction: RedactionConfig = Field(default_factory=RedactionConfig)


def find_config_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for prompt_tracker.yaml.

    Returns:
        The directory containing prompt_tracker.yaml, or cwd if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return Path.cwd()


def load_tracker_config(root: Path | None = None) -> TrackerConfig:
    """Load TrackerConfig from prompt_tracker.yaml. Returns defaults if not found.

    Args:
        root: Directory holding the config file. If None,
            uses find_config_root() to locate it.

    Returns:
        Validated TrackerConfig instance.
    """
    if root is None:
        root = find_config_root()
    config_path = root / CONFIG_FILENAME
    if not config_path.exists():
        return TrackerConfig()
    import yaml

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        return TrackerConfig()
    return TrackerConfig.model_validate(raw)

"""Configuration loading from TOML."""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any

from .defaults import DEFAULT_CONFIG_TOML, config_dir


def expand_env_var(value: Optional[str]) -> Optional[str]:
    """Resolve ``env:NAME`` values from the environment.

    Unset variables leave the value untouched so validation can report it.
    """
    if isinstance(value, str) and value.startswith("env:"):
        return os.environ.get(value[4:], value)
    return value


@dataclass
class Config:
    """Configuration dataclass with validation.

    Loads from ~/.config/drivetime/config.toml, falling back to the
    built-in defaults when the file does not exist.
    """

    # Server settings
    host: str
    port: int
    user_id: str

    # LLM settings
    llm_provider: str
    llm_model: str
    llm_vision_model: str
    llm_api_key: Optional[str]

    # Audio settings
    audio_model: str
    audio_voice: str

    # Optional fields with defaults must come last
    public_url: Optional[str] = None  # Base URL for the chat widget
    llm_api_base: Optional[str] = None  # For Ollama and custom endpoints
    db_path: Optional[Path] = None

    def llm_settings(self) -> Dict[str, Any]:
        """LLM settings as the dict ContentEnricher expects."""
        settings = {
            "provider": self.llm_provider,
            "model": self.llm_model,
            "vision_model": self.llm_vision_model,
        }
        # An unresolved env: reference means no key; let litellm read its own env
        if self.llm_api_key and not self.llm_api_key.startswith("env:"):
            settings["api_key"] = self.llm_api_key
        if self.llm_api_base:
            settings["api_base"] = self.llm_api_base
        return settings

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration values are invalid.
        """
        if not self.llm_model:
            raise ValueError("Model must be specified in [llm] section")

        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")

        if not self.user_id:
            raise ValueError("user_id must not be empty")

        if self.llm_provider.lower() == "ollama" and not self.llm_api_base:
            raise ValueError(
                "Ollama provider requires 'api_base' in config (e.g., 'http://localhost:11434')"
            )

    @classmethod
    def from_file(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from TOML file.

        Args:
            config_path: Optional path to config file.
                        Defaults to $XDG_CONFIG_HOME/drivetime/config.toml

        Returns:
            Validated Config instance
        """
        if config_path is None:
            config_path = config_dir() / "config.toml"

        try:
            if config_path.exists():
                with open(config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            else:
                config_dict = tomllib.loads(DEFAULT_CONFIG_TOML)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Failed to parse config file {config_path}: {e}")

        server = config_dict.get("server", {})
        llm = config_dict.get("llm", {})
        audio = config_dict.get("audio", {})
        database = config_dict.get("database", {})

        db_path = database.get("path")

        try:
            config = cls(
                host=server.get("host", "127.0.0.1"),
                port=int(server.get("port", 8000)),
                user_id=server.get("user_id", "demo-user"),
                public_url=server.get("public_url"),
                llm_provider=llm.get("provider", "openai"),
                llm_model=llm["model"],
                llm_vision_model=llm.get("vision_model", llm["model"]),
                llm_api_key=expand_env_var(llm.get("api_key", "env:OPENAI_API_KEY")),
                llm_api_base=llm.get("api_base"),
                audio_model=audio.get("model", "openai/tts-1"),
                audio_voice=audio.get("voice", "nova"),
                db_path=Path(db_path).expanduser() if db_path else None,
            )
        except KeyError as e:
            raise ValueError(f"Missing required config field: {e}")

        config.validate()

        return config

"""Default configuration file for DriveTime."""

import os
from pathlib import Path


DEFAULT_CONFIG_TOML = """# DriveTime Configuration

[server]
host = "127.0.0.1"  # 0.0.0.0 to accept captures from other devices
port = 8000
user_id = "demo-user"  # single-user install; all artifacts belong to this id
# public_url = "https://drivetime.example.com"  # base URL the chat widget calls back to

[llm]
provider = "openai"
model = "gpt-4o-mini"  # summaries and audio expansions
vision_model = "gpt-4o"  # screenshot extraction
api_key = "env:OPENAI_API_KEY"

# Ollama (local models) - replace above config with:
# provider = "ollama"
# model = "ollama/llama3"
# vision_model = "ollama/llava"
# api_base = "http://localhost:11434"

[audio]
model = "openai/tts-1"
voice = "nova"

[database]
# path = "/path/to/drivetime.db"  # defaults to $XDG_DATA_HOME/drivetime/drivetime.db
"""


def config_dir() -> Path:
    """Return $XDG_CONFIG_HOME/drivetime (or ~/.config/drivetime)."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "drivetime"


def ensure_config() -> Path:
    """Write the default config.toml if none exists.

    Returns:
        Path to the config file
    """
    config_path = config_dir() / "config.toml"
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(DEFAULT_CONFIG_TOML)
    return config_path

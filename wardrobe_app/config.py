"""Configuration helpers for the wardrobe assistant."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
ASSISTANT_BACKENDS = ("gemini", "openai", "mock")


@dataclass
class WardrobeConfig:
    """Configuration values for the wardrobe assistant.

    Storage paths are kept relative to ``storage_dir`` so a single directory
    holds both the image blobs and the metadata record file.
    """

    storage_dir: str = "data/wardrobe"
    images_dirname: str = "images"
    metadata_filename: str = "wardrobe.json"
    assistant_backend: str = "gemini"
    model: str = DEFAULT_GEMINI_MODEL
    api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    assistant_timeout_seconds: float = 30.0
    system_prompt: Optional[str] = None
    environment: str | None = None

    @property
    def images_dir(self) -> Path:
        return Path(self.storage_dir) / self.images_dirname

    @property
    def metadata_path(self) -> Path:
        return Path(self.storage_dir) / self.metadata_filename

    @classmethod
    def from_env(cls) -> "WardrobeConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that API keys can be
        injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("WARDROBE_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        backend = str(get_value("assistant_backend", "gemini") or "gemini").lower()
        if backend not in ASSISTANT_BACKENDS:
            raise ValueError(f"Unknown assistant_backend {backend!r}; expected one of {ASSISTANT_BACKENDS}")
        default_model = DEFAULT_OPENAI_MODEL if backend == "openai" else DEFAULT_GEMINI_MODEL
        timeout = get_value("assistant_timeout_seconds", "30")

        return cls(
            storage_dir=str(get_value("storage_dir", "data/wardrobe") or "data/wardrobe"),
            images_dirname=str(get_value("images_dirname", "images") or "images"),
            metadata_filename=str(get_value("metadata_filename", "wardrobe.json") or "wardrobe.json"),
            assistant_backend=backend,
            model=str(get_value("model", default_model) or default_model),
            api_key=get_value("google_api_key"),
            openai_api_key=get_value("openai_api_key"),
            openai_base_url=str(get_value("openai_base_url", DEFAULT_OPENAI_BASE_URL) or DEFAULT_OPENAI_BASE_URL),
            assistant_timeout_seconds=float(timeout or 30),
            system_prompt=get_value("system_prompt"),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config

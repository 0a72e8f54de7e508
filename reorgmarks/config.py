from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

PROVIDER_DEFAULTS = {
    "openai": {"model": "gpt-4o-mini", "base_url": None},
    "deepseek": {"model": "deepseek-chat", "base_url": "https://api.deepseek.com/v1"},
}


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_str_first(names: tuple[str, ...], default: str) -> str:
    for name in names:
        v = os.getenv(name)
        if v is None or v == "":
            continue
        return v
    return default


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    api_key: str
    model: str
    base_url: Optional[str]
    timeout_s: float
    temperature: float
    max_retries: int
    retry_delay_s: float


@dataclass
class Settings:
    # Provider
    api_key: str = ""
    provider: str = "openai"  # openai | deepseek
    model: str = ""  # empty => provider default
    base_url: str = ""  # empty => provider default
    timeout_s: int = 120
    temperature: float = 0.3

    # Classification
    batch_size: int = 50
    max_retries: int = 3
    retry_delay_s: float = 1.0
    batch_delay_s: float = 1.0
    custom_prompt: str = ""

    # Grouping (0 => keep suggested folders as top level)
    max_folders: int = 0
    custom_folder_prompt: str = ""

    # Files
    data_dir: str = "data"
    output_dir: str = "output"

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        # REORG_ variant wins; the generic names are accepted for convenience.
        s.api_key = _env_str_first(("REORG_API_KEY", "AI_API_KEY", "OPENAI_API_KEY"), s.api_key)
        s.provider = _env_str("REORG_PROVIDER", s.provider)
        s.model = _env_str("REORG_MODEL", s.model)
        s.base_url = _env_str("REORG_BASE_URL", s.base_url)
        s.timeout_s = _env_int("REORG_TIMEOUT_S", s.timeout_s)

        s.batch_size = _env_int("REORG_BATCH_SIZE", s.batch_size)
        s.max_retries = _env_int("REORG_MAX_RETRIES", s.max_retries)
        s.retry_delay_s = _env_float("REORG_RETRY_DELAY_S", s.retry_delay_s)
        s.batch_delay_s = _env_float("REORG_BATCH_DELAY_S", s.batch_delay_s)
        s.custom_prompt = _env_str("REORG_CUSTOM_PROMPT", s.custom_prompt)

        s.max_folders = _env_int("REORG_MAX_FOLDERS", s.max_folders)
        s.custom_folder_prompt = _env_str("REORG_CUSTOM_FOLDER_PROMPT", s.custom_folder_prompt)

        s.data_dir = _env_str("REORG_DATA_DIR", s.data_dir)
        s.output_dir = _env_str("REORG_OUTPUT_DIR", s.output_dir)

        s.log_level = _env_str("REORG_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("REORG_NO_COLOR", s.no_color)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        s = Settings.from_env()
        for k, v in data.items():
            if hasattr(s, k):
                setattr(s, k, v)
        return s

    def provider_config(self) -> ProviderConfig:
        name = (self.provider or "openai").strip().lower()
        if name not in PROVIDER_DEFAULTS:
            raise ValueError(f"Unknown provider {self.provider!r} (expected one of: {', '.join(PROVIDER_DEFAULTS)})")
        defaults = PROVIDER_DEFAULTS[name]
        return ProviderConfig(
            name=name,
            api_key=self.api_key,
            model=self.model or defaults["model"],
            base_url=self.base_url or defaults["base_url"],
            timeout_s=float(self.timeout_s),
            temperature=float(self.temperature),
            max_retries=max(0, int(self.max_retries)),
            retry_delay_s=max(0.0, float(self.retry_delay_s)),
        )


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path))
    return Settings.from_env()

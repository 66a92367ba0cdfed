"""Configuration management for httpxfer."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, validator

from .__version__ import __version__

ENV_PREFIX = "HTTPXFER_"
DEFAULT_CONFIG_PATH = Path.home() / ".httpxfer" / "httpxfer.yaml"


def _default_headers() -> Dict[str, str]:
    return {"User-Agent": f"httpxfer/{__version__}"}


class HttpConfig(BaseModel):
    """HTTP client configuration."""
    
    timeout_connect_s: float = 10
    timeout_read_s: float = 60
    insecure_skip_verify: bool = False
    cert_file: str = ""
    enable_http3: bool = False
    max_redirects: int = 10
    headers: Dict[str, str] = Field(default_factory=_default_headers)
    
    @validator('headers', pre=True)
    def set_default_headers(cls, v):
        if not v:
            return _default_headers()
        return v
    
    @validator('max_redirects')
    def check_max_redirects(cls, v):
        if v < 0:
            raise ValueError("max_redirects must be >= 0")
        return v


class DownloaderConfig(BaseModel):
    """Downloader configuration."""
    
    chunk_size_kb: int = 64
    force: bool = False
    
    @property
    def chunk_size(self) -> int:
        return self.chunk_size_kb * 1024


class LoggingConfig(BaseModel):
    """Logging configuration."""
    
    level: str = "INFO"
    file: Optional[str] = None


class Config(BaseModel):
    """Main configuration."""
    
    http: HttpConfig = Field(default_factory=HttpConfig)
    downloader: DownloaderConfig = Field(default_factory=DownloaderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _env_overrides() -> Dict[str, str]:
    """Collect ``HTTPXFER_*`` variables that map onto :class:`HttpConfig` fields."""
    overrides = {}
    for name in HttpConfig.model_fields:
        if name == 'headers':
            continue
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file or create default.
    
    ``HTTPXFER_*`` environment variables (a ``.env`` file in the working
    directory is honoured) override the ``http`` section.
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    
    if config_path.exists():
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}
    
    load_dotenv(find_dotenv(usecwd=True))
    overrides = _env_overrides()
    if overrides:
        http_data = dict(data.get('http') or {})
        http_data.update(overrides)
        data['http'] = http_data
    
    return Config(**data)


def save_config(config: Config, config_path: Optional[str] = None) -> None:
    """Save configuration to file."""
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    
    data = config.model_dump(exclude_none=True)
    
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEALSCOUT_"

@dataclass
class PipelineConfig:
    """Configuration shared by every pipeline stage"""
    user_agent: str = "Mozilla/5.0 (compatible; DealScoutBot/0.2; +https://example.com/bot) honors robots.txt"
    robots_timeout: int = 5
    page_timeout: int = 15
    max_workers: int = 4
    delay_between_requests: float = 0.5  # per host, after each request
    max_links_per_site: int = 25
    max_blocks_per_page: int = 200
    max_rows_per_site: int = 5  # homepage pass keeps it light per site
    homepage_cap: int = 5
    discovered_cap: int = 6
    snippet_length: int = 240
    city: str = "Charlotte"
    region: str = "NC"
    data_dir: str = "data"
    dataset_path: str = "public/data/deals.json"
    verbose_logging: bool = False

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.homepage_cap < 1 or self.discovered_cap < 1:
            raise ValueError("per-venue caps must be at least 1")

    def data_path(self, name: str) -> Path:
        """Path of an intermediate artifact inside data_dir"""
        return Path(self.data_dir) / name

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from defaults, DEALSCOUT_* environment variables (a .env
        file is loaded first) and explicit keyword overrides, in that order.
        """
        load_dotenv()
        values = {}
        for field in fields(cls):
            raw = os.getenv(ENV_PREFIX + field.name.upper())
            if raw is None:
                continue
            try:
                values[field.name] = _coerce(raw, field.type)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{field.name.upper()}={raw!r}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

def _coerce(raw: str, kind):
    kind_name = kind if isinstance(kind, str) else getattr(kind, '__name__', str(kind))
    if kind_name == 'bool':
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if kind_name == 'int':
        return int(raw)
    if kind_name == 'float':
        return float(raw)
    return raw

"""Site configuration (_config.yaml) model and parser."""

from __future__ import annotations

import yaml
from pydantic import BaseModel, ConfigDict, Field


class SiteConfig(BaseModel):
    """サイト設定（_config.yaml）"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = ""
    allowed_extensions: list[str] = Field(default_factory=list)

    def allows(self, extension: str) -> bool:
        return extension.lower().lstrip(".") in {
            e.lower().lstrip(".") for e in self.allowed_extensions
        }


def parse_site_config(src: str) -> SiteConfig:
    """Parse _config.yaml contents. An empty file yields the defaults."""
    data = yaml.safe_load(src)
    if data is None:
        return SiteConfig()
    if not isinstance(data, dict):
        raise ValueError("site config must be a mapping")
    return SiteConfig.model_validate(data)

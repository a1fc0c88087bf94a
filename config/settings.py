"""Configuration management using pydantic-settings."""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream hosts
    udot_base_url: str = "https://www.udottraffic.utah.gov"
    mdt_atms_base_url: str = "https://app.mdt.mt.gov"
    mdt_rwis_xml_url: str = "https://ftp.mdt.mt.gov/travinfo/weather/rwis.xml"

    # Per-call timeouts (seconds)
    manifest_timeout_seconds: float = 10.0
    names_timeout_seconds: float = 8.0
    resolve_timeout_seconds: float = 8.0
    image_timeout_seconds: float = 15.0

    # Camera manifest tiers
    manifest_fresh_ttl_seconds: int = 600
    manifest_stale_ttl_seconds: int = 3600

    # Zero-item manifests are retried with doubling backoff; 0 disables
    manifest_empty_retries: int = 3
    manifest_retry_backoff_seconds: float = 0.5

    # Camera name aggregation
    names_fresh_ttl_seconds: int = 300
    names_stale_ttl_seconds: int = 3600
    names_list_count: int = 20
    names_max_workers: int = 12

    # Dynamic media URLs rotate upstream roughly every minute
    media_url_ttl_seconds: int = 60

    # Snapshot images (12 hours)
    image_fresh_ttl_seconds: int = 43200

    # RWIS marker manifest
    rwis_fresh_ttl_seconds: int = 600
    rwis_stale_ttl_seconds: int = 3600

    max_redirects: int = 5

    # Extra hostnames the SSRF guard refuses, on top of the built-in list
    ssrf_blocked_hosts: List[str] = []

    # Echo the first bytes of a challenge page in 503 bodies (logs always get it)
    expose_challenge_preview: bool = False

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

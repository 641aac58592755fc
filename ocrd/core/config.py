from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

_MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    # OCR provider: mock | paddleocr
    ocr_provider: str = "mock"
    paddle_use_gpu: bool = False

    # Egress: trusted image hosts are fetched directly, everything else via the proxy
    trusted_domains: list[str] = [
        "i.redd.it",
        "i.imgur.com",
        "pbs.twimg.com",
        "media.tenor.com",
        "cdn.discordapp.com",
        "media.discordapp.net",
        "raw.githubusercontent.com",
        "images-ext-1.discordapp.net",
        "images-ext-2.discordapp.net",
    ]
    proxy_url: str | None = "socks5://127.1.1.1:9999"
    connect_timeout: float = 2.0
    read_timeout: float = 60.0
    pool_idle_timeout: float = 60.0
    max_connections: int = 100
    max_redirects: int = 20
    max_decompression_ratio: int = 10
    fetch_attempts: int = 2

    # Request limits
    max_body_bytes: int = 24 * _MIB
    max_batch_body_bytes: int = 128 * _MIB
    # 0 disables the per-batch bound
    batch_max_concurrency: int = 8


settings = Settings()

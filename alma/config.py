from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Empty database_url means the database is unconfigured (requests get 503)
    database_url: str = ""
    database_url_sync: str = ""
    # Upstash exposes a rediss:// endpoint; empty disables rate limiting
    redis_url: str = ""
    admin_secret: str = ""
    cors_origins: str = "*"
    rate_limit_per_minute: int = 60
    rate_limit_window: int = 60
    rate_limit_prefix: str = "alma:ratelimit"
    geohash_precision: int = 6
    search_cache_ttl: int = 86400
    nearby_default_radius: int = 2000
    nearby_max_radius: int = 10000
    nearby_result_limit: int = 20
    catalog_limit: int = 50
    search_product_limit: int = 100
    run_migrations: bool = False
    log_format: str = "text"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

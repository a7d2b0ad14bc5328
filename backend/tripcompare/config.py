from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis (empty = in-process cache)
    redis_url: str = ""

    # Database (empty = no durable store)
    database_url: str = ""

    # Amadeus (flights)
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"

    # Skyscanner (flights, redirect-only)
    skyscanner_api_key: str = ""
    skyscanner_base_url: str = "https://partners.api.skyscanner.net/apiservices"

    # Booking.com (hotels)
    booking_username: str = ""
    booking_password: str = ""
    booking_base_url: str = "https://distribution-xml.booking.com"

    # Hertz (cars)
    hertz_api_key: str = ""
    hertz_base_url: str = "https://api.hertz.com/v1"

    # Viator (activities)
    viator_api_key: str = ""
    viator_base_url: str = "https://api.viator.com"

    # Register seeded demo adapters for providers without credentials
    demo_mode: bool = True

    # Search fan-out
    adapter_timeout_seconds: float = 15.0
    search_deadline_seconds: float = 20.0
    max_concurrent_adapters: int = 8
    search_quota_per_minute: int = 30

    # Cache TTLs (provider-level must not exceed aggregate-level)
    provider_cache_ttl_seconds: int = 180
    aggregate_cache_ttl_seconds: int = 300

    # Price history
    history_retention_days: int = 90

    # Scheduler
    scheduler_enabled: bool = True
    maintenance_interval_minutes: int = 10
    watch_refresh_interval_minutes: int = 30
    watch_refresh_batch_size: int = 5

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""

    # CORS
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

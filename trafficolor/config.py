"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harness settings loaded from TRAFFICOLOR_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRAFFICOLOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application under test
    app_base_url: str = "https://review-mf-tfc-dem-n01jvo-review.dev-dcadcx.michelin.fr/traffic-color/"
    map_center: str = "48.8581/2.3727"  # lat/lon in the URL fragment
    left_map_canvas: str = "#before canvas.maplibregl-canvas"

    # Tile server under test
    review_traffic_host: str = "review-mf-maps-tr-gl8a3w-review.dev-dcadcx.michelin.fr"
    traffic_path: str = "/trafficolor/"

    # Browser
    browser_name: str = "chromium"
    headless: bool = False
    ignore_https_errors: bool = True
    viewport_width: int = 1600
    viewport_height: int = 900

    # Timeouts (ms unless noted)
    action_timeout_ms: float = 15000
    navigation_timeout_ms: float = 120000
    expect_timeout_ms: float = 10000
    test_timeout_s: int = 120

    # Fixed settle windows after the source switch
    panel_settle_ms: float = 6000
    request_settle_ms: float = 4000
    color_settle_ms: float = 6000

    # Failure artifacts (screenshots, traces)
    artifacts_dir: str = "tests/.test-results/trafficolor"


settings = Settings()

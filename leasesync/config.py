from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    LEASESYNC_DB_URL: str = "sqlite+aiosqlite:///./leasesync.db"

    # --- Admin auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Outbound HTTP ---
    HTTP_TIMEOUT_S: float = 30.0
    HTTP_MAX_RETRIES: int = 3
    HTTP_BACKOFF_BASE_S: float = 1.0
    HTTP_BACKOFF_MAX_S: float = 30.0
    HTTP_BACKOFF_JITTER_S: float = 0.5
    HTTP_RATE_LIMIT_RPS: float = 1.0  # per host
    HTTP_USER_AGENT: str = "Mozilla/5.0 (compatible; LeaseSyncBot/1.0)"
    HTTP_VERIFY_SSL: bool = True

    # --- Browser (discovery + html fallback) ---
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    DISCOVERY_CONFIG_PATH: str = "config/discovery.json"
    DISCOVERY_TIMEOUT_S: float = 60.0
    HTML_FALLBACK: bool = False
    HTML_FALLBACK_RPS: float = 0.5

    # --- Default source (created on first sync) ---
    DEFAULT_SOURCE: str = "michiganrental"
    DEFAULT_SOURCE_BASE_URL: str = "https://www.michiganrental.com"
    DEFAULT_TARGET_URL: str = "https://www.michiganrental.com/all-properties-map-listings"
    DEFAULT_NORMALIZER: str = "wix"

    # --- Fetcher bounding constants ---
    FETCH_MAX_PAGES: int = 100
    FETCH_OFFSET_PAGE_SIZE: int = 50
    FETCH_MAX_ITERATIONS: int = 200
    FETCH_BOUNDS_GRID: int = 4
    # Michigan, roughly
    FETCH_BOUNDS_MIN_LAT: float = 41.7
    FETCH_BOUNDS_MAX_LAT: float = 46.0
    FETCH_BOUNDS_MIN_LNG: float = -90.4
    FETCH_BOUNDS_MAX_LNG: float = -82.4

    # --- Images ---
    IMAGE_DIR: str = "./data/images"
    IMAGE_PUBLIC_PREFIX: str = "/images"
    IMAGE_CONCURRENCY: int = 4
    IMAGE_RATE_LIMIT_RPS: float = 2.0
    SKIP_IMAGE_DOWNLOAD: bool = False

    # --- Runs ---
    ERRORS_PREVIEW_LIMIT: int = 10
    CONTACT_SCRAPE_LIMIT: int = 1000

    # --- Scheduler tuning ---
    SCHED_SYNC_INTERVAL_MINUTES: int = 1440  # daily


settings = Settings()

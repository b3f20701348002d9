"""Application settings loaded from environment variables via pydantic-settings.

Hey future me - every provider section is its own BaseModel so clients only get the
slice they need (SpotifyClient gets SpotifySettings, etc.). The root Settings reads
env vars with the CHARTPULSE_ prefix and "__" as nested delimiter:

    CHARTPULSE_SPOTIFY__CLIENT_ID=abc
    CHARTPULSE_LASTFM__API_KEY=xyz
    CHARTPULSE_DATABASE__URL=sqlite+aiosqlite:///./chartpulse.db

Empty credentials are NOT an error! A client without credentials degrades to
"every call returns None/[]" so the pipeline keeps running on the other providers.
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseModel):
    """Spotify app credentials (client-credentials flow, no user login)."""

    client_id: str = ""
    client_secret: str = ""

    @property
    def is_configured(self) -> bool:
        """Both halves of the app credential pair are present."""
        return bool(self.client_id.strip() and self.client_secret.strip())


class LastfmSettings(BaseModel):
    """Last.fm API credentials."""

    api_key: str = ""
    api_secret: str = ""

    @property
    def is_configured(self) -> bool:
        """Last.fm read endpoints only need the API key."""
        return bool(self.api_key.strip())


class MusicBrainzSettings(BaseModel):
    """MusicBrainz User-Agent identification.

    MusicBrainz rejects anonymous clients, so app name, version and contact
    end up in the User-Agent header.
    """

    app_name: str = "ChartPulse"
    app_version: str = "0.1.0"
    contact: str = "https://github.com/chartpulse/chartpulse"


class ListenBrainzSettings(BaseModel):
    """ListenBrainz settings. The stats endpoints work without a token."""

    user_token: str = ""


class DatabaseSettings(BaseModel):
    """Entity store connection settings."""

    url: str = "sqlite+aiosqlite:///./chartpulse.db"
    echo: bool = False
    pool_pre_ping: bool = True


class AggregatorSettings(BaseModel):
    """Pacing for the aggregators.

    request_delay is slept between entities/provider calls on top of each
    client's own rate limiter.
    """

    request_delay: float = 0.2
    genre_candidates_multiplier: int = 2


class ClassifierSettings(BaseModel):
    """Independent-artist thresholds.

    Hand-tuned values, treat as configuration and not as business truth.
    """

    spotify_followers: int = 500_000
    spotify_popularity: int = 65
    lastfm_listeners: int = 300_000
    composite_score: float = 50.0
    min_momentum: float = 5.0
    very_small_followers: int = 100_000
    very_small_listeners: int = 50_000


class SchedulerSettings(BaseModel):
    """Cadence of the chart update jobs (local wall clock).

    weekly_day uses Python's weekday numbering: Monday=0 ... Sunday=6.
    """

    enabled: bool = True
    metrics_hour: int = Field(default=2, ge=0, le=23)
    scores_hour: int = Field(default=3, ge=0, le=23)
    weekly_day: int = Field(default=6, ge=0, le=6)
    artist_import_hour: int = Field(default=1, ge=0, le=23)
    track_import_hour: int = Field(default=2, ge=0, le=23)
    import_limit: int = 100
    genre_import_limit: int = 20
    top_artists_limit: int = 100
    top_tracks_limit: int = 50
    indie_genres: list[str] = Field(
        default_factory=lambda: [
            "indie",
            "indie pop",
            "indie rock",
            "bedroom pop",
            "dream pop",
            "alternative",
            "lo-fi",
        ]
    )


class ObservabilitySettings(BaseModel):
    """Logging configuration."""

    log_level: str = "INFO"
    log_json_format: bool = False


class Settings(BaseSettings):
    """ChartPulse settings root."""

    model_config = SettingsConfigDict(
        env_prefix="CHARTPULSE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "chartpulse"
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    lastfm: LastfmSettings = Field(default_factory=LastfmSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    listenbrainz: ListenBrainzSettings = Field(default_factory=ListenBrainzSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    aggregator: AggregatorSettings = Field(default_factory=AggregatorSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


# Hey future me - cached so the env/.env files are parsed exactly once per process.
# Tests that need different values should build Settings(...) directly instead.
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()

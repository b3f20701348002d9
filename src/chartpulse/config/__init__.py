"""Configuration module for ChartPulse."""

from .settings import (
    AggregatorSettings,
    ClassifierSettings,
    DatabaseSettings,
    LastfmSettings,
    ListenBrainzSettings,
    MusicBrainzSettings,
    ObservabilitySettings,
    SchedulerSettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "AggregatorSettings",
    "ClassifierSettings",
    "DatabaseSettings",
    "LastfmSettings",
    "ListenBrainzSettings",
    "MusicBrainzSettings",
    "ObservabilitySettings",
    "SchedulerSettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]

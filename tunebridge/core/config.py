"""
Configuration management for tunebridge.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify access token (opaque, supplied by an external OAuth flow)
    - YouTube Music auth file for ytmusicapi
    - Output directory for logs and the mapping database
    - Match thresholds used by the scorer and the accept rule
    - Resolution fan-out, retry and timeout settings

Configuration File Location:
    The config.yaml file must be in the current working directory
    unless an explicit path is passed (CLI: --config).

Example config.yaml:
    spotify:
      access_token: "BQD...your_token"

    youtube:
      auth_file: "~/.tunebridge/oauth.json"
      client_id: null       # Needed by ytmusicapi for OAuth token files
      client_secret: null

    output:
      directory: "~/.tunebridge"

    matching:
      accept_threshold: 0.72
      margin_threshold: 0.05
      duration_full_credit_sec: 3
      duration_zero_credit_sec: 15
      max_results: 5

    resolution:
      max_concurrency: 5
      max_retries: 3
      backoff_base: 0.5
      backoff_factor: 2.0
      backoff_cap: 4.0
      timeout: null         # Seconds for a whole convert/sync call
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from tunebridge.core.exceptions import ConfigError


# Default configuration file name (always in current working directory)
CONFIG_FILENAME = "config.yaml"


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify credentials configuration.

    Attributes:
        access_token: OAuth access token with playlist-read-private,
                      playlist-modify-private and playlist-modify-public scopes.
                      Token refresh is outside tunebridge: an expired token
                      surfaces as AuthInvalidError and aborts the run.
    """
    access_token: str


@dataclass(frozen=True)
class YouTubeConfig:
    """
    YouTube Music credentials configuration.

    Attributes:
        auth_file: Path to a ytmusicapi auth file (browser headers or OAuth token).
        client_id: Google OAuth client ID. Only required for OAuth token files.
        client_secret: Google OAuth client secret. Only required for OAuth token files.
    """
    auth_file: Path
    client_id: str | None = None
    client_secret: str | None = None


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path where logs/ and the mapping database are stored.
                   Path expansion is performed (~ is expanded to home directory).
    """
    directory: Path

    @property
    def database_path(self) -> Path:
        """Path of the SQLite mapping store."""
        return self.directory / "tunebridge.db"


@dataclass(frozen=True)
class MatchingConfig:
    """
    Match scoring and acceptance thresholds.

    Attributes:
        accept_threshold: Minimum score for the best candidate to be accepted.
        margin_threshold: Minimum lead of the best candidate over the runner-up.
                          Below this the result is NoMatch("ambiguous").
        duration_full_credit_sec: Duration difference that still earns full credit.
        duration_zero_credit_sec: Duration difference at which credit reaches zero.
        max_results: Number of candidates requested per catalog search.
    """
    accept_threshold: float = 0.72
    margin_threshold: float = 0.05
    duration_full_credit_sec: float = 3
    duration_zero_credit_sec: float = 15
    max_results: int = 5


@dataclass(frozen=True)
class ResolutionConfig:
    """
    Resolution Pipeline fan-out and retry behavior.

    Attributes:
        max_concurrency: Upper bound on simultaneous searches. The effective
                         bound is min(this, target client's max_concurrency).
        max_retries: Retries after the first attempt for transient failures.
        backoff_base: Delay before the first retry, in seconds.
        backoff_factor: Multiplier applied to the delay for each further retry.
        backoff_cap: Maximum delay between retries, in seconds.
        timeout: Optional deadline in seconds for a whole convert/sync call.
    """
    max_concurrency: int = 5
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_factor: float = 2.0
    backoff_cap: float = 4.0
    timeout: float | None = None

    def backoff_delay(self, retry_number: int) -> float:
        """
        Delay before the given retry (1-based).

        Example:
            With defaults: 1 -> 0.5s, 2 -> 1.0s, 3 -> 2.0s, 4 -> 4.0s (capped)
        """
        delay = self.backoff_base * (self.backoff_factor ** (retry_number - 1))
        return min(delay, self.backoff_cap)


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Database: {config.output.database_path}")
        print(f"Accept threshold: {config.matching.accept_threshold}")
    """
    spotify: SpotifyConfig
    youtube: YouTubeConfig
    output: OutputConfig
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Thread Safety:
        This function is NOT thread-safe. It should be called once at
        application startup, before any threads are created.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        youtube=_parse_youtube_config(raw_config["youtube"]),
        output=_parse_output_config(raw_config["output"]),
        matching=_parse_matching_config(raw_config.get("matching")),
        resolution=_parse_resolution_config(raw_config.get("resolution")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate the raw configuration dictionary structure.

    Raises:
        ConfigError: If a required section is missing, or any present
                     section is not a dictionary.
    """
    required_sections = ["spotify", "youtube", "output"]

    for section in required_sections:
        if section not in raw_config:
            raise ConfigError(
                f"Missing required section: '{section}'",
                details={"missing_section": section}
            )

    for section in required_sections + ["matching", "resolution"]:
        value = raw_config.get(section)
        if section in raw_config and value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _require_string(section: dict[str, Any], name: str, field_path: str) -> str:
    value = section.get(name, "")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field_path}' must be a non-empty string",
            details={"field": field_path}
        )
    return value.strip()


def _optional_string(section: dict[str, Any], name: str, field_path: str) -> str | None:
    value = section.get(name)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field_path}' must be a non-empty string or null",
            details={"field": field_path}
        )
    return value.strip()


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigError: If access_token is missing or empty.
    """
    return SpotifyConfig(
        access_token=_require_string(spotify_section, "access_token", "spotify.access_token")
    )


def _parse_youtube_config(youtube_section: dict[str, Any]) -> YouTubeConfig:
    """
    Parse and validate the YouTube Music configuration section.

    The auth file must exist: ytmusicapi reads it eagerly when the
    client is constructed.

    Raises:
        ConfigError: If auth_file is missing, empty or does not exist,
                     or if only one of client_id/client_secret is given.
    """
    raw_auth = _require_string(youtube_section, "auth_file", "youtube.auth_file")
    auth_path = Path(raw_auth).expanduser().resolve()
    if not auth_path.exists():
        raise ConfigError(
            f"YouTube Music auth file not found: {auth_path}",
            details={"field": "youtube.auth_file", "path": str(auth_path)}
        )

    client_id = _optional_string(youtube_section, "client_id", "youtube.client_id")
    client_secret = _optional_string(youtube_section, "client_secret", "youtube.client_secret")
    if (client_id is None) != (client_secret is None):
        raise ConfigError(
            "'youtube.client_id' and 'youtube.client_secret' must be set together",
            details={"field": "youtube.client_id"}
        )

    return YouTubeConfig(
        auth_file=auth_path,
        client_id=client_id,
        client_secret=client_secret
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse and validate the output configuration section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (that happens at startup).

    Raises:
        ConfigError: If directory is missing or empty.
    """
    directory = _require_string(output_section, "directory", "output.directory")
    return OutputConfig(directory=Path(directory).expanduser().resolve())


def _number(
    section: dict[str, Any],
    name: str,
    field_path: str,
    default: float,
    minimum: float | None = None,
    maximum: float | None = None
) -> float:
    """Read an optional numeric field, enforcing an inclusive range."""
    value = section.get(name)
    if value is None:
        return default
    # bool is a subclass of int and must not pass as a number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(
            f"'{field_path}' must be a number",
            details={"field": field_path, "value": value}
        )
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise ConfigError(
            f"'{field_path}' must be between {minimum} and {maximum}",
            details={"field": field_path, "value": value}
        )
    return value


def _integer(
    section: dict[str, Any],
    name: str,
    field_path: str,
    default: int,
    minimum: int
) -> int:
    """Read an optional integer field with a lower bound."""
    value = section.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(
            f"'{field_path}' must be an integer >= {minimum}",
            details={"field": field_path, "value": value}
        )
    return value


def _parse_matching_config(matching_section: dict[str, Any] | None) -> MatchingConfig:
    """
    Parse and validate the matching configuration section.

    Applies defaults if section is missing or fields are not specified.

    Raises:
        ConfigError: If a threshold is outside [0, 1], durations are negative,
                     zero-credit is not greater than full-credit, or
                     max_results is not a positive integer.
    """
    defaults = MatchingConfig()
    if matching_section is None:
        return defaults

    accept = _number(
        matching_section, "accept_threshold", "matching.accept_threshold",
        defaults.accept_threshold, 0.0, 1.0
    )
    margin = _number(
        matching_section, "margin_threshold", "matching.margin_threshold",
        defaults.margin_threshold, 0.0, 1.0
    )
    full_credit = _number(
        matching_section, "duration_full_credit_sec", "matching.duration_full_credit_sec",
        defaults.duration_full_credit_sec, 0.0
    )
    zero_credit = _number(
        matching_section, "duration_zero_credit_sec", "matching.duration_zero_credit_sec",
        defaults.duration_zero_credit_sec, 0.0
    )
    if zero_credit <= full_credit:
        raise ConfigError(
            "'matching.duration_zero_credit_sec' must be greater than "
            "'matching.duration_full_credit_sec'",
            details={"field": "matching.duration_zero_credit_sec", "value": zero_credit}
        )
    max_results = _integer(
        matching_section, "max_results", "matching.max_results", defaults.max_results, 1
    )

    return MatchingConfig(
        accept_threshold=accept,
        margin_threshold=margin,
        duration_full_credit_sec=full_credit,
        duration_zero_credit_sec=zero_credit,
        max_results=max_results
    )


def _parse_resolution_config(resolution_section: dict[str, Any] | None) -> ResolutionConfig:
    """
    Parse and validate the resolution configuration section.

    Applies defaults if section is missing or fields are not specified.

    Raises:
        ConfigError: If concurrency is below 1, retries are negative,
                     backoff values are not positive, or timeout is not
                     a positive number.
    """
    defaults = ResolutionConfig()
    if resolution_section is None:
        return defaults

    timeout = resolution_section.get("timeout")
    if timeout is not None:
        timeout = _number(resolution_section, "timeout", "resolution.timeout", 0.0, 0.001)

    return ResolutionConfig(
        max_concurrency=_integer(
            resolution_section, "max_concurrency", "resolution.max_concurrency",
            defaults.max_concurrency, 1
        ),
        max_retries=_integer(
            resolution_section, "max_retries", "resolution.max_retries",
            defaults.max_retries, 0
        ),
        backoff_base=_number(
            resolution_section, "backoff_base", "resolution.backoff_base",
            defaults.backoff_base, 0.0
        ),
        backoff_factor=_number(
            resolution_section, "backoff_factor", "resolution.backoff_factor",
            defaults.backoff_factor, 1.0
        ),
        backoff_cap=_number(
            resolution_section, "backoff_cap", "resolution.backoff_cap",
            defaults.backoff_cap, 0.0
        ),
        timeout=timeout
    )

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from stashlens_core.issues import Severity

DEFAULT_CONFIG: dict = {
    "stash_url": None,
    "sonar_url": None,
    "notify": True,  # master switch for inline comments, tasks, overview and summary
    "include_overview": True,
    "include_summary": False,
    "approve": False,
    "comment_severity_threshold": "INFO",
    "task_severity_threshold": "NONE",  # NONE = never raise tasks
    "issue_threshold": 100,  # 0 = no limit on inline comments
    "timeout": 10,
    "reviewer": None,  # None = the authenticated Stash user
}

SEVERITY_NONE = "NONE"

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


class ConfigurationError(ValueError):
    """A required setting is missing or cannot be parsed."""


def load_config(config_path: str = ".stashlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .stashlens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping of settings.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config


def _parse_bool(config: dict, key: str) -> bool:
    value = config.get(key, DEFAULT_CONFIG.get(key))
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise ConfigurationError(f"Setting {key!r} must be a boolean, got {value!r}.")


def _parse_threshold(config: dict, key: str) -> Severity | None:
    value = config.get(key, DEFAULT_CONFIG.get(key))
    if value is None or str(value).strip().upper() == SEVERITY_NONE:
        return None
    try:
        return Severity.parse(value)
    except ValueError as e:
        raise ConfigurationError(f"Setting {key!r}: {e}") from e


def _parse_int(config: dict, key: str) -> int:
    value = config.get(key, DEFAULT_CONFIG.get(key))
    if isinstance(value, bool):
        raise ConfigurationError(f"Setting {key!r} must be an integer, got {value!r}.")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"Setting {key!r} must be an integer, got {value!r}.")
    if number < 0:
        raise ConfigurationError(f"Setting {key!r} must not be negative, got {number}.")
    return number


def _parse_timeout(config: dict, key: str) -> float:
    value = config.get(key, DEFAULT_CONFIG.get(key))
    if isinstance(value, bool):
        raise ConfigurationError(f"Setting {key!r} must be a number of seconds, got {value!r}.")
    try:
        seconds = float(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"Setting {key!r} must be a number of seconds, got {value!r}.")
    if not seconds > 0:
        raise ConfigurationError(f"Setting {key!r} must be positive, got {value!r}.")
    return seconds


@dataclass(frozen=True)
class ReviewSettings:
    """Immutable per-run policy handed to every publication step.

    A threshold of ``None`` means the corresponding action never happens.
    """

    notify: bool = True
    include_overview: bool = True
    include_summary: bool = False
    approve: bool = False
    comment_threshold: Severity | None = Severity.INFO
    task_threshold: Severity | None = None
    issue_threshold: int = 100
    sonar_url: str = ""
    timeout: float = 10

    @classmethod
    def from_config(cls, config: dict) -> ReviewSettings:
        return cls(
            notify=_parse_bool(config, "notify"),
            include_overview=_parse_bool(config, "include_overview"),
            include_summary=_parse_bool(config, "include_summary"),
            approve=_parse_bool(config, "approve"),
            comment_threshold=_parse_threshold(config, "comment_severity_threshold"),
            task_threshold=_parse_threshold(config, "task_severity_threshold"),
            issue_threshold=_parse_int(config, "issue_threshold"),
            sonar_url=(config.get("sonar_url") or "").rstrip("/"),
            timeout=_parse_timeout(config, "timeout"),
        )

    def should_comment(self, severity: Severity) -> bool:
        return self.comment_threshold is not None and severity >= self.comment_threshold

    def should_raise_task(self, severity: Severity) -> bool:
        return self.task_threshold is not None and severity >= self.task_threshold

    def exceeds_issue_threshold(self, count: int) -> bool:
        return self.issue_threshold > 0 and count > self.issue_threshold


@dataclass(frozen=True)
class PullRequestRef:
    """Identity of the pull request a run reports on."""

    project: str
    repository: str
    pull_request_id: str

    @classmethod
    def create(cls, project: str | None, repository: str | None, pull_request_id) -> PullRequestRef:
        if not project:
            raise ConfigurationError("Stash project is not set.")
        if not repository:
            raise ConfigurationError("Stash repository is not set.")
        if pull_request_id is None or str(pull_request_id).strip() == "":
            raise ConfigurationError("Pull request id is not set.")
        pr_id = str(pull_request_id).strip()
        if not pr_id.isdigit() or int(pr_id) == 0:
            raise ConfigurationError(f"Pull request id must be a positive integer, got {pull_request_id!r}.")
        return cls(project=project, repository=repository, pull_request_id=pr_id)

    def __str__(self) -> str:
        return f"{self.project}/{self.repository}#{self.pull_request_id}"


def require_stash_url(config: dict) -> str:
    url = config.get("stash_url")
    if not url:
        raise ConfigurationError("Stash URL is not set. Use --stash-url or 'stash_url' in .stashlens.yml.")
    return str(url).rstrip("/")

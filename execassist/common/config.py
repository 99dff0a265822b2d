"""
Configuration Management for execassist

Loads configuration from ~/.execassist/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("execassist.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".execassist"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8090
    log_level: str = "INFO"


@dataclass
class ReviewConfig:
    """Approval workflow configuration"""
    escalation_threshold_hours: int = 72
    escalation_webhook_url: str = ""  # empty: log escalations only


@dataclass
class ExtractionConfig:
    """Pattern-based suggestion extraction"""
    min_confidence_threshold: int = 40
    include_low_confidence: bool = True


@dataclass
class TaskSinkConfig:
    """Task tracker hand-off configuration"""
    plan_id: str = "default"
    default_bucket_id: str = ""
    meeting_base_url: str = ""


@dataclass
class ArchiveConfig:
    """Decision archive configuration"""
    list_name: str = "DecisionArchive"
    default_page_size: int = 50


@dataclass
class ExecAssistConfig:
    """Main execassist configuration"""
    server: ServerConfig = field(default_factory=ServerConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    tasks: TaskSinkConfig = field(default_factory=TaskSinkConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8090),
        log_level=server_data.get("log_level", "INFO"),
    )


def _parse_review_config(data: dict) -> ReviewConfig:
    """Parse review section from config dict"""
    review_data = data.get("review", {})
    return ReviewConfig(
        escalation_threshold_hours=review_data.get("escalation_threshold_hours", 72),
        escalation_webhook_url=review_data.get("escalation_webhook_url", ""),
    )


def _parse_extraction_config(data: dict) -> ExtractionConfig:
    """Parse extraction section from config dict"""
    extraction_data = data.get("extraction", {})
    return ExtractionConfig(
        min_confidence_threshold=extraction_data.get("min_confidence_threshold", 40),
        include_low_confidence=extraction_data.get("include_low_confidence", True),
    )


def _parse_task_sink_config(data: dict) -> TaskSinkConfig:
    """Parse tasks section from config dict"""
    tasks_data = data.get("tasks", {})
    return TaskSinkConfig(
        plan_id=tasks_data.get("plan_id", "default"),
        default_bucket_id=tasks_data.get("default_bucket_id", ""),
        meeting_base_url=tasks_data.get("meeting_base_url", ""),
    )


def _parse_archive_config(data: dict) -> ArchiveConfig:
    """Parse archive section from config dict"""
    archive_data = data.get("archive", {})
    return ArchiveConfig(
        list_name=archive_data.get("list_name", "DecisionArchive"),
        default_page_size=archive_data.get("default_page_size", 50),
    )


def load_config() -> ExecAssistConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.execassist/config.json)
    3. Default values
    """
    config = ExecAssistConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.server = _parse_server_config(data)
            config.review = _parse_review_config(data)
            config.extraction = _parse_extraction_config(data)
            config.tasks = _parse_task_sink_config(data)
            config.archive = _parse_archive_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Environment variable overrides
    if os.getenv("EXECASSIST_HOST"):
        config.server.host = os.getenv("EXECASSIST_HOST")
    if os.getenv("EXECASSIST_PORT"):
        config.server.port = int(os.getenv("EXECASSIST_PORT"))
    if os.getenv("EXECASSIST_LOG_LEVEL"):
        config.server.log_level = os.getenv("EXECASSIST_LOG_LEVEL")

    if os.getenv("EXECASSIST_ESCALATION_HOURS"):
        config.review.escalation_threshold_hours = int(os.getenv("EXECASSIST_ESCALATION_HOURS"))
    if os.getenv("EXECASSIST_ESCALATION_WEBHOOK"):
        config.review.escalation_webhook_url = os.getenv("EXECASSIST_ESCALATION_WEBHOOK")

    if os.getenv("EXECASSIST_MIN_CONFIDENCE"):
        config.extraction.min_confidence_threshold = int(os.getenv("EXECASSIST_MIN_CONFIDENCE"))

    if os.getenv("EXECASSIST_PLAN_ID"):
        config.tasks.plan_id = os.getenv("EXECASSIST_PLAN_ID")
    if os.getenv("EXECASSIST_MEETING_BASE_URL"):
        config.tasks.meeting_base_url = os.getenv("EXECASSIST_MEETING_BASE_URL")

    return config


def save_config(config: ExecAssistConfig) -> None:
    """Save configuration to file.

    The webhook URL may embed a token, so the file is written with
    owner-only permissions.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    data = {
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "log_level": config.server.log_level,
        },
        "review": {
            "escalation_threshold_hours": config.review.escalation_threshold_hours,
            "escalation_webhook_url": config.review.escalation_webhook_url,
        },
        "extraction": {
            "min_confidence_threshold": config.extraction.min_confidence_threshold,
            "include_low_confidence": config.extraction.include_low_confidence,
        },
        "tasks": {
            "plan_id": config.tasks.plan_id,
            "default_bucket_id": config.tasks.default_bucket_id,
            "meeting_base_url": config.tasks.meeting_base_url,
        },
        "archive": {
            "list_name": config.archive.list_name,
            "default_page_size": config.archive.default_page_size,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

import yaml
import os
from typing import List, Optional
from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    # Directory that holds the groups/<groupId>/... tree
    data_root: str = "."


class NotificationConfig(BaseModel):
    """
    Configuration for notification fan-out.

    Controls where notification links point and how push sends are scheduled.
    """
    client_url: str = "http://localhost:3000"
    push_title: str = "New activity in WAVE!"

    # Fire-and-forget push sends on an executor thread; disable for scripts/tests
    async_push: bool = True
    push_workers: int = 4


class SmsConfig(BaseModel):
    """Twilio credentials and dispatch queue limits."""
    enabled: bool = False
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None
    api_base_url: str = "https://api.twilio.com/2010-04-01"
    request_timeout_seconds: int = 15

    # Token bucket: one send per second, sixty per minute
    min_interval_seconds: float = 1.0
    max_per_minute: int = 60
    rate_limit_retry_seconds: float = 1.0
    failure_retry_seconds: float = 5.0

    # Digests longer than this are split per clause
    max_message_length: int = 160


class PushConfig(BaseModel):
    vapid_private_key: Optional[str] = None
    vapid_subject: str = "mailto:admin@example.com"
    ttl_seconds: int = 86400
    request_timeout_seconds: int = 10


class MediaConfig(BaseModel):
    """
    Configuration for the media pipeline.

    ``pool_size`` of None sizes the image pool to (cpu count - 1), minimum 1.
    """
    pool_size: Optional[int] = None
    task_timeout_seconds: float = 30.0

    max_width: int = 1920
    max_height: int = 1080
    jpeg_quality: int = 90

    thumbnail_size: int = 128
    thumbnail_quality: int = 50

    # File readiness: fixed-interval polling wrapped in exponential retry
    file_poll_attempts: int = 10
    file_poll_interval_seconds: float = 0.1
    retry_attempts: int = 3
    retry_initial_delay_seconds: float = 0.5

    frame_count: int = 3
    ffmpeg_timeout_seconds: int = 60
    max_upload_files: int = 10


class AssistantConfig(BaseModel):
    enabled: bool = True
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    max_tokens: int = 300
    temperature: float = 0.7


class WorkerConfig(BaseModel):
    groups: List[str] = Field(default_factory=list)
    interval_seconds: int = 900


class AppConfig(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    sms: SmsConfig = Field(default_factory=SmsConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)


# (environment variable, config section, key)
_ENV_OVERRIDES = [
    ("WAVE_DATA_ROOT", "storage", "data_root"),
    ("CLIENT_URL", "notifications", "client_url"),
    ("TWILIO_ACCOUNT_SID", "sms", "account_sid"),
    ("TWILIO_AUTH_TOKEN", "sms", "auth_token"),
    ("TWILIO_PHONE_NUMBER", "sms", "from_number"),
    ("VAPID_PRIVATE_KEY", "push", "vapid_private_key"),
    ("VAPID_SUBJECT", "push", "vapid_subject"),
    ("OPENAI_API_KEY", "assistant", "api_key"),
    ("OPENAI_BASE_URL", "assistant", "base_url"),
]


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from a subdirectory), try the repo root
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    data = {}
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

    # Secrets and deployment URLs come from the environment when set
    for env_name, section, key in _ENV_OVERRIDES:
        value = os.environ.get(env_name)
        if value:
            if data.get(section) is None:
                data[section] = {}
            data[section][key] = value

    return AppConfig(**data)

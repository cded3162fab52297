from dataclasses import dataclass
from typing import Optional

from core.config_loader import AppConfig, AssistantConfig
from core.interactions import InteractionService
from core.items import ItemService
from core.llm.openai_service import OpenAIReplyService
from media.pipeline import UploadPipeline
from media.pool import ImageWorkerPool
from media.video import FfmpegTranscoder
from notification.channels import NotificationChannelFactory
from notification.push import PushDeliveryService
from notification.queue import NotificationQueueManager
from notification.service import NotificationService
from notification.sms_queue import SmsDispatchQueue
from storage.repository import GroupRepository
from storage.store import JsonFileStore


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    This eliminates duplicate wiring code and provides a single source
    of truth for service instantiation. The image pool is created lazily
    because spawning worker processes is only needed for uploads.
    """
    config: AppConfig
    store: JsonFileStore
    repo: GroupRepository
    notification_queue: NotificationQueueManager
    push_service: PushDeliveryService
    sms_queue: SmsDispatchQueue
    notification_service: NotificationService
    interaction_service: InteractionService
    item_service: ItemService
    transcoder: FfmpegTranscoder
    _upload_pipeline: Optional[UploadPipeline] = None

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration

        Returns:
            Fully wired AppContext instance
        """
        store = JsonFileStore(config.storage.data_root)
        repo = GroupRepository(store)

        notification_queue = NotificationQueueManager(store)
        push_service = PushDeliveryService(
            store, NotificationChannelFactory.create_push_channel(config.push)
        )
        sms_queue = cls._build_sms_queue(config)

        notification_service = NotificationService(
            repo=repo,
            queue=notification_queue,
            push_service=push_service,
            sms_queue=sms_queue,
            client_url=config.notifications.client_url,
            push_title=config.notifications.push_title,
            use_async_push=config.notifications.async_push,
            push_workers=config.notifications.push_workers,
            sms_max_length=config.sms.max_message_length,
        )

        transcoder = FfmpegTranscoder(timeout=config.media.ffmpeg_timeout_seconds)

        ctx = cls(
            config=config,
            store=store,
            repo=repo,
            notification_queue=notification_queue,
            push_service=push_service,
            sms_queue=sms_queue,
            notification_service=notification_service,
            interaction_service=None,
            item_service=ItemService(repo),
            transcoder=transcoder,
        )
        ctx.interaction_service = InteractionService(
            repo=repo,
            notifications=notification_service,
            reply_generator=cls._build_reply_generator(config.assistant),
            media_collector=lambda group_id, post_id: ctx.upload_pipeline.collect_post_media(group_id, post_id),
        )
        return ctx

    @staticmethod
    def _build_sms_queue(config: AppConfig) -> SmsDispatchQueue:
        sms = config.sms
        return SmsDispatchQueue(
            NotificationChannelFactory.create_sms_channel(sms),
            min_interval_seconds=sms.min_interval_seconds,
            max_per_minute=sms.max_per_minute,
            rate_limit_retry_seconds=sms.rate_limit_retry_seconds,
            failure_retry_seconds=sms.failure_retry_seconds,
        )

    @staticmethod
    def _build_reply_generator(assistant: AssistantConfig) -> Optional[OpenAIReplyService]:
        """Build the assistant reply service if enabled in config."""
        if not assistant.enabled or not assistant.api_key:
            return None
        return OpenAIReplyService(
            api_key=assistant.api_key,
            base_url=assistant.base_url,
            model=assistant.model,
            max_tokens=assistant.max_tokens,
            temperature=assistant.temperature,
        )

    @property
    def upload_pipeline(self) -> UploadPipeline:
        if self._upload_pipeline is None:
            media = self.config.media
            pool = ImageWorkerPool(
                max_workers=media.pool_size,
                task_timeout=media.task_timeout_seconds,
            )
            self._upload_pipeline = UploadPipeline(
                repo=self.repo,
                pool=pool,
                transcoder=self.transcoder,
                notifications=self.notification_service,
                config=media,
            )
        return self._upload_pipeline

    def close(self) -> None:
        self.notification_service.shutdown(wait=True)
        if self._upload_pipeline is not None:
            self._upload_pipeline.pool.shutdown(wait=True)

"""
Upload processing pipeline.

For each uploaded file:
    1. validate and derive ``itemId = <epochMs>-<uploaderId>-<random>``
    2. images are resized in the worker pool; videos are stored as-is
    3. metadata save, thumbnail generation and unread-list update run
       concurrently and are joined

Metadata or thumbnail failure fails that file; unread-list failures are
only logged. Files are independent: completed files are kept even when
others fail, and the caller receives an UploadBatchError listing both.
"""

import logging
import os
import random
import shutil
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from core.config_loader import MediaConfig
from core.exceptions import MediaProcessingError, NotFoundError, UploadBatchError, ValidationError
from media.images import ResizeOptions, generate_thumbnail, resize_to_jpeg_bytes, to_base64
from media.pool import ImageWorkerPool
from media.retry import retry, wait_for_file
from media.video import FfmpegTranscoder, extract_frames
from notification.service import EVENT_UPLOAD, NotificationEvent, NotificationService
from storage.models import Dimensions, ItemMetadata
from storage.repository import GroupRepository, VIDEO_EXTENSIONS, is_video_file

logger = logging.getLogger(__name__)

MAX_CONTEXT_IMAGES = 10


@dataclass
class UploadFile:
    """A file already written to a staging path by the transport layer."""
    path: str
    original_name: str
    mime_type: str
    size: Optional[int] = None

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")


@dataclass
class ProcessedItem:
    metadata: ItemMetadata
    media_path: str
    thumbnail_path: str

    @property
    def item_id(self) -> str:
        return self.metadata.item_id


def new_item_id(uploader_id: str, epoch_ms: int) -> str:
    return f"{epoch_ms}-{uploader_id}-{random.randint(0, 9999999999)}"


def new_post_id(uploader_id: str, epoch_ms: int) -> str:
    return f"post-{epoch_ms}-{uploader_id}-{uuid.uuid4().hex[:8]}"


class UploadPipeline:
    def __init__(
        self,
        repo: GroupRepository,
        pool: ImageWorkerPool,
        transcoder: FfmpegTranscoder,
        notifications: Optional[NotificationService] = None,
        config: Optional[MediaConfig] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repo = repo
        self.pool = pool
        self.transcoder = transcoder
        self.notifications = notifications
        self.config = config or MediaConfig()
        self.clock = clock
        self.sleep = sleep

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # ============ Upload ============

    def _validate(self, group_id: str, uploader_id: str, files: List[UploadFile]) -> None:
        if not files:
            raise ValidationError("No media files provided")
        if len(files) > self.config.max_upload_files:
            raise ValidationError(f"At most {self.config.max_upload_files} files per upload")

        members = self.repo.get_members(group_id)
        if self.repo.get_member(members, uploader_id) is None:
            raise NotFoundError(f"Unknown uploader {uploader_id} in group {group_id}")

        for f in files:
            if not (f.mime_type.startswith("image/") or f.mime_type.startswith("video/")):
                raise ValidationError(f"Only image or video files are allowed: {f.original_name}")

    def _post_exists(self, group_id: str, post_id: str) -> bool:
        return any(m.effective_post_id == post_id for m in self.repo.list_metadata(group_id))

    def process_upload(
        self,
        group_id: str,
        uploader_id: str,
        files: List[UploadFile],
        post_id: Optional[str] = None,
    ) -> List[ProcessedItem]:
        """
        Process a batch of uploaded files into one post.

        Raises UploadBatchError if any file failed; completed items are on
        the exception and are not rolled back.
        """
        self._validate(group_id, uploader_id, files)

        is_new_post = post_id is None or not self._post_exists(group_id, post_id)
        if post_id is None and len(files) > 1:
            post_id = new_post_id(uploader_id, self._now_ms())

        completed: List[ProcessedItem] = []
        failures: Dict[str, Exception] = {}

        with ThreadPoolExecutor(max_workers=len(files), thread_name_prefix="upload") as executor:
            futures = {
                executor.submit(self._process_file, group_id, uploader_id, f, post_id, index): f
                for index, f in enumerate(files)
            }
            for future, f in futures.items():
                try:
                    completed.append(future.result())
                except Exception as e:
                    logger.error(f"Upload of {f.original_name} to {group_id} failed: {e}")
                    failures[f.original_name] = e

        completed.sort(key=lambda item: item.metadata.order_index or 0)

        if completed and is_new_post:
            self._notify_upload(group_id, uploader_id, completed[0].metadata.effective_post_id)

        if failures:
            raise UploadBatchError(completed, failures)

        logger.info(f"Processed {len(completed)} file(s) for {uploader_id} in {group_id}")
        return completed

    def _process_file(
        self,
        group_id: str,
        uploader_id: str,
        upload: UploadFile,
        post_id: Optional[str],
        order_index: int,
    ) -> ProcessedItem:
        upload_date = self._now_ms()
        item_id = new_item_id(uploader_id, upload_date)

        if upload.is_video:
            ext = os.path.splitext(upload.original_name)[1].lower()
            if ext not in VIDEO_EXTENSIONS:
                ext = ".mp4"
            media_path = self.repo.media_path(group_id, f"{item_id}{ext}")
            os.makedirs(os.path.dirname(media_path), exist_ok=True)
            shutil.move(upload.path, media_path)
            dimensions = self._video_dimensions(media_path)
        else:
            media_path = self.repo.media_path(group_id, f"{item_id}.jpg")
            options = ResizeOptions(
                max_width=self.config.max_width,
                max_height=self.config.max_height,
                quality=self.config.jpeg_quality,
            )
            width, height = self.pool.submit(upload.path, media_path, options)
            dimensions = Dimensions(width=width, height=height)
            if os.path.abspath(upload.path) != os.path.abspath(media_path) and os.path.exists(upload.path):
                os.remove(upload.path)

        metadata = ItemMetadata(
            item_id=item_id,
            post_id=post_id,
            uploader_id=uploader_id,
            upload_date=upload_date,
            dimensions=dimensions,
            media_type="video" if upload.is_video else "image",
            mime_type="image/jpeg" if not upload.is_video else upload.mime_type,
            original_name=upload.original_name,
            size=os.path.getsize(media_path),
            order_index=order_index if post_id else None,
        )
        thumbnail_path = self.repo.thumbnail_path(group_id, item_id)

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="upload-task") as tasks:
            save_future = tasks.submit(self.repo.save_metadata, group_id, metadata)
            thumb_future = tasks.submit(self._make_thumbnail, media_path, thumbnail_path, upload.is_video)
            unread_future = tasks.submit(self.repo.add_unread, group_id, item_id, uploader_id)

            save_future.result()
            thumb_future.result()
            try:
                unread_future.result()
            except Exception as e:
                logger.error(f"Error updating unread items for {item_id} in {group_id}: {e}")

        return ProcessedItem(metadata=metadata, media_path=media_path, thumbnail_path=thumbnail_path)

    def _video_dimensions(self, path: str) -> Optional[Dimensions]:
        try:
            width, height = self.transcoder.probe_dimensions(path)
            return Dimensions(width=width, height=height)
        except MediaProcessingError as e:
            logger.warning(f"Could not read video dimensions for {path}: {e}")
            return None

    def _make_thumbnail(self, media_path: str, thumbnail_path: str, is_video: bool) -> str:
        cfg = self.config

        def attempt() -> str:
            wait_for_file(media_path, cfg.file_poll_attempts, cfg.file_poll_interval_seconds, sleep=self.sleep)
            if is_video:
                return self.transcoder.generate_thumbnail(media_path, thumbnail_path)
            return generate_thumbnail(media_path, thumbnail_path, cfg.thumbnail_size, cfg.thumbnail_quality)

        return retry(attempt, cfg.retry_attempts, cfg.retry_initial_delay_seconds, sleep=self.sleep)

    def _notify_upload(self, group_id: str, uploader_id: str, post_id: str) -> None:
        if self.notifications is None:
            return
        try:
            self.notifications.process_event(NotificationEvent(
                action="add",
                group_id=group_id,
                item_id=post_id,
                uploader_id=uploader_id,
                actor_user_id=uploader_id,
                type=EVENT_UPLOAD,
            ))
        except Exception as e:
            logger.error(f"Error sending upload notifications for {post_id} in {group_id}: {e}")

    # ============ Assistant context ============

    def collect_post_media(self, group_id: str, post_id: str) -> List[dict]:
        """
        Up to ten base64 JPEG image blocks for a post: its items in order,
        then media attached to its comments. Videos contribute frames.
        """
        items = [m for m in self.repo.list_metadata(group_id) if m.effective_post_id == post_id]
        if items and all(m.order_index is not None for m in items):
            items.sort(key=lambda m: m.order_index)
        else:
            items.sort(key=lambda m: m.upload_date or 0)

        paths = [self.repo.find_media_file(group_id, m.item_id) for m in items]
        for comment in self.repo.get_comments(group_id, post_id):
            media_id = (comment.media or {}).get("mediaId")
            if media_id:
                paths.append(self.repo.find_media_file(group_id, media_id, folder="comment-media"))

        blocks: List[dict] = []
        for path in paths:
            if len(blocks) >= MAX_CONTEXT_IMAGES:
                break
            if not path:
                continue
            try:
                if is_video_file(path):
                    frames = extract_frames(path, self.transcoder, self.config.frame_count)
                    for frame in frames[:MAX_CONTEXT_IMAGES - len(blocks)]:
                        blocks.append(_image_block(frame.data, frame.media_type))
                else:
                    blocks.append(_image_block(resize_to_jpeg_bytes(path)))
            except (MediaProcessingError, OSError) as e:
                logger.error(f"Error processing media {path} for assistant context: {e}")

        return blocks


def _image_block(data: bytes, media_type: str = "image/jpeg") -> dict:
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{media_type};base64,{to_base64(data)}"},
    }

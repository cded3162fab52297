#!/usr/bin/env python3
"""
Tests for the upload pipeline.

Images go through a real ImageWorkerPool backed by a thread executor so
Pillow does the actual resize; ffmpeg is replaced by a mock transcoder.
"""

import os
import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

from PIL import Image

from core.config_loader import MediaConfig
from core.exceptions import NotFoundError, UploadBatchError, ValidationError
from media.pipeline import UploadFile, UploadPipeline
from media.pool import ImageWorkerPool
from tests import make_member, seed_group


class TestUploadPipeline(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.staging = os.path.join(self.tmp.name, "staging")
        os.makedirs(self.staging)

        self.repo = seed_group(self.tmp.name, "g1", [
            make_member("u1", "Ann"),
            make_member("u2", "Bob"),
        ])
        self.pool = ImageWorkerPool(max_workers=2, executor=ThreadPoolExecutor(2))
        self.transcoder = Mock()
        self.notifications = Mock()
        self.pipeline = UploadPipeline(
            repo=self.repo,
            pool=self.pool,
            transcoder=self.transcoder,
            notifications=self.notifications,
            config=MediaConfig(max_width=400, max_height=300),
            sleep=lambda seconds: None,
        )

    def tearDown(self):
        self.pool.shutdown()
        self.tmp.cleanup()

    def stage_image(self, name, size=(800, 600)):
        path = os.path.join(self.staging, name)
        Image.new("RGB", size, color=(10, 120, 200)).save(path, "PNG" if name.endswith(".png") else "JPEG")
        return UploadFile(path=path, original_name=name, mime_type="image/jpeg")

    def stage_bytes(self, name, data, mime_type):
        path = os.path.join(self.staging, name)
        with open(path, "wb") as f:
            f.write(data)
        return UploadFile(path=path, original_name=name, mime_type=mime_type)

    def upload_events(self):
        return [c[0][0] for c in self.notifications.process_event.call_args_list]

    def test_single_image(self):
        upload = self.stage_image("beach.jpg")

        items = self.pipeline.process_upload("g1", "u1", [upload])

        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertIsNone(item.metadata.post_id)
        self.assertEqual(item.item_id.split("-")[1], "u1")
        self.assertEqual((item.metadata.dimensions.width, item.metadata.dimensions.height), (400, 300))
        self.assertEqual(item.metadata.media_type, "image")
        self.assertTrue(item.media_path.endswith(f"{item.item_id}.jpg"))
        self.assertTrue(os.path.isfile(item.thumbnail_path))
        self.assertFalse(os.path.exists(upload.path))

        self.assertEqual(self.repo.get_metadata("g1", item.item_id).original_name, "beach.jpg")
        self.assertEqual(self.repo.get_unread("g1", "u2"), [item.item_id])
        self.assertEqual(self.repo.get_unread("g1", "u1"), [])

        events = self.upload_events()
        self.assertEqual(len(events), 1)
        self.assertEqual((events[0].type, events[0].item_id, events[0].uploader_id), ("upload", item.item_id, "u1"))

    def test_multi_file_upload_gets_post_id_and_order(self):
        files = [self.stage_image("a.jpg"), self.stage_image("b.png"), self.stage_image("c.jpg")]

        items = self.pipeline.process_upload("g1", "u1", files)

        post_ids = {i.metadata.post_id for i in items}
        self.assertEqual(len(post_ids), 1)
        post_id = post_ids.pop()
        self.assertTrue(post_id.startswith("post-"))
        self.assertEqual([i.metadata.order_index for i in items], [0, 1, 2])
        self.assertEqual([i.metadata.original_name for i in items], ["a.jpg", "b.png", "c.jpg"])

        events = self.upload_events()
        self.assertEqual([e.item_id for e in events], [post_id])

    def test_partial_failure_keeps_completed_files(self):
        good = self.stage_image("good.jpg")
        bad = self.stage_bytes("bad.jpg", b"definitely not a jpeg", "image/jpeg")

        with self.assertRaises(UploadBatchError) as ctx:
            self.pipeline.process_upload("g1", "u1", [good, bad])

        error = ctx.exception
        self.assertEqual([i.metadata.original_name for i in error.completed], ["good.jpg"])
        self.assertEqual(list(error.failures), ["bad.jpg"])
        self.assertEqual(len(self.repo.list_metadata("g1")), 1)
        # The post still exists, so members are told about it
        self.assertEqual(len(self.upload_events()), 1)

    def test_adding_to_existing_post_does_not_notify(self):
        first = self.pipeline.process_upload("g1", "u1", [self.stage_image("a.jpg"), self.stage_image("b.jpg")])
        post_id = first[0].metadata.post_id
        self.notifications.reset_mock()

        items = self.pipeline.process_upload("g1", "u1", [self.stage_image("c.jpg")], post_id=post_id)

        self.assertEqual(items[0].metadata.post_id, post_id)
        self.notifications.process_event.assert_not_called()

    def test_video_is_stored_as_is(self):
        self.transcoder.probe_dimensions.return_value = (1280, 720)
        upload = self.stage_bytes("clip.MOV", b"\x00\x00\x00\x14ftypqt  ", "video/quicktime")

        item = self.pipeline.process_upload("g1", "u1", [upload])[0]

        self.assertTrue(item.media_path.endswith(f"{item.item_id}.mov"))
        self.assertEqual(item.metadata.media_type, "video")
        self.assertEqual(item.metadata.mime_type, "video/quicktime")
        self.assertEqual(item.metadata.dimensions.width, 1280)
        self.transcoder.generate_thumbnail.assert_called_once_with(item.media_path, item.thumbnail_path)

    def test_validation(self):
        with self.assertRaises(ValidationError):
            self.pipeline.process_upload("g1", "u1", [])
        with self.assertRaises(ValidationError):
            self.pipeline.process_upload("g1", "u1", [self.stage_bytes("notes.txt", b"hi", "text/plain")])
        with self.assertRaises(NotFoundError):
            self.pipeline.process_upload("g1", "stranger", [self.stage_image("a.jpg")])

        too_many = [self.stage_image(f"{i}.jpg", (10, 10)) for i in range(11)]
        with self.assertRaises(ValidationError):
            self.pipeline.process_upload("g1", "u1", too_many)

    def test_collect_post_media(self):
        items = self.pipeline.process_upload("g1", "u1", [self.stage_image("a.jpg"), self.stage_image("b.jpg")])
        post_id = items[0].metadata.post_id

        blocks = self.pipeline.collect_post_media("g1", post_id)

        self.assertEqual(len(blocks), 2)
        self.assertEqual(blocks[0]["type"], "image_url")
        self.assertTrue(blocks[0]["image_url"]["url"].startswith("data:image/jpeg;base64,"))


if __name__ == "__main__":
    unittest.main()

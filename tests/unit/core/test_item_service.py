import os
import tempfile
import unittest

from core.exceptions import NotFoundError, PermissionDeniedError
from core.items import ItemService
from storage.models import Comment, Reaction
from tests import make_member, make_metadata, seed_group

T = 1700000000000


def touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(b"data")


class TestItemService(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.repo = seed_group(self.tmp.name, "g1", [
            make_member("u1", "Ann"),
            make_member("u2", "Bob"),
        ])
        self.service = ItemService(self.repo)

    def tearDown(self):
        self.tmp.cleanup()

    def add_item(self, item_id, uploader="u1", date=T, post_id=None, order_index=None):
        self.repo.save_metadata("g1", make_metadata(item_id, uploader, date, post_id, order_index))
        touch(self.repo.media_path("g1", f"{item_id}.jpg"))
        touch(self.repo.thumbnail_path("g1", item_id))

    def test_list_posts_newest_first_with_unread(self):
        self.add_item("a1", date=T, post_id="P1", order_index=0)
        self.add_item("a2", date=T + 1, post_id="P1", order_index=1)
        self.add_item("b1", uploader="u2", date=T + 10 * 60 * 1000)
        self.repo.save_unread("g1", "u1", ["b1"])

        posts = self.service.list_posts("g1", user_id="u1")

        self.assertEqual([p.post_id for p in posts], ["b1", "P1"])
        self.assertEqual([i.item_id for i in posts[1].items], ["a1", "a2"])
        self.assertTrue(posts[0].is_unread)
        self.assertFalse(posts[1].is_unread)
        self.assertEqual(posts[0].uploader.name, "Bob")

    def test_delete_singleton_item(self):
        self.add_item("s1")
        self.repo.save_reactions("g1", "s1", [Reaction(user_id="u2", reaction="🔥")])
        self.repo.save_comments("g1", "s1", [Comment(user_id="u2", comment="hi")])
        self.repo.save_unread("g1", "u2", ["s1", "other"])

        result = self.service.delete_item("g1", "s1.jpg", "u1")

        self.assertEqual(result.item_id, "s1")
        self.assertEqual(result.deleted, ["media", "thumbnail", "metadata", "reactions", "comments"])
        self.assertTrue(result.post_removed)
        self.assertIsNone(self.repo.find_media_file("g1", "s1"))
        self.assertEqual(self.repo.get_unread("g1", "u2"), ["other"])

    def test_delete_last_item_of_post_removes_post_records(self):
        self.add_item("a1", post_id="P1", order_index=0)
        self.add_item("a2", post_id="P1", order_index=1)
        self.repo.save_comments("g1", "P1", [Comment(user_id="u2", comment="nice set")])

        first = self.service.delete_item("g1", "a1", "u1")
        self.assertFalse(first.post_removed)
        self.assertTrue(self.repo.store.exists("groups", "g1", "comments", "P1.json"))

        second = self.service.delete_item("g1", "a2", "u1")
        self.assertTrue(second.post_removed)
        self.assertIn("post-comments", second.deleted)
        self.assertFalse(self.repo.store.exists("groups", "g1", "comments", "P1.json"))

    def test_delete_requires_owner(self):
        self.add_item("s1")
        with self.assertRaises(PermissionDeniedError):
            self.service.delete_item("g1", "s1", "u2")
        self.assertIsNotNone(self.repo.get_metadata("g1", "s1"))

    def test_delete_unknown(self):
        with self.assertRaises(NotFoundError):
            self.service.delete_item("g1", "ghost", "u1")

    def test_group_stats(self):
        self.add_item("a1", post_id="P1")
        self.add_item("a2", post_id="P1")
        self.add_item("b1", uploader="u2")
        self.repo.save_reactions("g1", "P1", [
            Reaction(user_id="u1", reaction="🔥"),
            Reaction(user_id="u2", reaction="🔥"),
        ])
        self.repo.save_reactions("g1", "b1", [Reaction(user_id="u1", reaction="❤️")])
        self.repo.save_comments("g1", "b1", [Comment(user_id="u1", comment="x")])

        stats = self.service.group_stats("g1")

        self.assertEqual(stats.user_count, 2)
        self.assertEqual(stats.post_count, 2)
        self.assertEqual(stats.total_reactions, 3)
        self.assertEqual(stats.top_reactions[0], {"reaction": "🔥", "count": 2})
        self.assertEqual(stats.total_comments, 1)

    def test_group_stats_unknown_group(self):
        with self.assertRaises(NotFoundError):
            self.service.group_stats("nope")


if __name__ == "__main__":
    unittest.main()

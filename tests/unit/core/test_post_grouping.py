import unittest

from core.posts import POST_GROUPING_WINDOW_MS, FeedItem, group_into_posts
from tests import make_member, make_metadata

T = 1700000000000


def item(item_id, uploader="U", date=T, post_id=None, order_index=None, unread=False):
    return FeedItem(
        metadata=make_metadata(item_id, uploader, date, post_id, order_index),
        uploader=make_member(uploader, f"User {uploader}"),
        is_unread=unread,
    )


def partition(posts):
    return [(p.post_id, [i.item_id for i in p.items]) for p in posts]


class TestGroupIntoPosts(unittest.TestCase):

    def test_explicit_post_and_singleton(self):
        a = item("1", post_id="P", order_index=0, date=T)
        b = item("2", post_id="P", order_index=1, date=T + 10)
        c = item("3", post_id="3", date=T + 10 * 60 * 1000)

        posts = group_into_posts([a, b, c])

        self.assertEqual(partition(posts), [("P", ["1", "2"]), ("3", ["3"])])

    def test_order_index_beats_input_order(self):
        posts = group_into_posts([
            item("b", post_id="P", order_index=1, date=T),
            item("a", post_id="P", order_index=0, date=T + 5),
        ])
        self.assertEqual(partition(posts), [("P", ["a", "b"])])

    def test_upload_date_order_when_any_order_index_missing(self):
        posts = group_into_posts([
            item("b", post_id="P", order_index=0, date=T + 5),
            item("a", post_id="P", date=T),
        ])
        self.assertEqual(partition(posts), [("P", ["a", "b"])])

    def test_legacy_time_window_by_uploader(self):
        posts = group_into_posts([
            item("x1", date=T),
            item("x2", date=T + POST_GROUPING_WINDOW_MS),
            item("y1", uploader="V", date=T + 1000),
            item("x3", date=T + POST_GROUPING_WINDOW_MS + 1),
        ])
        self.assertEqual(partition(posts), [("x1", ["x1", "x2"]), ("y1", ["y1"]), ("x3", ["x3"])])

    def test_time_window_excludes_explicit_posts(self):
        posts = group_into_posts([
            item("x1", date=T),
            item("x2", date=T + 1000, post_id="P"),
        ])
        self.assertEqual(partition(posts), [("x1", ["x1"]), ("P", ["x2"])])

    def test_post_fields_come_from_members(self):
        posts = group_into_posts([
            item("2", post_id="P", order_index=1, date=T + 50, uploader="U", unread=True),
            item("1", post_id="P", order_index=0, date=T, uploader="U"),
        ])
        post = posts[0]
        self.assertEqual(post.upload_date, T)
        self.assertTrue(post.is_unread)
        self.assertEqual(post.uploader.id, "U")

    def test_regrouping_flattened_output_is_stable(self):
        items = [
            item("1", post_id="P", order_index=0),
            item("2", post_id="P", order_index=1),
            item("3", date=T + 10 * 60 * 1000),
            item("4", uploader="V", date=T + 30),
            item("5", uploader="V", date=T + 60),
        ]
        first = group_into_posts(items)
        flattened = [i for p in first for i in p.items]

        self.assertEqual(partition(group_into_posts(flattened)), partition(first))

    def test_empty(self):
        self.assertEqual(group_into_posts([]), [])


if __name__ == "__main__":
    unittest.main()

import unittest

from notification.mentions import extract_mentions, strip_mention_syntax
from tests import make_member


class TestExtractMentions(unittest.TestCase):

    def setUp(self):
        self.members = [
            make_member("u1", "Ann"),
            make_member("u2", "Ann Lee"),
            make_member("u3", "Bob"),
            make_member("claude-ai", "Claude"),
        ]

    def test_longest_name_wins(self):
        self.assertEqual(extract_mentions("hey @Ann Lee!", self.members), ["u2"])

    def test_prefix_names_both_found(self):
        members = [make_member("a", "Ann"), make_member("b", "Annabelle")]
        self.assertEqual(extract_mentions("@Ann hi @Annabelle", members), ["a", "b"])

    def test_shorter_name_when_longer_does_not_match(self):
        self.assertEqual(extract_mentions("hey @Ann, look", self.members), ["u1"])

    def test_case_insensitive(self):
        self.assertEqual(extract_mentions("@bob and @CLAUDE", self.members), ["u3", "claude-ai"])

    def test_name_must_end_at_word_boundary(self):
        self.assertEqual(extract_mentions("@Bobby hi", self.members), [])
        self.assertEqual(extract_mentions("@Bob1 hi", self.members), [])

    def test_end_of_text_is_a_boundary(self):
        self.assertEqual(extract_mentions("thanks @Bob", self.members), ["u3"])

    def test_unknown_and_bare_at_ignored(self):
        self.assertEqual(extract_mentions("@nobody @ @", self.members), [])

    def test_deduplicated_in_first_mention_order(self):
        text = "@Bob @Ann @Bob @Ann"
        self.assertEqual(extract_mentions(text, self.members), ["u3", "u1"])

    def test_empty_inputs(self):
        self.assertEqual(extract_mentions("", self.members), [])
        self.assertEqual(extract_mentions("@Bob", []), [])


class TestStripMentionSyntax(unittest.TestCase):

    def test_markup_reduced_to_plain_mention(self):
        self.assertEqual(
            strip_mention_syntax("hi @[Ann Lee](u2) and @[Bob](u3)!"),
            "hi @Ann Lee and @Bob!",
        )

    def test_plain_text_untouched(self):
        self.assertEqual(strip_mention_syntax("hello @Bob"), "hello @Bob")

    def test_empty(self):
        self.assertEqual(strip_mention_syntax(""), "")
        self.assertEqual(strip_mention_syntax(None), "")


if __name__ == "__main__":
    unittest.main()

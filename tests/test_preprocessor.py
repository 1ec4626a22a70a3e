"""Tests for tweet text cleaning."""

import pytest

from tweet_importer.core import PreprocessingOptions, SEARCH_PREPROCESSING
from tweet_importer.processors import (
    clean_tweet,
    extract_domains,
    extract_hashtags,
    extract_mentions,
    is_valid_tweet,
    process_thread,
    unfurl_urls,
)

from conftest import make_post


class TestCleanTweet:
    """clean_tweet applies each step in a fixed order."""

    def test_allow_listed_hashtag_survives(self):
        """Leading mention and URL go, #AI stays."""
        options = PreprocessingOptions(
            remove_leading_mentions=True,
            remove_urls=True,
            remove_all_hashtags=True,
            keep_important_hashtags=["AI"],
        )
        assert clean_tweet("@bob check this http://x.co #AI", options) == "check this #AI"

    def test_non_allow_listed_hashtags_removed(self):
        options = PreprocessingOptions(keep_important_hashtags=["AI"])
        assert clean_tweet("shipping today #AI #launch #AIrdrop", options) == "shipping today #AI"

    def test_retweet_prefix_removed(self):
        assert clean_tweet("RT @someone: great thread here") == "great thread here"

    def test_only_leading_mentions_removed_by_default(self):
        assert clean_tweet("@a @b thanks to @c for this") == "thanks to @c for this"

    def test_all_mentions_removed_when_enabled(self):
        options = PreprocessingOptions(remove_all_mentions=True)
        assert clean_tweet("@a thanks to @c for this", options) == "thanks to for this"

    def test_whitespace_collapsed(self):
        assert clean_tweet("  lots   of\n\nspace\there  ") == "lots of space here"

    def test_below_min_length_is_empty(self):
        assert clean_tweet("ok") == ""
        assert clean_tweet("@bob http://x.co") == ""

    def test_min_length_zero_keeps_short_text(self):
        assert clean_tweet("ok", PreprocessingOptions(min_length=0)) == "ok"

    def test_empty_input(self):
        assert clean_tweet("") == ""

    def test_emoji_conversion(self):
        options = PreprocessingOptions(convert_emojis=True)
        assert clean_tweet("launch day 🚀🔥", options) == "launch day rocket fire"

    def test_emojis_left_alone_by_default(self):
        assert clean_tweet("launch day 🚀") == "launch day 🚀"

    def test_deterministic(self):
        """Same text and options always give the same output."""
        text = "@x RT thoughts on #ML and #AI https://t.co/abc 🔥"
        options = PreprocessingOptions(keep_important_hashtags=["AI", "ML"], convert_emojis=True)
        assert len({clean_tweet(text, options) for _ in range(5)}) == 1

    def test_search_preset_keeps_hashtags(self):
        assert clean_tweet("#python tips", SEARCH_PREPROCESSING) == "#python tips"

    def test_urls_unfurled_when_kept(self):
        text = "read https://t.co/abc now"
        entities = {"urls": [{"indices": [5, 21], "expanded_url": "https://example.com/post"}]}
        options = PreprocessingOptions(remove_urls=False)
        assert clean_tweet(text, options, entities) == "read https://example.com/post now"


class TestUnfurlUrls:

    def test_multiple_urls_applied_back_to_front(self):
        text = "a https://t.co/1 b https://t.co/2"
        entities = {
            "urls": [
                {"indices": [2, 16], "expanded_url": "https://one.example"},
                {"indices": [19, 33], "expanded_url": "https://two.example"},
            ]
        }
        assert unfurl_urls(text, entities) == "a https://one.example b https://two.example"

    def test_out_of_range_indices_ignored(self):
        entities = {"urls": [{"indices": [50, 80], "expanded_url": "https://x.example"}]}
        assert unfurl_urls("short", entities) == "short"

    def test_no_entities(self):
        assert unfurl_urls("text", None) == "text"

    def test_malformed_indices_skipped(self):
        text = "see https://t.co/ok"
        entities = {
            "urls": [
                {"indices": ["x", "y"], "expanded_url": "https://bad.example"},
                {"indices": 7, "expanded_url": "https://bad.example"},
                {"indices": [None, 3], "expanded_url": "https://bad.example"},
                "not an entity",
                {"indices": [4, 19], "expanded_url": "https://ok.example"},
            ]
        }
        assert unfurl_urls(text, entities) == "see https://ok.example"
        options = PreprocessingOptions(remove_urls=False)
        assert clean_tweet(text, options, entities) == "see https://ok.example"


class TestProcessThread:

    def test_posts_joined_with_single_space(self):
        posts = [make_post(1, "first part of it"), make_post(2, "second part", minutes=1, reply_to=1)]
        assert process_thread(posts) == "first part of it second part"

    def test_empty_members_skipped(self):
        posts = [make_post(1, "the real content"), make_post(2, "@bob", minutes=1, reply_to=1)]
        assert process_thread(posts) == "the real content"

    def test_combine_disabled_uses_root_only(self):
        posts = [make_post(1, "root text here"), make_post(2, "reply text", minutes=1, reply_to=1)]
        options = PreprocessingOptions(combine_threads=False)
        assert process_thread(posts, options) == "root text here"

    def test_no_posts(self):
        assert process_thread([]) == ""


class TestHelpers:

    def test_is_valid_tweet(self):
        assert is_valid_tweet("a perfectly fine tweet")
        assert not is_valid_tweet("http://x.co")
        assert not is_valid_tweet("!!! ??? ...")

    def test_extract_hashtags(self):
        entities = {"hashtags": [{"text": "Python"}, {"text": "AI"}, {}]}
        assert extract_hashtags(entities) == ["python", "ai"]

    def test_extract_mentions(self):
        entities = {"user_mentions": [{"screen_name": "Bob"}]}
        assert extract_mentions(entities) == ["bob"]
        assert extract_mentions(None) == []

    @pytest.mark.parametrize("url,domain", [
        ("https://www.example.com/a", "example.com"),
        ("http://blog.example.org", "blog.example.org"),
    ])
    def test_extract_domains(self, url, domain):
        assert extract_domains({"urls": [{"expanded_url": url}]}) == [domain]

"""Tests for linkspider.patterns module."""

import re

from linkspider.patterns import compile_pattern, first_matching_pattern, is_relative, should_fetch

ROOT = "https://site.test"


class TestCompilePattern:
    def test_glob_passes_through(self):
        assert compile_pattern("/docs/*") == "/docs/*"

    def test_regex_prefix(self):
        compiled = compile_pattern(r"re:\.pdf$")
        assert isinstance(compiled, re.Pattern)
        assert compiled.pattern == r"\.pdf$"


class TestIsRelative:
    def test_path_glob(self):
        assert is_relative("/private/*")

    def test_absolute_glob(self):
        assert not is_relative("https://site.test/private/*")

    def test_regex(self):
        assert is_relative(re.compile("^/api/"))
        assert not is_relative(re.compile("^https://"))


class TestFirstMatchingPattern:
    def test_no_patterns(self):
        assert first_matching_pattern([], "/anything", ROOT) is None

    def test_relative_glob_on_relative_candidate(self):
        assert first_matching_pattern(["/private/*"], "/private/secret", ROOT) == "/private/*"

    def test_relative_glob_on_absolute_candidate(self):
        assert first_matching_pattern(["/private/*"], "https://site.test/private/secret", ROOT) == "/private/*"

    def test_relative_glob_other_host(self):
        assert first_matching_pattern(["/private/*"], "https://other.test/private/secret", ROOT) is None

    def test_configured_order_wins(self):
        patterns = ["/docs/*", "*"]
        assert first_matching_pattern(patterns, "/docs/intro", ROOT) == "/docs/*"
        assert first_matching_pattern(patterns, "/blog/post", ROOT) == "*"

    def test_absolute_glob(self):
        pattern = "https://site.test/blog/*"
        assert first_matching_pattern([pattern], "https://site.test/blog/post", ROOT) == pattern
        assert first_matching_pattern([pattern], "https://site.test/docs/post", ROOT) is None

    def test_regex_string(self):
        assert first_matching_pattern([r"re:\.pdf$"], "https://site.test/a.pdf", ROOT) == r"re:\.pdf$"

    def test_anchored_relative_regex(self):
        pattern = "re:^/api/"
        assert first_matching_pattern([pattern], "https://site.test/api/v1", ROOT) == pattern
        assert first_matching_pattern([pattern], "https://site.test/docs/api/", ROOT) is None


class TestShouldFetch:
    def test_no_patterns(self):
        assert should_fetch("/anything", ROOT)

    def test_excluded(self):
        assert not should_fetch("/private/secret", ROOT, exclude_patterns=["/private/*"])

    def test_include_required(self):
        kwargs = {"include_patterns": ["/public/*"], "exclude_patterns": ["/private/*"]}
        assert not should_fetch("/other", ROOT, **kwargs)
        assert not should_fetch("/private/secret", ROOT, **kwargs)
        assert should_fetch("/public/page", ROOT, **kwargs)

    def test_exclude_beats_include(self):
        assert not should_fetch(
            "https://site.test/public/draft",
            ROOT,
            include_patterns=["/public/*"],
            exclude_patterns=["*/draft"],
        )

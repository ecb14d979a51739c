"""
URL pattern matching for include/exclude filters.
"""
from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Optional, Sequence, Union
from urllib.parse import urljoin, urlparse

Pattern = Union[str, re.Pattern]

REGEX_PREFIX = "re:"

_SCHEME_PREFIX = re.compile(r"\^?[a-z][a-z0-9+.\-]*:", re.IGNORECASE)


def compile_pattern(pattern: Pattern) -> Pattern:
    """Turn a configured ``re:...`` string into a compiled regex; globs pass through."""
    if isinstance(pattern, str) and pattern.startswith(REGEX_PREFIX):
        return re.compile(pattern[len(REGEX_PREFIX):])
    return pattern


def is_relative(pattern: Pattern) -> bool:
    """A pattern is relative when it carries no scheme."""
    if isinstance(pattern, re.Pattern):
        return not _SCHEME_PREFIX.match(pattern.pattern)
    return not urlparse(pattern).scheme


def _matches(pattern: Pattern, value: str) -> bool:
    if isinstance(pattern, re.Pattern):
        return pattern.search(value) is not None
    return fnmatchcase(value, pattern)


def _absolute_pattern(pattern: Pattern, root_url: str) -> Pattern:
    if isinstance(pattern, re.Pattern):
        # Anchor the regex to the root so "^/docs" becomes "^https://host/docs".
        source = pattern.pattern
        anchored = source.startswith("^")
        body = source[1:] if anchored else source
        prefix = re.escape(root_url.rstrip("/"))
        return re.compile(("^" if anchored else "") + prefix + body, pattern.flags)
    return urljoin(root_url, pattern)


def first_matching_pattern(
    patterns: Sequence[Pattern],
    candidate_url: str,
    root_url: str,
) -> Optional[Pattern]:
    """
    Return the first pattern (in configured order) matching the candidate URL.

    Each pattern is tested against the candidate as given. Relative patterns
    are also tested in their absolute form against the candidate resolved
    against ``root_url``, so ``/private/*`` matches both ``/private/x`` and
    ``https://host/private/x``.
    """
    absolute_candidate = urljoin(root_url, candidate_url)
    for raw in patterns:
        pattern = compile_pattern(raw)
        if _matches(pattern, candidate_url):
            return raw
        if is_relative(pattern) and _matches(_absolute_pattern(pattern, root_url), absolute_candidate):
            return raw
    return None


def should_fetch(
    candidate_url: str,
    root_url: str,
    include_patterns: Sequence[Pattern] = (),
    exclude_patterns: Sequence[Pattern] = (),
) -> bool:
    """Apply exclude patterns, then include patterns, to decide whether to fetch."""
    if exclude_patterns and first_matching_pattern(exclude_patterns, candidate_url, root_url) is not None:
        return False
    if include_patterns and first_matching_pattern(include_patterns, candidate_url, root_url) is None:
        return False
    return True

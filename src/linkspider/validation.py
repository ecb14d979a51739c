"""
Page title validation.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from bs4 import BeautifulSoup

from linkspider.patterns import compile_pattern


@dataclass(slots=True, frozen=True)
class TitleValidationFailure:
    title_pattern: str
    title_text: str


def extract_title(soup: BeautifulSoup) -> str:
    """Stripped text of the first <title>, or an empty string."""
    if soup.title is None:
        return ""
    return soup.title.get_text().strip()


class HtmlValidator:
    def __init__(self, title_pattern: Optional[Union[str, re.Pattern]] = None) -> None:
        title_pattern = compile_pattern(title_pattern)
        if isinstance(title_pattern, str):
            title_pattern = re.compile(title_pattern)
        self.title_pattern: Optional[re.Pattern] = title_pattern

    def title_validation_failure(self, soup: BeautifulSoup) -> Optional[TitleValidationFailure]:
        """Return failure details when the page title does not match, else None."""
        if self.title_pattern is None:
            return None
        title_text = extract_title(soup)
        if self.title_pattern.search(title_text):
            return None
        return TitleValidationFailure(title_pattern=self.title_pattern.pattern, title_text=title_text)

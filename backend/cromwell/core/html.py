"""
Input sanitizing helpers used by repositories
"""
import re
from html.parser import HTMLParser
from typing import Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

# ASCII word characters only: non-Latin letters are stripped as well
NON_WORD_PATTERN = re.compile(r"\W", re.ASCII)

_email_adapter = TypeAdapter(EmailStr)


class _TextExtractor(HTMLParser):
    """Collects text nodes, dropping every tag and script/style bodies"""

    _SKIP = {"script", "style"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.parts = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self._SKIP:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in self._SKIP and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data):
        if not self._skip_depth:
            self.parts.append(data)


def strip_tags(value: Optional[str]) -> Optional[str]:
    """Remove all HTML tags from a string. Empty values pass through unchanged."""
    if not value:
        return value

    parser = _TextExtractor()
    parser.feed(value)
    parser.close()
    return "".join(parser.parts)


def validate_email(email: Optional[str]) -> bool:
    if not email:
        return False
    try:
        _email_adapter.validate_python(email)
    except ValidationError:
        return False
    return True


def strip_non_word(value) -> str:
    """Normalize phone-like values: numbers become strings, non-word chars are removed"""
    return NON_WORD_PATTERN.sub("", str(value))

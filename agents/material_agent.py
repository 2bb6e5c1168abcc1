import logging
from typing import Optional

import lxml.html
import requests
from lxml.etree import ParserError
from readability import Document
from readability.readability import Unparseable

from models.quiz_models import SourceDescriptor
from utils.errors import FetchError


logger = logging.getLogger(__name__)

# readability's placeholder when the page has no <title>
NO_TITLE = "[no-title]"


class MaterialAgent:
    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        """
        Turns a source descriptor into plain study text.
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def acquire(self, source: SourceDescriptor) -> str:
        if source.kind == "topic":
            return source.value
        return self.extract_readable_text(source.value)

    def extract_readable_text(self, url: str) -> str:
        """
        Download a page and return its readable text.

        Returns the article title and body joined by a blank line, the raw
        <body> text when readability finds nothing, or "" for an empty page.

        Raises:
            FetchError: if the request fails or the status is not 2xx.
        """
        try:
            response = self.session.get(url, allow_redirects=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Fetch failed: {e}") from e

        if not response.ok:
            raise FetchError(f"Fetch failed {response.status_code}")

        html = response.text
        title, article_text = _readable_parts(html, url)
        text = "\n\n".join(part for part in (title, article_text) if part)
        if text:
            logger.info(f"Extracted {len(text)} characters of article text from {url}")
            return text

        logger.info(f"Readability found no article in {url}, falling back to body text")
        return _body_text(html)


def _readable_parts(html: str, url: str):
    try:
        document = Document(html, url=url)
        title = document.title()
        summary = document.summary(html_partial=True)
    except (Unparseable, ParserError, ValueError) as e:
        logger.warning(f"Readability could not parse {url}: {e}")
        return "", ""

    if title == NO_TITLE:
        title = ""
    return title.strip(), _html_text(summary)


def _html_text(fragment: str) -> str:
    if not fragment or not fragment.strip():
        return ""
    try:
        return lxml.html.fromstring(fragment).text_content().strip()
    except (ParserError, ValueError):
        return ""


def _body_text(html: str) -> str:
    if not html or not html.strip():
        return ""
    try:
        root = lxml.html.document_fromstring(html)
    except (ParserError, ValueError):
        return ""
    body = root.find("body")
    if body is None:
        return ""
    return body.text_content().strip()

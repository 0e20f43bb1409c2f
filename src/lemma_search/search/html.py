"""Title and body-text extraction from stored page HTML."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag


_INVISIBLE_TAGS = ("script", "style", "noscript", "template")


@dataclass(frozen=True, slots=True)
class ExtractedText:
    title: str
    body_text: str

    def joined(self) -> str:
        """Title and body as one blob, separated so words never fuse."""
        if not self.title:
            return self.body_text
        if not self.body_text:
            return self.title
        return f"{self.title} {self.body_text}"


def extract_text(content: str) -> ExtractedText:
    """Parse ``content`` and return its ``<title>`` and visible body text.

    Documents without a ``<body>`` fall back to the text of the whole tree.
    Whitespace runs collapse to single spaces.
    """
    soup = BeautifulSoup(content or "", "html.parser")
    for tag in soup(_INVISIBLE_TAGS):
        tag.decompose()

    title = ""
    title_tag = _document_title(soup)
    if title_tag is not None:
        title = _collapse(title_tag.get_text(" "))
        title_tag.decompose()

    root = soup.body if soup.body is not None else soup
    body_text = _collapse(root.get_text(" "))
    return ExtractedText(title=title, body_text=body_text)


def _document_title(soup: BeautifulSoup) -> Tag | None:
    # <title> inside <svg> or the body names a graphic, not the document
    if soup.head is not None:
        return soup.head.find("title")
    return next((tag for tag in soup.find_all("title") if tag.find_parent(["body", "svg"]) is None), None)


def _collapse(text: str) -> str:
    return " ".join(text.split())

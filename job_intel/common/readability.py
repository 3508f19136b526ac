"""
Reader-mode parsing for job postings and company pages.

Strips page chrome (scripts, navigation, headers, footers, forms) and picks
the main content container, the way browser reader modes do. Shared by the
job extractor (Layer 1) and the research aggregator (Layer 3).

Usage:
    article = parse_readable(html)
    article.title         # best in-content heading, else <title>
    article.text_content  # newline-separated plain text of the main content
"""

import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup, Tag

# Elements that never carry article content
BOILERPLATE_TAGS = [
    "script", "style", "noscript", "template", "svg", "iframe",
    "nav", "header", "footer", "aside", "form",
]

BYLINE_CLASS_PATTERN = re.compile(r"byline|author", re.IGNORECASE)

_INLINE_SPACE_RE = re.compile(r"[ \t\r\f\v\u00a0]+")


@dataclass
class ReadableArticle:
    """Reader-mode view of an HTML page."""
    title: str
    byline: str
    text_content: str
    page_title: str       # <title> text
    first_heading: str    # first <h1> anywhere, even inside page chrome
    soup: BeautifulSoup   # full document, boilerplate removed
    root: Tag             # main content container


def _clean_text(node: Tag) -> str:
    """Plain text of a node, one non-empty line per block."""
    lines = []
    for line in node.get_text("\n").split("\n"):
        line = _INLINE_SPACE_RE.sub(" ", line).strip()
        if line:
            lines.append(line)
    return "\n".join(lines)


def _find_root(soup: BeautifulSoup) -> Tag:
    for candidate in (
        soup.find("article"),
        soup.find("main"),
        soup.find(attrs={"role": "main"}),
        soup.body,
    ):
        if candidate is not None:
            return candidate
    return soup


def _find_byline(soup: BeautifulSoup, root: Tag) -> str:
    author_meta = soup.find("meta", attrs={"name": "author"})
    if author_meta and author_meta.get("content"):
        return author_meta["content"].strip()

    author_link = root.find(attrs={"rel": "author"})
    if author_link is not None:
        return author_link.get_text(" ", strip=True)

    byline = root.find(class_=BYLINE_CLASS_PATTERN)
    if byline is not None:
        return byline.get_text(" ", strip=True)
    return ""


def parse_readable(html: str) -> ReadableArticle:
    """
    Parse a page into its reader-mode article.

    Args:
        html: Raw page markup

    Returns:
        ReadableArticle (empty strings when the page has no content)
    """
    soup = BeautifulSoup(html or "", "html.parser")

    page_title = soup.title.get_text(" ", strip=True) if soup.title is not None else ""
    first_h1 = soup.find("h1")
    first_heading = first_h1.get_text(" ", strip=True) if first_h1 is not None else ""

    # Byline and headings often sit inside page chrome; read them before stripping
    byline = _find_byline(soup, _find_root(soup))

    for tag in soup.find_all(BOILERPLATE_TAGS):
        tag.decompose()

    root = _find_root(soup)

    heading = root.find("h1")
    if heading is not None:
        title = heading.get_text(" ", strip=True)
    else:
        title = page_title

    return ReadableArticle(
        title=title,
        byline=byline,
        text_content=_clean_text(root),
        page_title=page_title,
        first_heading=first_heading,
        soup=soup,
        root=root,
    )

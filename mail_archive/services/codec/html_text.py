"""Lossy HTML to Markdown projection for message bodies."""

import logging

from bs4 import BeautifulSoup
from markdownify import markdownify

logger = logging.getLogger(__name__)

MARKDOWN_OPTIONS = {
    "heading_style": "ATX",
    "bullets": "-",
    "strip": ["span", "font"],
}


def html_to_markdown(html: str) -> str:
    """
    Convert an HTML body to Markdown.

    Scripts, styles and 1x1 tracking pixels are removed first. The result is
    deterministic for a given input but not a faithful rendering.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style", "head", "title", "meta"]):
        element.decompose()

    for pixel in soup.find_all("img", {"width": "1", "height": "1"}):
        pixel.decompose()

    try:
        markdown = markdownify(str(soup), **MARKDOWN_OPTIONS)
    except Exception as e:
        logger.error("Failed to convert HTML to markdown: %s", e)
        return soup.get_text("\n")

    while "\n\n\n" in markdown:
        markdown = markdown.replace("\n\n\n", "\n\n")
    return markdown.strip()

"""
Markdown to email-safe HTML conversion.

Markdown content files (.md/.markdown) are rendered with Python-Markdown,
adjusted for mail clients (links open in a new tab, images are capped to
the viewport width, headings carry inline sizes) and sanitised with bleach
so no script or external stylesheet survives.
"""
import html
from pathlib import Path
from typing import Optional
from xml.etree.ElementTree import Element

import bleach
import markdown
from bleach.css_sanitizer import CSSSanitizer
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor


MARKDOWN_EXTENSIONS = (".md", ".markdown")
HTML_EXTENSIONS = (".htm", ".html")

HEADING_SIZES = {1: "24px", 2: "20px", 3: "18px", 4: "16px", 5: "14px", 6: "12px"}

ALLOWED_TAGS = [
    "a", "abbr", "b", "blockquote", "br", "code", "del", "em", "h1", "h2",
    "h3", "h4", "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre",
    "strong", "table", "tbody", "td", "th", "thead", "tr", "ul",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "title", "style"],
    "h1": ["style"], "h2": ["style"], "h3": ["style"],
    "h4": ["style"], "h5": ["style"], "h6": ["style"],
    "td": ["align"], "th": ["align"],
}

ALLOWED_PROTOCOLS = ["http", "https", "mailto", "cid", "data"]

css_sanitizer = CSSSanitizer(allowed_css_properties=["max-width", "font-size", "margin"])


class _EmailTreeprocessor(Treeprocessor):
    """Adds mail-client friendly attributes to links, images and headings."""

    def run(self, root: Element) -> None:
        for element in root.iter():
            if element.tag == "a":
                element.set("target", "_blank")
                element.set("rel", "noopener noreferrer")
            elif element.tag == "img":
                element.set("style", "max-width:100%;")
            elif element.tag in ("h1", "h2", "h3", "h4", "h5", "h6"):
                size = HEADING_SIZES[int(element.tag[1])]
                element.set("style", f"font-size:{size};margin:16px 0 8px 0;")


class EmailExtension(Extension):
    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.treeprocessors.register(_EmailTreeprocessor(md), "email_attributes", 5)


def markdown_to_html(text: str) -> str:
    """
    Convert Markdown to sanitised, email-safe HTML.

    Args:
        text: Markdown source.

    Returns:
        An HTML fragment (no <html>/<body> wrapper).
    """
    rendered = markdown.markdown(text, extensions=["extra", "sane_lists", EmailExtension()])
    return bleach.clean(
        rendered,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        css_sanitizer=css_sanitizer,
        strip=True,
    )


def wrap_html_for_email(fragment: str, title: Optional[str] = None) -> str:
    """
    Wrap an HTML fragment in a minimal email document.

    Full documents (starting with <!doctype or <html) are returned unchanged.
    """
    head = fragment.strip().lower()
    if head.startswith("<!doctype") or head.startswith("<html"):
        return fragment

    title_tag = f"<title>{html.escape(title)}</title>" if title else ""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"  {title_tag}\n"
        "</head>\n"
        '<body style="font-family:Arial,sans-serif;font-size:14px;color:#333;margin:0;padding:16px;">\n'
        f"{fragment}\n"
        "</body>\n"
        "</html>"
    )


def get_content_type(path: Path) -> str:
    """Return 'markdown', 'html' or 'text' based on the file extension."""
    suffix = Path(path).suffix.lower()
    if suffix in MARKDOWN_EXTENSIONS:
        return "markdown"
    if suffix in HTML_EXTENSIONS:
        return "html"
    return "text"

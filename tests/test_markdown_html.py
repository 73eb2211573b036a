from pathlib import Path

from sendemail.utils.markdown_html import get_content_type, markdown_to_html, wrap_html_for_email


def test_links_open_in_new_tab():
    html = markdown_to_html("[site](https://example.com)")
    assert 'href="https://example.com"' in html
    assert 'target="_blank"' in html
    assert 'rel="noopener noreferrer"' in html


def test_images_are_capped_and_headings_sized():
    html = markdown_to_html("# Title\n\n![logo](cid:logo)")
    assert 'src="cid:logo"' in html
    assert "max-width:100%" in html
    assert "font-size:24px" in html


def test_scripts_are_removed():
    html = markdown_to_html("Hello\n\n<script>alert(1)</script>\n\n[x](javascript:alert(1))")
    assert "<script" not in html
    assert "javascript:" not in html
    assert "Hello" in html


def test_lists_and_emphasis():
    html = markdown_to_html("- **one**\n- *two*")
    assert "<ul>" in html
    assert "<strong>one</strong>" in html
    assert "<em>two</em>" in html


def test_wrap_html_for_email():
    wrapped = wrap_html_for_email("<p>Hi</p>", title="News & Notes")
    assert wrapped.startswith("<!DOCTYPE html>")
    assert "<title>News &amp; Notes</title>" in wrapped
    assert "<p>Hi</p>" in wrapped

    document = "<html><body>x</body></html>"
    assert wrap_html_for_email(document) == document


def test_content_type_by_extension():
    assert get_content_type(Path("a.MD")) == "markdown"
    assert get_content_type(Path("a.markdown")) == "markdown"
    assert get_content_type(Path("a.htm")) == "html"
    assert get_content_type(Path("a.txt")) == "text"
    assert get_content_type(Path("noext")) == "text"

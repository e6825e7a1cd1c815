"""Tests for readable-content reduction and Markdown rendering."""
from pagescope.services.markdown import extract_readable, html_to_markdown, readable_markdown

from tests.conftest import PRODUCT_PAGE


class TestHtmlToMarkdown:
    def test_atx_headings_and_star_bullets(self):
        md = html_to_markdown("<h2>Specs</h2><ul><li>Light</li><li>Strong</li></ul>")
        assert "## Specs" in md
        assert "* Light" in md
        assert "* Strong" in md

    def test_fenced_code_keeps_language(self):
        md = html_to_markdown('<pre><code class="language-python">print(1)\n</code></pre>')
        assert "```python\nprint(1)\n```" in md

    def test_links_and_images(self):
        md = html_to_markdown(
            '<p><a href="https://example.com" title="Home">Example</a>'
            '<img src="/a.png" alt="A"><a href="#">skip</a></p>'
        )
        assert '[Example](https://example.com "Home")' in md
        assert "![A](/a.png)" in md
        assert "[skip]" not in md

    def test_blank_line_runs_collapse(self):
        md = html_to_markdown("<p>one</p><br><br><br><br><p>two</p>")
        assert "\n\n\n" not in md


class TestReadableMarkdown:
    def test_main_container_with_title(self):
        html, md = readable_markdown(PRODUCT_PAGE, "https://example.com/products/blue-widget")
        assert html.startswith("<main>")
        assert md.startswith("# Blue Widget\n\n")
        assert "aluminium" in md
        assert "* Anodised finish" in md
        assert "[Independent review](https://partner.example.org/review)" in md

    def test_boilerplate_is_removed(self):
        html, md = readable_markdown(
            "<html><body><main><nav>Menu Menu Menu</nav><p>%s</p></main></body></html>"
            % ("Readable sentence. " * 20)
        )
        assert "Menu" not in md
        assert "<nav>" not in html

    def test_title_falls_back_to_document_title(self):
        page = "<html><head><title>Doc title</title></head><body><article><p>%s</p></article></body></html>" % (
            "Article text goes here. " * 15
        )
        title, _ = extract_readable(page)
        assert title == "Doc title"

    def test_empty_page(self):
        assert readable_markdown("<html><body></body></html>") == (None, None)

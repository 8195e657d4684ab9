"""Tests for crawlmcp.sanitizer: HTML content filter."""

import lxml.html
import pytest

from crawlmcp.sanitizer import clean_title, sanitize_html


def _tags(html: str) -> list[str]:
    """Element tags of sanitized output, in document order."""
    if not html:
        return []
    root = lxml.html.fragment_fromstring(html, create_parent="div")
    return [el.tag for el in root.iterdescendants() if isinstance(el.tag, str)]


class TestSubtreeRemoval:
    """Non-content subtrees disappear with their content."""

    @pytest.mark.parametrize(
        "markup",
        [
            "<script>alert(1)</script>",
            "<style>body{color:red}</style>",
            "<svg><circle r='4'/></svg>",
            "<i>decorative</i>",
            '<input type="text" value="secret">',
            '<iframe src="https://evil.example"></iframe>',
            "<noscript>enable js</noscript>",
            "<textarea>draft</textarea>",
            "<select><option>1</option></select>",
        ],
    )
    def test_removed_entirely(self, markup):
        assert sanitize_html(f"<div>{markup}</div>") == ""

    def test_text_around_removed_element_kept(self):
        assert sanitize_html("<p>Hello <script>x()</script>world</p>") == "<p>Hello world</p>"

    def test_italic_removed_with_its_text(self):
        assert sanitize_html("<p>Hello <i>there</i> world</p>") == "<p>Hello  world</p>"

    def test_emphasis_kept(self):
        assert sanitize_html("<p><em>important</em></p>") == "<p><em>important</em></p>"

    def test_nested_disallowed_elements(self):
        markup = (
            "<div><style><script>a()</script></style>"
            "<svg><script>b()</script><style>c{}</style></svg>"
            "<p>keep<input><script><svg></svg></script></p></div>"
        )
        assert sanitize_html(markup) == "<div><p>keep</p></div>"

    def test_head_of_full_document_removed(self):
        doc = (
            "<!DOCTYPE html><html><head><title>T</title><meta charset='utf-8'>"
            "<script>x</script><style>y</style></head>"
            '<body class="c"><h1 id="t">Hi</h1></body></html>'
        )
        assert sanitize_html(doc) == '<h1 id="t">Hi</h1>'

    def test_stray_head_in_fragment_removed(self):
        result = sanitize_html("<head><title>Secret title</title><link rel='x'></head><p>body</p>")
        assert "Secret title" not in result
        assert result == "<p>body</p>"

    def test_uppercase_tags(self):
        assert sanitize_html("<DIV><SCRIPT>x()</SCRIPT><P>ok</P></DIV>") == "<div><p>ok</p></div>"

    def test_comments_removed(self):
        assert sanitize_html("<p>a<!-- <script>x()</script> -->b</p>") == "<p>ab</p>"


class TestRawTextElements:
    """Elements whose content the parser keeps as raw text."""

    @pytest.mark.parametrize(
        "markup",
        [
            "<xmp><script>a</script></xmp>",
            "<xmp>a &amp; b</xmp>",
            "<listing>a &lt; b</listing>",
            "<noembed><b>x</b></noembed>",
        ],
    )
    def test_removed_and_stable(self, markup):
        once = sanitize_html(f"<p>keep</p>{markup}")
        assert once == "<p>keep</p>"
        assert sanitize_html(once) == once

    def test_plaintext_swallows_rest_of_page(self):
        once = sanitize_html("<p>a</p><plaintext>rest &amp; more")
        assert once == "<p>a</p>"
        assert sanitize_html(once) == once

    def test_full_document_with_plaintext(self):
        doc = "<html><body><div>a</div><plaintext><b>x</b></body></html>"
        assert sanitize_html(doc) == "<div>a</div>"


class TestTagAllowList:
    """Tags outside the allow-list are unwrapped: text and children stay."""

    def test_unwrapped_tags(self):
        markup = "<form><button>Go</button></form><video>v</video><custom-el>c</custom-el>"
        assert sanitize_html(markup) == "<button>Go</button>vc"

    @pytest.mark.parametrize("tag", ["section", "article", "nav", "canvas", "audio", "label", "font", "center"])
    def test_text_survives_unwrap(self, tag):
        assert sanitize_html(f"<div><{tag}>text</{tag}></div>") == "<div>text</div>"

    def test_children_kept_in_place(self):
        markup = '<div>a<section id="s">b<p>c</p>d</section>e</div>'
        assert sanitize_html(markup) == "<div>ab<p>c</p>de</div>"

    def test_nested_unwrap(self):
        assert sanitize_html("<main><article><header>T</header></article></main>") == "T"

    @pytest.mark.parametrize(
        "tag",
        ["a", "p", "div", "span", "ul", "ol", "li", "strong", "em", "b", "u", "small", "sub", "sup",
         "code", "pre", "blockquote", "button", "h1", "h2", "h3", "h4", "h5", "h6"],
    )
    def test_allowed_tags_kept(self, tag):
        assert sanitize_html(f"<{tag}>x</{tag}>") == f"<{tag}>x</{tag}>"

    def test_table_kept(self):
        markup = "<table><thead><tr><th>h</th></tr></thead><tbody><tr><td>d</td></tr></tbody></table>"
        assert sanitize_html(markup) == markup

    def test_unwrapped_element_loses_its_id(self):
        assert sanitize_html('<p><label id="l">name</label></p>') == "<p>name</p>"

    def test_empty_unknown_element_leaves_nothing(self):
        assert sanitize_html("<div><wbr><canvas></canvas></div>") == ""


class TestMetadataRemoval:
    """meta, link and base elements."""

    def test_meta_removed(self):
        assert sanitize_html('<div><meta name="x" content="y">text</div>') == "<div>text</div>"

    def test_link_and_base_removed(self):
        assert sanitize_html('<p><link rel="stylesheet" href="a.css"><base href="/">t</p>') == "<p>t</p>"


class TestDataUriImages:
    """Inline base64 payloads."""

    def test_base64_image_removed(self):
        assert sanitize_html('<p>x<img src="data:image/png;base64,AAAA"></p>') == "<p>x</p>"

    def test_base64_image_anywhere(self):
        markup = '<ul><li><a href="https://a.example"><img src="data:image/gif;base64,R0lGOD=="></a></li></ul>'
        assert "img" not in _tags(sanitize_html(markup))

    def test_disguised_data_uri_removed(self):
        markup = '<p>x<img src="  DATA:image/png;charset=utf-8;base64,AAAA" alt="a"></p>'
        assert sanitize_html(markup) == "<p>x</p>"

    def test_remote_image_kept_with_src_and_alt(self):
        markup = '<img src="https://x/y.png" alt="a">'
        assert sanitize_html(markup) == '<img src="https://x/y.png" alt="a">'

    def test_remote_image_extra_attributes_dropped(self):
        markup = '<img alt="a" width="10" src="https://x/y.png" srcset="data:image/png;base64,AAAA 2x">'
        assert sanitize_html(markup) == '<img alt="a" src="https://x/y.png">'

    def test_data_uri_attribute_dropped(self):
        assert sanitize_html('<div id="data:image/png;base64,AAAA">x</div>') == "<div>x</div>"

    @pytest.mark.parametrize(
        "value",
        [
            "data:text/html,<script>alert(1)</script>",
            "data:text/plain,hi",
            " DaTa:,x",
            "da\tta:text/plain,hi",
        ],
    )
    def test_non_base64_data_uri_attribute_dropped(self, value):
        assert sanitize_html(f"<div id='{value}'>x</div>") == "<div>x</div>"

    def test_data_uri_alt_dropped_src_kept(self):
        markup = '<img src="https://x/y.png" alt="data:text/plain,logo">'
        assert sanitize_html(markup) == '<img src="https://x/y.png">'

    def test_payload_in_alt_scrubbed(self):
        markup = '<img src="https://x/y.png" alt="logo data:image/png;base64,iVBORw0KGgo=">'
        assert sanitize_html(markup) == '<img src="https://x/y.png" alt="logo ">'

    def test_payload_in_text_scrubbed(self):
        assert sanitize_html("<pre>blob: data:image/png;base64,iVBORw0KGgoAAAANSUhEUg== end</pre>") == (
            "<pre>blob:  end</pre>"
        )

    def test_metadata_word_not_mistaken_for_uri(self):
        assert sanitize_html("<p>metadata:base64,x</p>") == "<p>metadata:base64,x</p>"


class TestAttributeAllowList:
    """Allow-listed attributes only."""

    def test_event_handlers_and_data_attrs_dropped(self):
        assert sanitize_html('<div onclick="evil()" id="x" data-foo="y">t</div>') == '<div id="x">t</div>'

    def test_style_and_class_dropped(self):
        assert sanitize_html('<p class="c" style="color:red">t</p>') == "<p>t</p>"

    def test_href_only_on_anchor(self):
        assert sanitize_html('<div href="https://a.example">t</div>') == "<div>t</div>"

    def test_src_only_on_img(self):
        assert sanitize_html('<p src="https://a.example/v.mp4">t</p>') == "<p>t</p>"

    def test_attribute_order_preserved(self):
        assert sanitize_html('<a href="https://a.example" title="t" id="k">x</a>') == (
            '<a href="https://a.example" id="k">x</a>'
        )


class TestSchemeRestriction:
    @pytest.mark.parametrize(
        "href",
        [
            "javascript:evil()",
            " JAVASCRIPT:evil()",
            "java&#x09;script:evil()",
            "&#106;avascript:evil()",
            "vbscript:msgbox(1)",
            "data:text/html,<script>alert(1)</script>",
            "//evil.example/path",
            "\\\\evil.example\\share",
            "file:///etc/passwd",
        ],
    )
    def test_disallowed_href_dropped(self, href):
        assert sanitize_html(f'<a href="{href}">x</a>') == "<a>x</a>"

    @pytest.mark.parametrize(
        "href",
        ["https://ok", "http://ok.example/a?b=c", "mailto:someone@example.com", "/docs/page", "page.html#top"],
    )
    def test_allowed_href_kept(self, href):
        result = sanitize_html(f'<a href="{href}">x</a>')
        assert result.startswith('<a href="')
        assert result.endswith(">x</a>")

    def test_mailto_not_allowed_for_images(self):
        assert sanitize_html('<img src="mailto:a@example.com" alt="x">') == '<img alt="x">'

    def test_anchor_without_href_keeps_id(self):
        assert sanitize_html('<a id="top" href="javascript:void(0)"></a>') == '<a id="top"></a>'


class TestWhitespaceAndPruning:
    """Whitespace-only text and empty elements."""

    def test_whitespace_between_tags_collapsed(self):
        assert sanitize_html("<p>a</p>   \n\t <p>b</p>") == "<p>a</p><p>b</p>"

    def test_inline_text_whitespace_kept(self):
        assert sanitize_html("<p>a <b>b</b> c</p>") == "<p>a <b>b</b> c</p>"

    def test_empty_span_pruned(self):
        assert sanitize_html("<span></span>") == ""

    def test_whitespace_only_paragraph_pruned(self):
        assert sanitize_html("<p>   </p>") == ""

    def test_nbsp_only_paragraph_pruned(self):
        assert sanitize_html("<p>&nbsp;</p>") == ""

    def test_zero_width_only_paragraph_pruned(self):
        assert sanitize_html("<p>​​</p>") == ""

    def test_zero_width_entity_only_paragraph_pruned(self):
        assert sanitize_html("<p>&#8203;</p>") == ""

    def test_nested_empty_pruned_two_levels(self):
        assert sanitize_html("<div><section><span></span></section></div>") == ""
        assert sanitize_html("<div><p>   </p></div>") == ""

    def test_emptied_by_removal_pruned(self):
        assert sanitize_html("<div><p><script>x()</script></p></div><p>t</p>") == "<p>t</p>"

    def test_emptied_by_attribute_stripping_pruned(self):
        assert sanitize_html('<div class="spacer"></div><p>t</p>') == "<p>t</p>"

    def test_element_with_id_kept_even_if_empty(self):
        assert sanitize_html('<div id="anchor"></div>') == '<div id="anchor"></div>'

    def test_void_elements_kept(self):
        assert sanitize_html("<p>a<br>b</p><hr>") == "<p>a<br>b</p><hr>"

    def test_whitespace_only_input(self):
        assert sanitize_html("  \n\t ") == ""


class TestRobustness:
    def test_empty_string(self):
        assert sanitize_html("") == ""

    def test_plain_text_passthrough(self):
        assert sanitize_html("just text") == "just text"

    def test_text_is_escaped(self):
        assert sanitize_html("<p>1 &lt; 2 &amp; 3</p>") == "<p>1 &lt; 2 &amp; 3</p>"

    def test_unclosed_tags(self):
        result = sanitize_html("<div><p>one<p>two<script>x(")
        assert "script" not in result
        assert "one" in result
        assert "two" in result

    def test_null_bytes_and_controls(self):
        assert sanitize_html("<p>a\x00b\x1bc</p>") == "<p>abc</p>"

    def test_lone_surrogate(self):
        assert sanitize_html("<p>a\ud800b</p>") == "<p>ab</p>"

    def test_script_text_in_attribute_never_becomes_markup(self):
        result = sanitize_html('<p><img src="https://x/y.png" alt="<script>alert(1)</script>"></p>')
        assert _tags(result) == ["p", "img"]

    def test_deep_nesting(self):
        markup = "<div>" * 200 + "deep" + "</div>" * 200
        result = sanitize_html(markup)
        assert "deep" in result

    def test_idempotent_on_document(self):
        doc = (
            "<html><head><style>x</style></head><body><div class='a'>"
            "<p> <span> </span> </p><a href='javascript:x'>l</a>"
            "<img src='data:image/png;base64,AA'><i>it</i>text</div></body></html>"
        )
        once = sanitize_html(doc)
        assert sanitize_html(once) == once
        assert once == "<div><a>l</a>text</div>"


class TestCleanTitle:
    """clean_title() for short untrusted fields."""

    def test_passthrough(self):
        assert clean_title("Add to Cart") == "Add to Cart"

    def test_empty(self):
        assert clean_title("") == ""

    def test_strips_zero_width_and_bidi(self):
        assert clean_title("Click​here‮") == "Clickhere"

    def test_strips_ansi(self):
        assert clean_title("\x1b[31mred\x1b[0m") == "red"

    def test_collapses_newlines(self):
        assert clean_title("line1\nline2\r\n  line3") == "line1 line2 line3"

    def test_truncates(self):
        assert len(clean_title("x" * 300)) == 256
        assert len(clean_title("x" * 300, max_len=100)) == 100

from blaster.text import (
    cleanup_text,
    extract_domain,
    hash_string,
    resolve_duckduckgo_url,
    strip_cdata,
    strip_html,
    strip_tags,
)


def test_cleanup_text_collapses_whitespace_and_nul():
    assert cleanup_text("  a\n\tb\x00c  ") == "a b c"
    assert cleanup_text(None) == ""


def test_strip_tags_decodes_entities():
    assert strip_tags("<b>Fish &amp; Chips</b> &#39;n&#x27; more") == "Fish & Chips 'n' more"


def test_strip_html_drops_scripts_and_styles():
    html = "<html><head><style>p{}</style><script>var x = 1;</script></head><body><p>Hello</p> <p>world</p></body></html>"
    assert strip_html(html) == "Hello world"


def test_strip_cdata():
    assert strip_cdata("<![CDATA[Title]]>") == "Title"


def test_resolve_duckduckgo_url_unwraps_redirects():
    raw = "//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpage%3Fa%3D1&rut=abc"
    assert resolve_duckduckgo_url(raw) == "https://example.com/page?a=1"


def test_resolve_duckduckgo_url_passes_through_other_links():
    assert resolve_duckduckgo_url("//example.org/x") == "https://example.org/x"
    assert resolve_duckduckgo_url("https://duckduckgo.com/l/?rut=abc") == "https://duckduckgo.com/l/?rut=abc"


def test_extract_domain():
    assert extract_domain("https://www.example.com/path") == "example.com"
    assert extract_domain("not a url") == "Unknown"


def test_hash_string_matches_31_multiplier_hash():
    assert hash_string("") == 0
    assert hash_string("hello") == 99162322
    # wraps past 32 bits and folds negative values to positive
    assert hash_string("polygenelubricants") == 2**31

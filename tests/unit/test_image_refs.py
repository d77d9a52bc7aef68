from blobkeeper.infrastructure.parsers.image_refs import (
    extract_image_ids,
    extract_image_ids_ordered,
    image_id_from_src,
)


def test_extract_handles_absent_content() -> None:
    assert extract_image_ids(None) == set()
    assert extract_image_ids("") == set()
    assert extract_image_ids("<p>no pictures here</p>") == set()


def test_extract_reduces_locators_to_final_segment() -> None:
    content = (
        '<p>Intro</p><img src="a.png">'
        "<img src='/uploads/images/b.jpg' alt=\"b\">"
        '<IMG SRC="//cdn.example.org/images/c.gif"/>'
        '<img class="wide" src="https://example.org/images/d.webp?w=640#top">'
    )
    assert extract_image_ids(content) == {"a.png", "b.jpg", "c.gif", "d.webp"}


def test_extract_deduplicates_and_keeps_document_order() -> None:
    content = '<img src="b.png"><img src="/x/a.png"><img src="b.png">'
    assert extract_image_ids_ordered(content) == ["b.png", "a.png"]


def test_extract_skips_malformed_and_foreign_sources() -> None:
    content = (
        "<img>"
        '<img src="">'
        '<img src="data:image/png;base64,iVBORw0KGgo=">'
        '<img src="/images/report.pdf">'
        '<img src="https://example.org/images/">'
        '<a href="linked.png">not an image tag</a>'
    )
    assert extract_image_ids(content) == set()


def test_extract_tolerates_broken_markup() -> None:
    content = '<div><p>unclosed <img src="kept.png"><span></div></p>'
    assert extract_image_ids(content) == {"kept.png"}


def test_image_id_from_src_decodes_percent_escapes() -> None:
    assert image_id_from_src("/images/my%20pic.png") is None
    assert image_id_from_src("/images/abc%2Ddef.png") == "abc-def.png"
    assert image_id_from_src("   ") is None

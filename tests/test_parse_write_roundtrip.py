from pathlib import Path

import pytest

from reorgmarks.errors import InputFormatError
from reorgmarks.model import Bookmark, BookmarkTree, Folder, collect_bookmarks
from reorgmarks.parse_netscape import parse_bookmarks_html, parse_bookmarks_text
from reorgmarks.writer_netscape import render_bookmarks_html, write_bookmarks_html

FIXTURE = Path(__file__).parent / "fixtures" / "sample_bookmarks.html"


def test_parse_builds_folder_tree_with_attributes():
    tree = parse_bookmarks_html(FIXTURE)

    root = tree.root
    assert root.title == "Bookmarks"
    assert [f.title for f in root.sub_folders] == ["Bookmarks bar", "Other bookmarks"]
    bar = root.sub_folders[0]
    assert bar.add_date == 1700000000
    assert bar.last_modified == 1700000100
    assert bar.parent_folder == "Bookmarks"
    assert [b.title for b in bar.bookmarks] == ["GitHub", "Hacker News"]
    assert bar.bookmarks[0].icon == "data:image/png;base64,AAAA"
    assert bar.bookmarks[1].tags == ["news", "tech"]
    assert bar.bookmarks[1].parent_folder == "Bookmarks bar"
    assert [f.title for f in bar.sub_folders] == ["Recipes"]
    assert [b.url for b in collect_bookmarks(tree)] == [
        "https://github.com/",
        "https://news.ycombinator.com/",
        "https://www.seriouseats.com/",
        "https://docs.python.org/3/",
    ]


def test_parse_handles_nested_dt_malformed_html():
    html = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
  <DT><H3>Folder A</H3>
  <DL><p>
    <DT><A HREF="https://a.example/">A</A>
    <DT><A HREF="https://b.example/">B</A>
    <DT><A HREF="https://c.example/">C</A>
  </DL><p>
</DL><p>
"""
    tree = parse_bookmarks_text(html)
    folder = tree.root.sub_folders[0]
    assert folder.title == "Folder A"
    assert [b.url for b in folder.bookmarks] == ["https://a.example/", "https://b.example/", "https://c.example/"]


def test_parse_keeps_folder_that_follows_bookmark_at_same_level():
    html = (
        '<DL><p><DT><A HREF="https://a.example/">A</A>'
        '<DT><H3>Later</H3><DL><p><DT><A HREF="https://b.example/">B</A></DL><p>'
        '<DT><A HREF="https://c.example/">C</A>'
        "</DL><p>"
    )
    tree = parse_bookmarks_text(html)

    assert [f.title for f in tree.root.sub_folders] == ["Later"]
    assert [b.url for b in tree.root.sub_folders[0].bookmarks] == ["https://b.example/"]
    assert sorted(b.url for b in collect_bookmarks(tree)) == [
        "https://a.example/",
        "https://b.example/",
        "https://c.example/",
    ]


def test_parse_without_dl_is_input_format_error():
    with pytest.raises(InputFormatError):
        parse_bookmarks_text("<html><body><p>not bookmarks</p></body></html>")


def test_parse_rejects_pathological_nesting():
    depth = 80
    html = "<!DOCTYPE NETSCAPE-Bookmark-file-1>\n<DL><p>\n"
    html += "".join(f"<DT><H3>F{i}</H3>\n<DL><p>\n" for i in range(depth))
    html += '<DT><A HREF="https://deep.example/">Deep</A>\n'
    html += "</DL><p>\n" * (depth + 1)
    with pytest.raises(InputFormatError):
        parse_bookmarks_text(html)


def test_render_writes_header_indentation_and_escaped_attributes():
    sub = Folder(
        title="Dev & Ops",
        add_date=10,
        last_modified=11,
        bookmarks=[Bookmark(title="A <b>", url='https://a.example/?q="x"', add_date=5, tags=["dev", "ops"])],
    )
    top = Folder(title="Tech", add_date=1, last_modified=2, sub_folders=[sub])
    tree = BookmarkTree(root=Folder(title="Bookmarks", sub_folders=[top]))

    text = render_bookmarks_html(tree)
    lines = text.splitlines()

    assert lines[0] == "<!DOCTYPE NETSCAPE-Bookmark-file-1>"
    assert '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">' in lines
    assert "<H1>Bookmarks</H1>" in lines
    assert '    <DT><H3 ADD_DATE="1" LAST_MODIFIED="2">Tech</H3>' in lines
    assert '        <DT><H3 ADD_DATE="10" LAST_MODIFIED="11">Dev &amp; Ops</H3>' in lines
    assert (
        '            <DT><A HREF="https://a.example/?q=&quot;x&quot;" ADD_DATE="5" TAGS="dev,ops">A &lt;b&gt;</A>'
        in lines
    )
    assert lines[-1] == "</DL><p>"


def test_parse_and_write_round_trip(tmp_path: Path):
    tree = parse_bookmarks_html(FIXTURE)
    out = tmp_path / "nested" / "out.html"
    write_bookmarks_html(out, tree)

    again = parse_bookmarks_html(out)
    assert again == tree

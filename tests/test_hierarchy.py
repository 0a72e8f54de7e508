import copy

from reorgmarks.hierarchy import (
    GENERIC_CATEGORY,
    CategoryResolver,
    rebuild,
    resolve_folder_path,
    sort_tree,
)
from reorgmarks.model import Bookmark, BookmarkTree, Folder, FolderAssignment, collect_bookmarks
from reorgmarks.stats import count_bookmarks_and_folders


def _bm(title: str, url: str | None = None) -> Bookmark:
    return Bookmark(title=title, url=url or f"https://{title.lower().replace(' ', '-')}.example/")


def _assign(folder: str, *tags: str) -> FolderAssignment:
    return FolderAssignment(tags=tuple(tags), folder=folder)


def _find(folder: Folder, *path: str) -> Folder:
    node = folder
    for name in path:
        matches = [f for f in node.sub_folders if f.title == name]
        assert len(matches) == 1, f"expected exactly one {name!r} under {node.title!r}"
        node = matches[0]
    return node


def _nested_tree() -> BookmarkTree:
    inner = Folder(title="Inner", bookmarks=[_bm("Zeta"), _bm("alpha")])
    outer = Folder(title="Outer", bookmarks=[_bm("Beta")], sub_folders=[inner])
    root = Folder(title="Bookmarks", bookmarks=[_bm("Root Link")], sub_folders=[outer, Folder(title="Empty")])
    return BookmarkTree(root=root)


def test_rebuild_scenario_flattens_deep_path_and_drops_unclassified():
    dev, design, other = _bm("Dev Site"), _bm("UI Kit"), _bm("Unknown")
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=[dev, design, other]))
    cmap = {
        dev.url: _assign("Tech/Dev", "dev"),
        design.url: _assign("Tech/Design/UI", "ui"),
    }

    result = rebuild(tree, cmap)

    tech = _find(result.tree.root, "Tech")
    assert [f.title for f in tech.sub_folders] == ["Design - UI", "Dev"]
    assert [b.url for b in _find(tech, "Dev").bookmarks] == [dev.url]
    assert [b.url for b in _find(tech, "Design - UI").bookmarks] == [design.url]
    assert result.dropped == [other]
    assert result.placed == 2
    assert result.flattened == 1
    assert count_bookmarks_and_folders(result.tree).bookmark_count == 2


def test_rebuild_conserves_count_across_nested_tree():
    tree = _nested_tree()
    bookmarks = collect_bookmarks(tree)
    cmap = {b.url: _assign(f"Cat{i % 2}/Sub{i % 3}") for i, b in enumerate(bookmarks) if i != 1}

    result = rebuild(tree, cmap)

    final = count_bookmarks_and_folders(result.tree).bookmark_count
    assert final + len(result.dropped) == len(bookmarks)
    assert len(result.dropped) == 1


def test_rebuild_traverses_root_bookmarks_first_in_pre_order():
    tree = _nested_tree()
    assert [b.title for b in collect_bookmarks(tree)] == ["Root Link", "Beta", "Zeta", "alpha"]


def test_rebuild_reuses_folder_node_for_identical_paths():
    a, b = _bm("A"), _bm("B")
    tree = BookmarkTree(root=Folder(title="Bookmarks", sub_folders=[Folder(title="X", bookmarks=[a, b])]))
    result = rebuild(tree, {a.url: _assign("Reading/Articles"), b.url: _assign(" Reading / Articles ")})

    root = result.tree.root
    assert len(root.sub_folders) == 1
    reading = root.sub_folders[0]
    assert len(reading.sub_folders) == 1
    articles = reading.sub_folders[0]
    placed_a, placed_b = articles.bookmarks
    assert placed_a.parent_folder == placed_b.parent_folder == "Reading/Articles"
    assert articles.parent_folder == "Reading"
    assert reading.parent_folder == "Bookmarks"


def test_rebuild_keeps_slash_in_category_name_apart_from_nested_path():
    painting, culture = _bm("Painting Link"), _bm("Culture Link")
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=[painting, culture]))
    grouping = {"Arts/Culture": ["Painting"], "Arts": ["Culture"]}

    result = rebuild(tree, {painting.url: _assign("Painting"), culture.url: _assign("Culture")}, grouping)

    root = result.tree.root
    assert [f.title for f in root.sub_folders] == ["Arts", "Arts/Culture"]
    assert [b.title for b in _find(root, "Arts", "Culture").bookmarks] == ["Culture Link"]
    assert [b.title for b in _find(root, "Arts/Culture", "Painting").bookmarks] == ["Painting Link"]
    assert _find(root, "Arts/Culture").bookmarks == []


def test_rebuild_applies_tags_without_mutating_source_tree():
    a = _bm("A")
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=[a]))
    result = rebuild(tree, {a.url: _assign("News", "news", "daily")})

    placed = result.tree.root.sub_folders[0].bookmarks[0]
    assert placed.tags == ["news", "daily"]
    assert a.tags == []


def test_rebuild_depth_is_bounded_to_two_levels():
    urls = [_bm(f"L{i}") for i in range(4)]
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=urls))
    paths = ["A", "A/B", "A/B/C", "A/B/C/D/E"]
    result = rebuild(tree, {b.url: _assign(p) for b, p in zip(urls, paths)})

    for top in result.tree.root.sub_folders:
        for second in top.sub_folders:
            assert second.sub_folders == []
    assert [f.title for f in _find(result.tree.root, "A").sub_folders] == ["B", "B - C", "B - C - D - E"]


def test_rebuild_output_is_sorted_and_sort_is_idempotent():
    items = [_bm(t) for t in ("delta", "Bravo", "alpha", "Charlie")]
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=items))
    folders = ["Zoo", "apps", "Zoo", "Books/b"]
    result = rebuild(tree, {b.url: _assign(f) for b, f in zip(items, folders)})

    root = result.tree.root
    assert [f.title for f in root.sub_folders] == ["apps", "Books", "Zoo"]
    assert [b.title for b in _find(root, "Zoo").bookmarks] == ["alpha", "delta"]

    snapshot = copy.deepcopy(result.tree)
    sort_tree(result.tree)
    assert result.tree == snapshot


def test_rebuild_is_independent_of_classification_order():
    items = [_bm(t) for t in ("one", "two", "three")]
    tree_a = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=list(items)))
    tree_b = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=list(reversed(items))))
    cmap = {b.url: _assign("Misc/Numbers") for b in items}

    a = rebuild(tree_a, cmap, now=1)
    b = rebuild(tree_b, dict(reversed(list(cmap.items()))), now=1)
    assert a.tree == b.tree


def test_unresolvable_folder_is_dropped_and_counted():
    a = _bm("A")
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=[a]))
    result = rebuild(tree, {a.url: _assign(" / / ")})
    assert result.dropped == [a]
    assert result.tree.root.sub_folders == []


def test_grouping_scenario_prefixes_member_folder_with_category():
    grouping = {"Technology": ["Programming"], "Lifestyle": ["Movies", "Finance"]}
    a = _bm("Python")
    tree = BookmarkTree(root=Folder(title="Bookmarks", bookmarks=[a]))

    assert resolve_folder_path("Programming", CategoryResolver(grouping)) == ["Technology", "Programming"]

    result = rebuild(tree, {a.url: _assign("Programming")}, grouping)
    assert result.tree.root.sub_folders[0].title == "Technology"
    assert _find(result.tree.root, "Technology", "Programming").bookmarks[0].url == a.url


def test_grouping_keeps_exact_category_first_segment():
    resolver = CategoryResolver({"Technology": ["Programming"]})
    assert resolve_folder_path("Technology/Python", resolver) == ["Technology", "Python"]


def test_grouping_replaces_first_segment_on_substring_match():
    resolver = CategoryResolver({"Technology": ["Programming"], "Lifestyle": ["Movies"]})
    assert resolve_folder_path("tech/Python", resolver) == ["Technology", "Python"]


def test_grouping_substring_tie_prefers_closest_category_name():
    resolver = CategoryResolver({"DevOps Tools": [], "Development": [], "Other": []})
    assert resolve_folder_path("Dev/Notes", resolver) == ["Development", "Notes"]


def test_grouping_member_substring_match_prefixes_category():
    resolver = CategoryResolver({"Lifestyle": ["Movies"], "Technology": ["Programming"]})
    assert resolve_folder_path("Classic Movies", resolver) == ["Lifestyle", "Classic Movies"]


def test_grouping_member_prefix_then_flatten():
    resolver = CategoryResolver({"Technology": ["Programming"]})
    assert resolve_folder_path("Programming/Python/Web", resolver) == ["Technology", "Programming - Python - Web"]


def test_grouping_keyword_fallback_picks_category_with_most_hits():
    resolver = CategoryResolver({"Technology & Development": ["Rust"], "Arts": ["Painting"]})
    assert resolve_folder_path("Code Snippets", resolver) == ["Technology & Development", "Code Snippets"]


def test_grouping_without_any_match_uses_generic_category():
    resolver = CategoryResolver({"Technology": ["Rust"], "Arts": ["Painting"]})
    assert resolve_folder_path("Gardening", resolver) == [GENERIC_CATEGORY, "Gardening"]


def test_resolution_without_grouping_keeps_first_segment():
    assert resolve_folder_path("tech/Python") == ["tech", "Python"]
    assert resolve_folder_path("") is None

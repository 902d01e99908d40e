from conftest import write_page
from ssg.content import build_content_tree
from ssg.menu import MenuEntry, build_menu


def test_root_menu(content_dir):
    menu = build_menu(build_content_tree(content_dir))
    assert menu == [
        MenuEntry("Home", "index.md"),
        MenuEntry("Blog", "blog", is_dir=True),
        MenuEntry("About", "about.md"),
    ]
    assert menu[0].is_home


def test_section_menu(content_dir):
    blog = build_content_tree(content_dir, "blog")
    assert build_menu(blog) == [
        MenuEntry("First Article", "blog/first.md"),
        MenuEntry("Second Article", "blog/second.md"),
    ]


def test_menu_is_stable(content_dir):
    tree = build_content_tree(content_dir)
    assert build_menu(tree) == build_menu(tree)


def test_hidden_pages_and_assets_are_left_out(tmp_path):
    write_page(tmp_path / "index.md", title="Welcome")
    write_page(tmp_path / "imprint.md", title="Imprint", hidden=True)
    write_page(tmp_path / "zebra.md", title="Zebra")
    write_page(tmp_path / "apple.md", title="Apple")
    (tmp_path / "logo.png").write_bytes(b"png")
    (tmp_path / "images").mkdir()
    (tmp_path / "images" / "a.png").write_bytes(b"png")
    write_page(tmp_path / "release-notes" / "v1.md", title="v1")
    write_page(tmp_path / "nested" / "deeper" / "page.md", title="Deep")

    menu = build_menu(build_content_tree(tmp_path))
    assert [(entry.title, entry.is_dir) for entry in menu] == [
        ("Home", False),
        ("Release-Notes", True),
        ("Apple", False),
        ("Zebra", False),
    ]


def test_home_entry_only_for_root_index(tmp_path):
    write_page(tmp_path / "docs" / "index.md", title="Docs")
    docs = build_content_tree(tmp_path, "docs")
    assert build_menu(docs) == [MenuEntry("Docs", "docs/index.md")]

import json
from pathlib import Path

import pytest


def write_page(path: Path, body: str = "", **frontmatter) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "```json\n" + json.dumps(frontmatter) + "\n```\n" + body, encoding="utf-8"
    )
    return path


def create_content(root: Path) -> Path:
    write_page(root / "index.md", "# Welcome\n\nHello there.\n", title="Home")
    write_page(root / "about.md", "About me.\n", title="About")
    write_page(
        root / "blog" / "first.md",
        "The first one.\n",
        title="First Article",
        description="Where it all began",
        created_at="2021-07-17",
        tags=["intro"],
    )
    write_page(
        root / "blog" / "second.md",
        "```python\nprint('hi')\n```\n",
        title="Second Article",
        created_at="2021-07-18",
    )
    (root / "files").mkdir()
    (root / "files" / "random.txt").write_text("random bytes", encoding="utf-8")
    return root


@pytest.fixture
def content_dir(tmp_path):
    return create_content(tmp_path / "content")


@pytest.fixture
def static_dir(tmp_path):
    static = tmp_path / "static-files"
    (static / "static").mkdir(parents=True)
    (static / "static" / "base.css").write_text("body{}", encoding="utf-8")
    return static


@pytest.fixture
def output_dir(tmp_path):
    output = tmp_path / "output"
    output.mkdir()
    return output

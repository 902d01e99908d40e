"""ssg, an opinionated static site generator.

This package turns a directory of markdown pages into a static website.
Pages carry a fenced front-matter block with their metadata. Directories
without a home page become sections with a list page and an RSS feed.

The build scans the content into an in-memory tree, then copies assets,
renders sections and renders pages in sequential phases. Work inside a
phase is spread over a bounded pool of worker threads.

The main entry point is the CLI module, which builds the website once or
serves it while rebuilding on every change.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

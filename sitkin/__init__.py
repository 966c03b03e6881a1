"""Sitkin static site generator.

This package builds a static site from a project directory of Markdown files,
Jinja2 templates and plain assets. Assets are copied under content-addressed
names and every rendered page has its asset links rewritten to match.

The main entry point is the CLI module, which provides commands for building
a site once, running the development server, and scaffolding file-set entries.

Pipeline:
- project: discovers and classifies project files into a Project model.
- copier: copies assets, embedding a content hash in their names.
- build: renders templates and markdown, rewrites links, minifies output.
"""

__all__ = ["__version__"]
__version__ = "0.2.0"

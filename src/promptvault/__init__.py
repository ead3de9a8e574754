"""promptvault - a file-backed library of prompt templates.

Templates are Markdown files with YAML frontmatter and a Jinja2 body,
stored one per file. The store validates submissions, rejects unsafe
template directives, caches parsed templates, and renders them with
caller parameters and a filtered view of the environment.
"""

__version__ = "0.1.0"

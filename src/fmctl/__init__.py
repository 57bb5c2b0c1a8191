"""fmctl — frontmatter aggregation and template rendering for Markdown corpora."""

__version__ = "0.4.0"

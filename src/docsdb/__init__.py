"""docsdb: index Markdown ADRs and runbooks into a queryable JSON artifact."""

__version__ = "0.1.0"

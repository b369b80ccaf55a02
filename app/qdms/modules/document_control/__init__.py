"""
Document lifecycle: controlled documents, their versions and status transitions.

- Each document has at most one current, non-superseded version.
- Creating a version supersedes every sibling and moves the document back under revision.
- Completion of an approval run finalizes the document.
"""

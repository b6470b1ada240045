from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping


def comment_score(comment: Mapping[str, Any]) -> int:
    """Reddit-style score: upvotes minus downvotes (missing counts as 0)."""
    return int(comment.get("upvotes") or 0) - int(comment.get("downvotes") or 0)


def build_threads(comments: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Turn a flat list of reviews/replies into a tree of root comments.

    Each node is a shallow copy of the input row with a ``replies`` list.
    Replies keep their arrival order; roots are ordered by score, highest
    first, ties keeping their input order. A ``parent_id`` pointing at a
    comment that is not in the batch makes the comment a root.
    """
    rows = list(comments)

    # The lookup must be complete before attaching, so a reply listed ahead
    # of its parent still lands under it.
    lookup: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        lookup[row["id"]] = {**row, "replies": []}

    roots: List[Dict[str, Any]] = []
    for row in rows:
        node = lookup[row["id"]]
        parent_id = row.get("parent_id")
        if parent_id is not None and parent_id in lookup:
            lookup[parent_id]["replies"].append(node)
        else:
            roots.append(node)

    return sorted(roots, key=comment_score, reverse=True)

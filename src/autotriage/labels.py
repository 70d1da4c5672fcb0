"""Label set diffing."""

from typing import NamedTuple, Optional, Sequence


class LabelDiff(NamedTuple):
    """Delta between the current and proposed label sets."""

    to_add: list[str]
    to_remove: list[str]
    merged: list[str]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def diff_labels(current: Sequence[str] = (), proposed: Sequence[str] = ()) -> LabelDiff:
    """Compute the minimal add/remove sets to go from current to proposed.

    ``merged`` is the proposed set deduplicated in first-occurrence order.
    """
    merged = list(dict.fromkeys(proposed))
    current_set = set(current)
    proposed_set = set(merged)

    to_add = [label for label in merged if label not in current_set]
    to_remove = [label for label in dict.fromkeys(current) if label not in proposed_set]
    return LabelDiff(to_add=to_add, to_remove=to_remove, merged=merged)


def filter_labels(
    proposed: Sequence[str], known: Optional[Sequence[str]]
) -> list[str]:
    """Drop proposed labels that do not exist in the repository.

    Args:
        proposed: Labels suggested by the model.
        known: Label names defined on the repository, or None when unknown.

    Returns:
        Proposed labels restricted to the known set.
    """
    if known is None:
        return list(proposed)
    allowed = set(known)
    return [label for label in proposed if label in allowed]

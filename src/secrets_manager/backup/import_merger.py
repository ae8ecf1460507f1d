# Backup Module - Import Merge
#
# Decides which secrets of a backup get inserted. A secret is a duplicate
# when its (title, username, password) triple is already present in the
# vault. Duplicates inside the backup itself are not collapsed: only the
# vault's triples are compared against.

from dataclasses import dataclass, field
from typing import Iterable, List, Set, Tuple

from ..store.models import Secret

Identity = Tuple[str, str, str]


@dataclass
class MergeResult:
    inserted: int = 0
    skipped: int = 0
    accepted: List[Secret] = field(default_factory=list)


def merge(existing: Iterable[Identity], incoming: Iterable[Secret]) -> MergeResult:
    """
    Split incoming secrets into accepted and skipped.

    Args:
        existing: Triples already stored (trashed secrets included)
        incoming: Secrets read from the backup, in file order

    Returns:
        MergeResult with accepted secrets in input order and both counts
    """
    known: Set[Identity] = set(existing)
    result = MergeResult()
    for secret in incoming:
        if secret.identity in known:
            result.skipped += 1
        else:
            result.accepted.append(secret)
            result.inserted += 1
    return result

"""Join access/status rows onto letters."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from painel.core.models import ABSENT, AccessRecord, LetterRecord, is_absent
from painel.processing.identity import normalize_match_key

logger = logging.getLogger(__name__)


def _index_by(records: Iterable[AccessRecord], attribute: str) -> Dict[str, AccessRecord]:
    index: Dict[str, AccessRecord] = {}
    for record in records:
        key = normalize_match_key(getattr(record, attribute))
        if key and key not in index:
            index[key] = record
    return index


def _lookup(
    letter: LetterRecord,
    by_email: Dict[str, AccessRecord],
    by_phone: Dict[str, AccessRecord],
    by_name: Dict[str, AccessRecord],
) -> Optional[AccessRecord]:
    for index, value in ((by_email, letter.email), (by_phone, letter.telefone), (by_name, letter.nome)):
        key = normalize_match_key(value)
        if key and key in index:
            return index[key]
    return None


def merge_access(letters: Iterable[LetterRecord], access_records: Iterable[AccessRecord]) -> List[LetterRecord]:
    """Return letters carrying the access status and block reason of their owner.

    Owners are matched by email, then phone, then name. The first access row
    seen for a key wins. Letters without a match get the sentinel status so
    "no access data" is distinguishable from a stale value.
    """

    access_list = list(access_records)
    by_email = _index_by(access_list, "email")
    by_phone = _index_by(access_list, "telefone")
    by_name = _index_by(access_list, "nome")

    merged: List[LetterRecord] = []
    matched = 0
    for letter in letters:
        access = _lookup(letter, by_email, by_phone, by_name)
        if access is None:
            merged.append(replace(letter, status=ABSENT, motivo_bloqueio=ABSENT))
            continue
        matched += 1
        updates = {"status": access.status}
        if not is_absent(access.motivo):
            updates["motivo_bloqueio"] = access.motivo
        merged.append(replace(letter, **updates))

    logger.debug("Matched access data for %d of %d letters", matched, len(merged))
    return merged

"""
Quotation version numbering policy.

A client who reopens negotiations after a closed (WON / LOST) deal starts a
fresh major lineage: the first version of a new quotation is "{M+1}.0",
where M is the highest major found among the latest versions of the
client's closed quotations. Minor bumps inside one negotiation are chosen by
the caller and never pass through here.

Legacy labels are parsed leniently: a label without a leading integer
counts as major 0 (it may under-count lineage; it is never an error).
"""
import logging
import re
from typing import Iterable, Optional, Sequence, TypeVar

from app.models.pricing_types import QuotationSnapshot, VersionLabel

logger = logging.getLogger("solar-epc-versioning")

_LEADING_INT = re.compile(r"^\s*(\d+)")

V = TypeVar("V")


def parse_version_label(label: Optional[str]) -> VersionLabel:
    """
    Structured view of a stored label.

    "2.3"  → VersionLabel(2, "3")
    "4"    → VersionLabel(4, "")
    "v1.0" → VersionLabel(0, "0")   (no leading integer)
    """
    text = (label or "").strip()
    match = _LEADING_INT.match(text)
    major = int(match.group(1)) if match else 0
    _, dot, minor = text.partition(".")
    return VersionLabel(major=major, minor=minor if dot else "")


def next_version_label(
    client_quotations: Iterable[QuotationSnapshot],
    explicit_label: Optional[str] = None,
) -> str:
    """
    Decide the label for the first version of a new quotation.

    An explicit (non-blank) label always wins and is returned verbatim.
    """
    if explicit_label is not None and explicit_label.strip():
        return explicit_label.strip()

    highest_major = 0
    for quotation in client_quotations:
        if not quotation.status.is_closed:
            continue
        latest = quotation.latest_version
        if latest is None:
            continue
        parsed = parse_version_label(latest.label)
        if parsed.major == 0 and not _LEADING_INT.match(latest.label or ""):
            logger.info("Version label %r has no leading integer; treated as major 0", latest.label)
        highest_major = max(highest_major, parsed.major)

    return str(VersionLabel(major=highest_major + 1, minor="0"))


def effective_version(versions: Sequence[V]) -> Optional[V]:
    """
    The version that represents a quotation: the final-flagged one if any,
    otherwise the most recently created (last in sequence order).
    """
    for version in versions:
        if getattr(version, "is_final", False):
            return version
    return versions[-1] if versions else None

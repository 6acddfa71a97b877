"""
Purchase Reference

The opaque string round-tripped through a payment processor that links one
payment back to one or more purchase rows ("id1,id2,...").
"""
from dataclasses import dataclass
from typing import Iterable, Tuple

from storefront.constants import REFERENCE_DELIMITER


@dataclass(frozen=True)
class PurchaseReference:
    """Ordered, duplicate-free group of purchase ids"""

    purchase_ids: Tuple[str, ...]

    def __post_init__(self):
        if not self.purchase_ids:
            raise ValueError("A purchase reference needs at least one purchase id")
        for purchase_id in self.purchase_ids:
            if not purchase_id or REFERENCE_DELIMITER in purchase_id or purchase_id != purchase_id.strip():
                raise ValueError(f"Invalid purchase id in reference: {purchase_id!r}")
        if len(set(self.purchase_ids)) != len(self.purchase_ids):
            raise ValueError("Duplicate purchase id in reference")

    @classmethod
    def of(cls, purchase_ids: Iterable[str]) -> "PurchaseReference":
        return cls(tuple(str(pid) for pid in purchase_ids))

    @classmethod
    def parse(cls, raw: str) -> "PurchaseReference":
        """
        Parse a reference string received back from a processor.

        Whitespace around ids, empty segments and repeated ids are tolerated;
        an empty result raises ValueError.
        """
        if raw is None:
            raise ValueError("Missing purchase reference")
        ids = [part.strip() for part in str(raw).split(REFERENCE_DELIMITER)]
        # A replayed id updates the same row twice; keep first occurrence only
        return cls(tuple(dict.fromkeys(pid for pid in ids if pid)))

    def serialize(self) -> str:
        return REFERENCE_DELIMITER.join(self.purchase_ids)

    @property
    def is_group(self) -> bool:
        return len(self.purchase_ids) > 1

    def __iter__(self):
        return iter(self.purchase_ids)

    def __len__(self):
        return len(self.purchase_ids)

    def __str__(self):
        return self.serialize()

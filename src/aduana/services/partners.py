from __future__ import annotations

from collections.abc import Iterable

from aduana.models.ledger import Partner
from aduana.services.exceptions import PartnerNotFoundError


class PartnerDirectory:
    """Partner records keyed by name (the ledger references partners by name)."""

    def __init__(self, partners: Iterable[Partner] = ()) -> None:
        self._by_name = {p.name: p for p in partners}

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def get(self, name: str) -> Partner | None:
        return self._by_name.get(name)

    def find(self, name: str) -> Partner:
        """Return the partner or raise PartnerNotFoundError."""
        partner = self._by_name.get(name)
        if partner is None:
            raise PartnerNotFoundError(name)
        return partner

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> PartnerDirectory:
        return cls(Partner.from_dict(r) for r in rows)


def load_partner_directory() -> PartnerDirectory:
    """Build the directory from config/partners.yaml."""
    from aduana.config import load_partners

    return PartnerDirectory.from_dicts(load_partners())

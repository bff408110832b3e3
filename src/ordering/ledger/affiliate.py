"""Affiliate accounts — maps a public affiliate code to the user who earns on it."""

from enum import Enum

from protean.fields import Identifier, String

from ordering.domain import ordering


class AffiliateStatus(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


@ordering.aggregate
class Affiliate:
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50, unique=True)
    status = String(max_length=20, choices=AffiliateStatus, default=AffiliateStatus.ACTIVE.value)


@ordering.repository(part_of=Affiliate)
class AffiliateRepository:
    def find_by_code(self, code: str | None) -> Affiliate | None:
        if not code:
            return None
        matches = self._dao.query.filter(code=code.strip().upper()).all().items
        return matches[0] if matches else None

    def find_active_by_code(self, code: str | None) -> Affiliate | None:
        affiliate = self.find_by_code(code)
        if affiliate is not None and affiliate.status == AffiliateStatus.ACTIVE.value:
            return affiliate
        return None

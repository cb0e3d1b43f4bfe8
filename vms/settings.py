"""Admission limits and related knobs, read from the Flask config."""

from dataclasses import dataclass, field

from vms.models.enums import PersonKind


@dataclass(frozen=True)
class QuotaLimits:
    monthly: int
    yearly: int


@dataclass(frozen=True)
class AdmissionSettings:
    guest_limits: QuotaLimits = field(default_factory=lambda: QuotaLimits(4, 12))
    reciprocating_limits: QuotaLimits = field(default_factory=lambda: QuotaLimits(4, 24))
    host_daily_limit: int = 4
    min_id_number_length: int = 5
    timezone: str = "Africa/Nairobi"

    def limits_for(self, kind: PersonKind) -> QuotaLimits:
        if kind == PersonKind.RECIPROCATING_MEMBER:
            return self.reciprocating_limits
        return self.guest_limits

    @classmethod
    def from_config(cls, config) -> "AdmissionSettings":
        return cls(
            guest_limits=QuotaLimits(
                int(config.get("GUEST_MONTHLY_LIMIT", 4)),
                int(config.get("GUEST_YEARLY_LIMIT", 12)),
            ),
            reciprocating_limits=QuotaLimits(
                int(config.get("RECIP_MONTHLY_LIMIT", 4)),
                int(config.get("RECIP_YEARLY_LIMIT", 24)),
            ),
            host_daily_limit=int(config.get("HOST_DAILY_LIMIT", 4)),
            min_id_number_length=int(config.get("MIN_ID_NUMBER_LENGTH", 5)),
            timezone=config.get("CLUB_TIMEZONE", "Africa/Nairobi"),
        )

"""Pydantic models for HUD Fair Market Rent / Section 8 lookups."""

from decimal import Decimal

from pydantic import BaseModel


class Section8Eligibility(BaseModel):
    eligible: bool
    reason: str
    max_rent: Decimal


class Section8Profile(BaseModel):
    zip_code: str
    area_name: str
    year: int
    fmr_0br: Decimal
    fmr_1br: Decimal
    fmr_2br: Decimal
    fmr_3br: Decimal
    fmr_4br: Decimal
    bedrooms: int = 3

    def fmr_for_beds(self, beds: int) -> Decimal:
        """Return FMR for a given bedroom count (capped at 4)."""
        mapping = {
            0: self.fmr_0br,
            1: self.fmr_1br,
            2: self.fmr_2br,
            3: self.fmr_3br,
            4: self.fmr_4br,
        }
        return mapping[max(0, min(beds, 4))]

    @property
    def fmr_for_bedrooms(self) -> Decimal:
        return self.fmr_for_beds(self.bedrooms)

    def eligibility(self, monthly_rent: Decimal) -> Section8Eligibility:
        """Section 8 pays up to FMR; rent above it does not qualify."""
        max_rent = self.fmr_for_bedrooms
        if monthly_rent <= max_rent:
            return Section8Eligibility(
                eligible=True,
                reason=f"Rent of ${monthly_rent:,.0f}/mo is at or below Section 8 FMR of ${max_rent:,.0f}/mo",
                max_rent=max_rent,
            )
        overage = monthly_rent - max_rent
        return Section8Eligibility(
            eligible=False,
            reason=(
                f"Rent of ${monthly_rent:,.0f}/mo exceeds Section 8 FMR of "
                f"${max_rent:,.0f}/mo by ${overage:,.0f}"
            ),
            max_rent=max_rent,
        )

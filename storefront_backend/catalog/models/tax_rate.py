# catalog/models/tax_rate.py

"""
TAX RATE

Keyed by (country, state). A NULL state is the country-wide fallback.

Guarantee:
- At most one ACTIVE rate per (country, state) and at most one ACTIVE
  country-wide fallback per country (partial unique constraints), so
  destination resolution is never ambiguous.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


def normalize_region(value) -> str | None:
    v = (value or "").strip().upper()
    return v or None


class TaxRate(models.Model):
    country = models.CharField(max_length=64)
    state = models.CharField(max_length=64, null=True, blank=True)

    rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Percent, e.g. 12.00",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["country", "state"]
        constraints = [
            models.UniqueConstraint(
                fields=["country", "state"],
                condition=Q(is_active=True) & Q(state__isnull=False),
                name="uniq_active_tax_rate_per_state",
            ),
            models.UniqueConstraint(
                fields=["country"],
                condition=Q(is_active=True) & Q(state__isnull=True),
                name="uniq_active_country_wide_tax_rate",
            ),
            models.CheckConstraint(
                condition=Q(rate__gte=0) & Q(rate__lte=100),
                name="tax_rate_percent_range",
            ),
        ]

    def clean(self):
        if self.rate is None or not (Decimal("0") <= Decimal(self.rate) <= Decimal("100")):
            raise ValidationError({"rate": "Rate must be between 0 and 100"})

    def save(self, *args, **kwargs):
        self.country = normalize_region(self.country) or ""
        self.state = normalize_region(self.state)
        super().save(*args, **kwargs)

    def __str__(self):
        region = f"{self.country}/{self.state}" if self.state else f"{self.country} (all regions)"
        return f"{region}: {self.rate}%"

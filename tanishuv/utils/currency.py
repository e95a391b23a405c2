"""Presentation-only Stars conversions. Settlement math never goes through here."""
from tanishuv.core.config import settings


def stars_to_uzs(stars: int | float, rate: float | None = None) -> float:
    return float(stars) * (settings.stars_to_uzs if rate is None else rate)


def stars_to_usd(stars: int | float, rate: float | None = None) -> float:
    return round(float(stars) * (settings.stars_to_usd if rate is None else rate), 2)


def format_stars(amount: int) -> str:
    """Compact count: 950, 1.5K, 2.3M."""
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1000:
        return f"{amount / 1000:.1f}K"
    return str(amount)


def format_money(amount: int | float, currency: str = "UZS") -> str:
    if currency == "USD":
        return f"${amount:.2f}"
    return f"{amount:,.0f}".replace(",", " ") + " so'm"


def format_stars_uzs(stars: int, rate: float | None = None) -> str:
    """Stars with the so'm equivalent, e.g. 25⭐ (~25 000 so'm)."""
    return f"{int(stars)}⭐ (~{format_money(stars_to_uzs(stars, rate))})"

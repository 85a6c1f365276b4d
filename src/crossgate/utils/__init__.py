from .timestamps import now_iso, utc_now

__all__ = ["now_iso", "utc_now"]

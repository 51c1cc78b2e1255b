"""Services that drive scrape runs."""

from newshub.services.scheduler import ScrapeScheduler, next_fire_time

__all__ = ["ScrapeScheduler", "next_fire_time"]

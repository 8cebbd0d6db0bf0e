from clickstats.models.rollup import AnalyticsRollup
from clickstats.models.url import ShortUrl
from clickstats.models.visit import Visit

__all__ = ["AnalyticsRollup", "ShortUrl", "Visit"]

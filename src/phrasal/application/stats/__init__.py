# Application Stats Package
from .metrics_calculator import MetricsCalculator
from .service import SrsStatsService

__all__ = ["MetricsCalculator", "SrsStatsService"]

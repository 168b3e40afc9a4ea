from .follower_service import FollowerMetricService, compute_follower_growth

__all__ = ["FollowerMetricService", "compute_follower_growth"]

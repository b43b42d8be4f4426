"""Models package."""

from .linked_account import LinkedAccount
from .platform_sync_job import PlatformSyncJob
from .platform_audience_metric import PlatformAudienceMetric

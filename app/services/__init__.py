"""Services package."""

from app.services.activity_service import ActivityService
from app.services.email_service import EmailService
from app.services.engagement_service import EngagementService
from app.services.gamification_service import GamificationService
from app.services.notifier import Notifier
from app.services.results_client import Outbox, ResultsClient
from app.services.scenario_provider import ScenarioProvider
from app.services.settings_service import SettingsService

__all__ = [
    "ActivityService",
    "EmailService",
    "EngagementService",
    "GamificationService",
    "Notifier",
    "Outbox",
    "ResultsClient",
    "ScenarioProvider",
    "SettingsService",
]

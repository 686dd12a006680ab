"""AI orchestration: key management and plan/task generation."""

from planforge.ai.credentials import (
    ApiKeySettingsStore,
    CredentialStore,
    KeyringCredentialStore,
)
from planforge.ai.manager import AIServiceManager
from planforge.ai.schemas import (
    GeneratedMilestone,
    GeneratedPlan,
    GeneratedTask,
    TaskEnhancement,
)

__all__ = [
    "AIServiceManager",
    "ApiKeySettingsStore",
    "CredentialStore",
    "KeyringCredentialStore",
    "GeneratedMilestone",
    "GeneratedPlan",
    "GeneratedTask",
    "TaskEnhancement",
]

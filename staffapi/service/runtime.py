from __future__ import annotations

from typing import Dict

from staffapi.config import Settings
from staffapi.logging import get_logger
from staffapi.service.audit import AuditLogger
from staffapi.service.auth import TokenIssuer, TokenValidator
from staffapi.service.employees import EmployeeService
from staffapi.service.health import (
    HealthCheck,
    memory_check,
    repository_check,
    self_check,
)
from staffapi.storage.memory import MemoryStore

logger = get_logger(__name__)


class Runtime:
    """Holds the service instances of one application.

    Built once per app by ``create_app`` from an explicit Settings object and
    attached to ``app.state.runtime``.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = MemoryStore(seed=settings.seed_sample_data)
        self.audit = AuditLogger(settings)
        self.issuer = TokenIssuer(settings, self.audit)
        self.validator = TokenValidator(settings)
        self.employees = EmployeeService(self.store)
        self.health_checks: Dict[str, HealthCheck] = {
            "self": self_check,
            "memory": memory_check(settings.memory_threshold_bytes),
            "repository": repository_check(self.store),
        }
        logger.info(
            "runtime_initialized",
            app_env=settings.app_env,
            seeded=settings.seed_sample_data,
            credentials=len(self.issuer.credentials),
        )

"""
Process-scoped runtime state.

A ServiceRuntime owns the volatile state of one service process: the admin
config, the service status flags and the request log ring buffer. It is
created by the app factory and handed explicitly to the components that read
or change it. Nothing here survives a restart.
"""
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

import structlog

from honey_store.config import Settings
from honey_store.core.models import AdminConfig, AdminConfigUpdate, RequestLog, ServiceStatus

logger = structlog.get_logger(__name__)


class RequestLogBuffer:
    """Bounded buffer keeping the most recent request log entries."""

    def __init__(self, capacity: int = 100):
        self.capacity = capacity
        self._entries: Deque[RequestLog] = deque(maxlen=capacity)

    def append(self, entry: RequestLog) -> None:
        self._entries.append(entry)

    def snapshot(self) -> List[RequestLog]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ServiceRuntime:
    """Owner of the admin config, service status and request log of a process."""

    def __init__(self, settings: Settings, service_name: str):
        self.settings = settings
        self.service_name = service_name
        self.request_logs = RequestLogBuffer(settings.request_log_capacity)
        self._admin_config = self._default_admin_config()
        self._service_status = self._default_service_status()
        self.started = False

    def _default_admin_config(self) -> AdminConfig:
        return AdminConfig(
            simulate_payment_error=self.settings.default_simulate_payment_error,
            payment_delay_ms=self.settings.default_payment_delay_ms,
        )

    def _default_service_status(self) -> ServiceStatus:
        return ServiceStatus(
            name=self.service_name,
            healthy=True,
            location=self.settings.service_location,
            connection_method=self.settings.connection_method,
            enabled=True,
        )

    def start(self) -> None:
        """Reset all state to the configured defaults."""
        self._admin_config = self._default_admin_config()
        self._service_status = self._default_service_status()
        self.request_logs.clear()
        self.started = True
        logger.info(
            "service_runtime_started",
            service=self.service_name,
            admin_config=self._admin_config.to_wire(),
        )

    def stop(self) -> None:
        self.request_logs.clear()
        self.started = False
        logger.info("service_runtime_stopped", service=self.service_name)

    @property
    def admin_config(self) -> AdminConfig:
        return self._admin_config

    def update_admin_config(
        self, update: Union[AdminConfigUpdate, Dict[str, Any]]
    ) -> AdminConfig:
        """
        Merge a partial update into the admin config.

        Only payments started after this call observe the new values; a
        settlement already waiting reads simulatePaymentError when its delay
        elapses.

        Raises:
            pydantic.ValidationError: If the update is not a valid admin config
        """
        if not isinstance(update, AdminConfigUpdate):
            update = AdminConfigUpdate.model_validate(update)
        changes = update.model_dump(exclude_none=True)
        self._admin_config = self._admin_config.model_copy(update=changes)
        logger.info(
            "admin_config_updated",
            service=self.service_name,
            admin_config=self._admin_config.to_wire(),
        )
        return self._admin_config

    @property
    def service_status(self) -> ServiceStatus:
        return self._service_status

    def set_healthy(self, healthy: bool) -> ServiceStatus:
        self._service_status = self._service_status.model_copy(update={"healthy": healthy})
        return self._service_status

    def set_enabled(self, enabled: bool) -> ServiceStatus:
        self._service_status = self._service_status.model_copy(update={"enabled": enabled})
        return self._service_status

    def set_url(self, url: Optional[str]) -> ServiceStatus:
        self._service_status = self._service_status.model_copy(update={"url": url})
        return self._service_status

    def record_request(self, entry: RequestLog) -> None:
        self.request_logs.append(entry)

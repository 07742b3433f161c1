"""
Health checks for the order backend and the payment gateway.

Checks:
- Order store connectivity (backend only)
"""
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from honey_store.core.runtime import ServiceRuntime

logger = structlog.get_logger(__name__)


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """
    Health check service for one service process.

    The result also updates the healthy flag of the service status pushed to
    live observers.
    """

    def __init__(
        self,
        runtime: ServiceRuntime,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        self.runtime = runtime
        self.session_factory = session_factory

    async def check_database(self) -> Dict[str, Any]:
        """
        Check database connectivity.

        Raises:
            HealthCheckError: If database check fails
        """
        try:
            async with self.session_factory() as db:
                result = await db.execute(text("SELECT 1"))
                result.scalar()

                return {
                    "status": "healthy",
                    "service": "database",
                    "message": "Database connection successful",
                }

        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            raise HealthCheckError(f"Database health check failed: {str(e)}")

    async def check_all(self) -> Dict[str, Any]:
        """Run all health checks."""
        checks: Dict[str, Any] = {}
        all_healthy = True

        if self.session_factory is not None:
            try:
                checks["database"] = await self.check_database()
            except HealthCheckError as e:
                checks["database"] = {
                    "status": "unhealthy",
                    "service": "database",
                    "error": str(e),
                }
                all_healthy = False

        status = self.runtime.set_healthy(all_healthy)
        result: Dict[str, Any] = {
            "status": "healthy" if all_healthy else "unhealthy",
            "service": status.name,
            "location": status.location.value,
            "connectionMethod": status.connection_method.value,
            "checks": checks,
        }
        if "database" in checks:
            result["database"] = "connected" if all_healthy else "disconnected"
        return result

    async def liveness(self) -> Dict[str, Any]:
        """Simple check that the application is running."""
        return {
            "status": "alive",
            "service": self.runtime.service_name,
            "message": "Application is running",
        }

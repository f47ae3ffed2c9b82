"""
Health checks for liveness and readiness probes.
"""
from datetime import datetime, timezone
from typing import Dict, Any
import time
import psutil
from .logging import get_logger
from .services.pipeline import Pipeline

logger = get_logger()


class HealthChecker:
    """
    Health checker for the activity relay service.

    Provides:
    - Liveness checks (is the service running?)
    - Readiness checks (can the service handle traffic?)
    """

    def __init__(self, service_name: str = "activity-relay", version: str = "0.1.0"):
        self.service_name = service_name
        self.version = version

    def _base(self, status: str) -> Dict[str, Any]:
        return {
            "status": status,
            "service": self.service_name,
            "version": self.version,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - basic health check.

        Returns:
            dict: Health status with service info and timestamp
        """
        return self._base("ok")

    async def readiness(self, pipeline: Pipeline | None) -> Dict[str, Any]:
        """
        Readiness check - comprehensive health check.

        Checks:
        - Broker connectivity
        - Consumer loop state
        - Disk space availability
        - Memory availability

        Returns:
            dict: Readiness status with detailed check results
        """
        checks = {
            "broker": await self._check_broker(pipeline),
            "consumer": self._check_consumer(pipeline),
            "disk_space": self._check_disk_space(),
            "memory": self._check_memory(),
        }
        ready = all(check["status"] != "error" for check in checks.values())

        result = self._base("ready" if ready else "not_ready")
        result["checks"] = checks
        return result

    async def _check_broker(self, pipeline: Pipeline | None) -> Dict[str, Any]:
        if pipeline is None:
            return {"status": "error", "error": "pipeline not started"}

        start = time.time()
        healthy = await pipeline.publisher.health_check()
        latency_ms = round((time.time() - start) * 1000, 2)
        if not healthy:
            return {"status": "error", "error": "broker unreachable"}
        return {"status": "ok", "latency_ms": latency_ms}

    def _check_consumer(self, pipeline: Pipeline | None) -> Dict[str, Any]:
        if pipeline is None:
            return {"status": "error", "error": "pipeline not started"}

        state = pipeline.consumer.state.value
        task = pipeline.consumer_task
        if task is None or task.done():
            return {"status": "error", "state": state, "error": "consumer loop is not running"}
        return {"status": "ok", "state": state, "stored_events": len(pipeline.store)}

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)
        """
        try:
            disk = psutil.disk_usage("/")
        except OSError as e:
            logger.warning("disk_health_check_failed", error=str(e))
            return {"status": "error", "error": str(e)}

        available_gb = disk.free / (1024**3)
        if available_gb < threshold_gb:
            status = "error"
        elif available_gb < threshold_gb * 2:
            status = "warning"
        else:
            status = "ok"

        return {
            "status": status,
            "available_gb": round(available_gb, 2),
            "total_gb": round(disk.total / (1024**3), 2),
            "used_percent": disk.percent,
        }

    def _check_memory(self, threshold_mb: float = 50.0) -> Dict[str, Any]:
        """
        Check available memory.

        Args:
            threshold_mb: Minimum available memory in MB (default: 50.0)
        """
        memory = psutil.virtual_memory()
        available_mb = memory.available / (1024**2)

        if available_mb < threshold_mb:
            status = "error"
        elif available_mb < threshold_mb * 2:
            status = "warning"
        else:
            status = "ok"

        return {
            "status": status,
            "available_mb": round(available_mb, 2),
            "total_mb": round(memory.total / (1024**2), 2),
            "used_percent": memory.percent,
        }

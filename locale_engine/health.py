"""Engine health checks."""
from typing import Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone
import asyncio
from locale_engine.policy.models import Action, PipelineResult
from locale_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from locale_engine.engine import LocaleEngine

logger = get_logger(__name__)


class HealthStatus:
    """Health check status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


async def check_storage(engine: "LocaleEngine") -> Dict[str, Any]:
    """Check which storage tiers passed their probe."""
    try:
        await engine.persistence.initialize()
        tiers = engine.persistence.statistics()["tiers"]
        available = [name for name, ok in tiers.items() if ok]

        if tiers and len(available) == len(tiers):
            return {
                "status": HealthStatus.HEALTHY,
                "message": "All storage tiers available",
                "tiers": tiers
            }
        return {
            "status": HealthStatus.DEGRADED,
            "message": f"Available tiers: {', '.join(available) or 'none (memory only)'}",
            "tiers": tiers
        }
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": f"Storage error: {str(e)}"
        }


async def check_cache(engine: "LocaleEngine") -> Dict[str, Any]:
    """Round-trip a decision through the pipeline cache and report its use."""
    try:
        cache = engine.pipeline.cache
        probe_key = "__health__"
        probe = PipelineResult(action=Action.PASS, locale=engine.registry.default.code)

        cache.set(probe_key, probe, ttl=5)
        stored = cache.get(probe_key)
        cache.delete(probe_key)

        stats = engine.pipeline.statistics()
        hit_rate = stats["cache_hits"] / stats["executions"] if stats["executions"] else 0.0
        if stored is not probe:
            return {
                "status": HealthStatus.DEGRADED,
                "message": "Decision cache did not return the stored entry"
            }
        return {
            "status": HealthStatus.HEALTHY,
            "message": f"Decision cache working, hit rate {hit_rate:.0%}",
            "size": len(cache),
            "hit_rate": round(hit_rate, 3)
        }
    except Exception as e:
        logger.error(f"Cache health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": f"Cache error: {str(e)}"
        }


async def check_config(engine: "LocaleEngine") -> Dict[str, Any]:
    """Check that every supported locale falls back to the default."""
    try:
        registry = engine.registry
        default = registry.default.code
        for code in registry.codes():
            chain = registry.fallback_chain(code)
            if chain[-1] != default:
                return {
                    "status": HealthStatus.DEGRADED,
                    "message": f"Fallback chain of {code} does not end at {default}"
                }

        return {
            "status": HealthStatus.HEALTHY,
            "message": f"{len(registry)} locales configured, default {default}"
        }
    except Exception as e:
        logger.error(f"Config health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": f"Config error: {str(e)}"
        }


async def get_health_status(engine: "LocaleEngine") -> Dict[str, Any]:
    """
    Get overall engine health status.

    Returns:
        Dict containing overall status and component statuses
    """
    checks = await asyncio.gather(
        check_storage(engine),
        check_cache(engine),
        check_config(engine),
        return_exceptions=True
    )

    components = {}
    for name, check in zip(("storage", "cache", "config"), checks):
        if isinstance(check, dict):
            components[name] = check
        else:
            components[name] = {"status": HealthStatus.UNHEALTHY, "message": str(check)}

    statuses = [c["status"] for c in components.values()]

    if all(s == HealthStatus.HEALTHY for s in statuses):
        overall_status = HealthStatus.HEALTHY
    elif any(s == HealthStatus.UNHEALTHY for s in statuses):
        overall_status = HealthStatus.UNHEALTHY
    else:
        overall_status = HealthStatus.DEGRADED

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": components
    }

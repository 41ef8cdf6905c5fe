# AI Adapter Service - wraps exam_core for the backend
# Holds the one orchestrator (and its caches) shared by every request.

from typing import Optional
import logging
import threading

from exam_core.config import GatewayConfig
from exam_core.orchestrator import TaskOrchestrator, build_orchestrator

logger = logging.getLogger("backend.ai_adapter")

_orchestrator: Optional[TaskOrchestrator] = None
_build_lock = threading.Lock()


def get_orchestrator() -> TaskOrchestrator:
    """FastAPI dependency; builds the orchestrator on first use."""
    global _orchestrator
    if _orchestrator is not None:
        return _orchestrator
    # FastAPI runs sync dependencies in its threadpool
    with _build_lock:
        if _orchestrator is None:
            cfg = GatewayConfig()
            logger.info(f"Building orchestrator: app_mode={cfg.app_mode}, model={cfg.text_model}, cache_max={cfg.cache_max_entries}")
            if cfg.app_mode == "cloud" and not cfg.api_key:
                logger.warning("⚠️ GOOGLE_API_KEY is not set; every AI call will fail")
            _orchestrator = build_orchestrator(cfg)
    return _orchestrator


def set_orchestrator(orchestrator: Optional[TaskOrchestrator]) -> None:
    """Replace (or reset with None) the shared orchestrator."""
    global _orchestrator
    with _build_lock:
        _orchestrator = orchestrator

"""
Exam-lens backend: FastAPI app exposing /api/solve and /api/speak.

Run with:  python -m backend.main   (HOST / PORT / LOG_LEVEL from the environment)
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routers import solve, speech
from exam_core.config import ServiceConfig

logger = logging.getLogger("backend")

app = FastAPI(title="Exam-lens backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(solve.router, prefix="/api", tags=["solve"])
app.include_router(speech.router, prefix="/api", tags=["speech"])


@app.get("/health")
async def health():
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    cfg = ServiceConfig()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"🚀 Starting server on http://{cfg.host}:{cfg.port}")
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()

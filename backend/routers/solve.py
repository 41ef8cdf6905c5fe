from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from backend.models.schemas import ErrorResp, SolveReq, SolveResp
from backend.services.ai_adapter import get_orchestrator
from exam_core.errors import GENERIC_MESSAGE, InvalidRequest, RateLimited
from exam_core.orchestrator import TaskOrchestrator
from exam_core.types import ProblemInput
import logging

logger = logging.getLogger("backend.solve")
router = APIRouter()

_ERRORS = {400: {"model": ErrorResp}, 500: {"model": ErrorResp}, 503: {"model": ErrorResp}}


@router.post("/solve", response_model=SolveResp, responses=_ERRORS)
async def solve(req: SolveReq, orchestrator: TaskOrchestrator = Depends(get_orchestrator)):
    try:
        logger.info(f"🧮 Solve request: subject={req.subject}, text_len={len(req.text or '')}, image={bool(req.image)}")
        problem = ProblemInput(text=req.text, image_base64=req.image)
        report = await orchestrator.solve_report(req.subject, problem)

        if not report.ok:
            for o in report.failures:
                if isinstance(o.error, RateLimited):
                    logger.warning(f"⚠️ Rate limited on {o.task.value}")
                    return JSONResponse(status_code=503, content={"error": o.error.message})
            failed = ", ".join(o.task.value for o in report.failures)
            logger.error(f"❌ Solve failed: {failed}")
            return JSONResponse(status_code=500, content={"error": GENERIC_MESSAGE})

        result = orchestrator.assemble(report)
        logger.info(f"✅ Solved: {len(result.practice_questions)} practice questions")
        return result.to_dict()
    except InvalidRequest as e:
        logger.warning(f"⚠️ Invalid solve request: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error(f"❌ Solve failed: {str(e)}")
        logger.exception(e)
        return JSONResponse(status_code=500, content={"error": GENERIC_MESSAGE})

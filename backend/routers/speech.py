from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from backend.models.schemas import ErrorResp, SpeakReq
from backend.services.ai_adapter import get_orchestrator
from exam_core.errors import GENERIC_MESSAGE, GatewayError
from exam_core.orchestrator import TaskOrchestrator
from voice.pcm import SAMPLE_RATE, pcm_to_wav_bytes
import logging

logger = logging.getLogger("backend.speech")
router = APIRouter()


@router.post(
    "/speak",
    response_class=Response,
    responses={200: {"content": {"audio/wav": {}}}, 204: {}, 500: {"model": ErrorResp}, 503: {"model": ErrorResp}},
)
async def speak(req: SpeakReq, orchestrator: TaskOrchestrator = Depends(get_orchestrator)):
    try:
        logger.info(f"🔊 Speak request: {len(req.content)} chars, summarize={req.summarize}")
        if req.summarize:
            pcm = await orchestrator.summarize_and_speak(req.content)
        else:
            pcm = await orchestrator.gateway.fetch_audio(req.content)
        if not pcm:
            logger.info("ℹ️ No audio returned; nothing to play")
            return Response(status_code=204)
        wav = pcm_to_wav_bytes(pcm, SAMPLE_RATE)
        logger.info(f"✅ Audio ready: {len(wav)} bytes")
        return Response(content=wav, media_type="audio/wav")
    except GatewayError as e:
        status = 503 if e.kind == "rate_limited" else 500
        logger.error(f"❌ Speak failed ({e.kind}): {e.detail}")
        return JSONResponse(status_code=status, content={"error": e.message})
    except Exception as e:
        logger.error(f"❌ Speak failed: {str(e)}")
        logger.exception(e)
        return JSONResponse(status_code=500, content={"error": GENERIC_MESSAGE})

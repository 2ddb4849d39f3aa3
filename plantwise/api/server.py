"""
FastAPI server for PlantWise

Endpoints:
Health:
- GET  /health                          # Service status, agent capabilities, DB counts
- GET  /agents/capabilities             # What each agent can do
- GET  /agents/health                   # Live chat check + static readiness
- GET  /agents/stats                    # Handoff statistics + DB counts
- POST /agents/stats/reset              # Clear the in-memory handoff log
- POST /agents/nutrition/mode           # Switch reversal/prevention

Agents:
- POST /chat                            # Routed through the coordinator
- POST /analyze-image                   # Multipart image upload
- POST /evaluate-nutrition              # Structured food evaluation
- POST /evaluate-meal                   # Structured whole-meal evaluation
- POST /nutrition/daily-guidance        # Free-text guidance from current intake

Sessions:
- GET    /session/{session_id}/history
- GET    /session/{session_id}/stats
- DELETE /session/{session_id}/messages
- DELETE /session/{session_id}
- GET    /user/{user_id}/sessions
"""

import base64
import io
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError
from pydantic.alias_generators import to_camel

from plantwise import __version__
from plantwise.agents import CoordinatorAgent
from plantwise.config import get_settings
from plantwise.database import (
    SessionNotFoundError,
    add_message,
    clear_session,
    delete_session,
    get_conversation_history,
    get_database_stats,
    get_openai_history,
    get_or_create_session,
    get_session,
    get_session_stats,
    get_user_sessions,
    initialize_database,
    record_agent_interaction,
)
from plantwise.models import (
    AgentResult,
    ChatRequest,
    ChatResponse,
    DailyGuidanceRequest,
    DailyGuidanceResponse,
    DailyIntake,
    ImageAnalysisResponse,
    MealEvaluationRequest,
    NutritionEvaluationRequest,
    NutritionEvaluationResponse,
    NutritionMode,
    NutritionModeRequest,
    SessionStats,
)

logger = logging.getLogger(__name__)

CHAT_HISTORY_TURNS = 20
IMAGE_HISTORY_TURNS = 10
DEFAULT_IMAGE_PROMPT = "What do you see in this image?"


def camelize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename the keys of a storage row to camelCase."""
    return {to_camel(key): value for key, value in data.items()}


def now_iso() -> str:
    return datetime.now().isoformat()


def get_coordinator(request: Request) -> CoordinatorAgent:
    return request.app.state.coordinator


def agent_failure(result: AgentResult, session_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": result.error,
            "agent": result.agent,
            "sessionId": session_id,
        },
    )


async def persist_exchange(
    session_id: str,
    user_content: Optional[str],
    interaction_input: str,
    result: AgentResult,
    output: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Store the user turn (unless already stored), the assistant turn and one interaction record."""
    metadata = dict(metadata or {})
    if result.handoff is not None:
        metadata["handoff"] = result.handoff.model_dump(by_alias=True)

    if user_content is not None:
        await add_message(session_id, "user", user_content)
    await add_message(session_id, "assistant", output, result.agent, result.tokens_used)
    await record_agent_interaction(
        session_id,
        result.agent,
        interaction_input,
        output,
        result.tokens_used,
        success=True,
        metadata=metadata,
    )


async def persist_failure(session_id: str, interaction_input: str, result: AgentResult) -> None:
    await record_agent_interaction(
        session_id,
        result.agent or "unknown",
        interaction_input,
        None,
        0,
        success=False,
        error_message=result.error,
    )


async def read_image_upload(image: Optional[UploadFile], max_bytes: int) -> bytes:
    """Read an upload and reject anything that is not a decodable image."""
    if image is None:
        raise HTTPException(status_code=400, detail="Image file is required")

    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    data = await image.read(max_bytes + 1)
    if not data:
        raise HTTPException(status_code=400, detail="Image file is empty")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File size too large. Max size is {max_bytes // (1024 * 1024)}MB.",
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid image file: {e}")

    return data


def create_app(coordinator: Optional[CoordinatorAgent] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        coordinator: Pre-built coordinator (tests inject one backed by a fake
            client). When omitted one is built at startup from OPENAI_API_KEY.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup and shutdown"""
        await initialize_database()
        logger.info("✅ Database initialized")

        if getattr(app.state, "coordinator", None) is None:
            app.state.coordinator = CoordinatorAgent()
        logger.info("✅ Agents ready")
        yield

    app = FastAPI(
        title=settings.app_name,
        description="Nutrition compliance agents with request routing and persistent sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc), "sessionId": exc.session_id})

    # ========================================================================
    # Health & Agent Endpoints
    # ========================================================================

    @app.get("/health")
    async def health_check(coordinator: CoordinatorAgent = Depends(get_coordinator)):
        try:
            return {
                "status": "OK",
                "timestamp": now_iso(),
                "agents": coordinator.get_all_capabilities(),
                "database": await get_database_stats(),
            }
        except Exception as e:
            logger.error(f"❌ Health check failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/agents/capabilities")
    async def agent_capabilities(coordinator: CoordinatorAgent = Depends(get_coordinator)):
        return coordinator.get_all_capabilities()

    @app.get("/agents/health")
    async def agent_health(coordinator: CoordinatorAgent = Depends(get_coordinator)):
        try:
            return await coordinator.health_check()
        except Exception as e:
            logger.error(f"❌ Agent health check failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Health check failed: {e}")

    @app.get("/agents/stats")
    async def agent_stats(coordinator: CoordinatorAgent = Depends(get_coordinator)):
        try:
            return {
                "handoffs": camelize(coordinator.get_handoff_stats()),
                "database": await get_database_stats(),
                "timestamp": now_iso(),
            }
        except Exception as e:
            logger.error(f"❌ Failed to get agent stats: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/agents/stats/reset")
    async def reset_agent_stats(coordinator: CoordinatorAgent = Depends(get_coordinator)):
        return coordinator.reset_handoff_history()

    @app.post("/agents/nutrition/mode")
    async def set_nutrition_mode(
        request: NutritionModeRequest,
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        if request.mode not in {m.value for m in NutritionMode}:
            raise HTTPException(status_code=400, detail='Mode must be "reversal" or "prevention"')

        result = coordinator.nutrition_agent.set_mode(request.mode)
        return {"message": "Nutrition agent mode updated", **result, "timestamp": now_iso()}

    # ========================================================================
    # Chat Endpoint
    # ========================================================================

    @app.post("/chat", response_model=ChatResponse)
    async def chat(
        request: ChatRequest,
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        """Route a chat message to the chat, image or nutrition agent"""
        if not request.message or not request.message.strip():
            raise HTTPException(status_code=400, detail="Message is required")

        try:
            session = await get_or_create_session(request.session_id, request.user_id)
            session_id = session["session_id"]
            history = await get_openai_history(session_id, CHAT_HISTORY_TURNS)
            await add_message(session_id, "user", request.message)

            result = await coordinator.route_request(
                request.message,
                conversation_history=history,
                user_id=session["user_id"],
                session_id=session_id,
            )

            if not result.success:
                await persist_failure(session_id, request.message, result)
                return agent_failure(result, session_id)

            await persist_exchange(session_id, None, request.message, result, result.response or "")

            return ChatResponse(
                response=result.response or "",
                agent=result.agent,
                session_id=session_id,
                user_id=session["user_id"],
                tokens_used=result.tokens_used,
                handoff=result.handoff,
                timestamp=now_iso(),
            )
        except (HTTPException, SessionNotFoundError):
            raise
        except Exception as e:
            logger.error(f"❌ Chat failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    # ========================================================================
    # Image Endpoint
    # ========================================================================

    @app.post("/analyze-image", response_model=ImageAnalysisResponse)
    async def analyze_image(
        image: Optional[UploadFile] = File(None),
        prompt: Optional[str] = Form(None),
        analysis_type: str = Form("general", alias="analysisType"),
        session_id: Optional[str] = Form(None, alias="sessionId"),
        user_id: str = Form("default", alias="userId"),
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        """Analyze an uploaded image (general analysis is routed with history)"""
        image_bytes = await read_image_upload(image, settings.max_upload_bytes)
        image_base64 = base64.b64encode(image_bytes).decode("utf-8")
        prompt = prompt or DEFAULT_IMAGE_PROMPT

        try:
            session = await get_or_create_session(session_id, user_id)
            session_id = session["session_id"]
            interaction_input = f"[Image Analysis: {analysis_type}] {prompt}"

            if analysis_type == "general":
                history = await get_openai_history(session_id, IMAGE_HISTORY_TURNS)
                result = await coordinator.route_request(
                    prompt,
                    has_image=True,
                    image_data=image_base64,
                    mime_type=image.content_type,
                    conversation_history=history,
                    user_id=session["user_id"],
                    session_id=session_id,
                )
            else:
                result = await coordinator.get_specialized_image_analysis(
                    image_base64, analysis_type, image.content_type
                )

            if not result.success:
                await persist_failure(session_id, interaction_input, result)
                return agent_failure(result, session_id)

            analysis = result.response or ""
            await persist_exchange(
                session_id,
                f"[Image uploaded] {prompt}",
                interaction_input,
                result,
                analysis,
                metadata={
                    "analysisType": analysis_type,
                    "filename": image.filename,
                    "fileSize": len(image_bytes),
                    "mimeType": image.content_type,
                    "imageValidation": result.image_validation,
                },
            )

            logger.info(f"📸 Image analyzed ({analysis_type}): {result.image_validation}")

            return ImageAnalysisResponse(
                analysis=analysis,
                agent=result.agent,
                analysis_type=analysis_type,
                filename=image.filename,
                session_id=session_id,
                user_id=session["user_id"],
                tokens_used=result.tokens_used,
                prompt=result.prompt or prompt,
                timestamp=now_iso(),
            )
        except (HTTPException, SessionNotFoundError):
            raise
        except Exception as e:
            logger.error(f"❌ Image analysis failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    # ========================================================================
    # Nutrition Endpoints
    # ========================================================================

    async def _respond_with_evaluation(
        result: AgentResult,
        session: Dict[str, Any],
        user_content: str,
        interaction_input: str,
        metadata: Dict[str, Any],
    ):
        session_id = session["session_id"]
        if not result.success:
            await persist_failure(session_id, interaction_input, result)
            return agent_failure(result, session_id)

        evaluation = result.evaluation or {}
        evaluation_text = json.dumps(evaluation)
        await persist_exchange(
            session_id,
            user_content,
            interaction_input,
            result,
            evaluation_text,
            metadata={
                "mode": result.mode.value if result.mode else None,
                "verdict": evaluation.get("verdict"),
                **metadata,
            },
        )

        return NutritionEvaluationResponse(
            evaluation=evaluation,
            agent=result.agent,
            mode=result.mode,
            session_id=session_id,
            user_id=session["user_id"],
            tokens_used=result.tokens_used,
            timestamp=now_iso(),
        )

    @app.post("/evaluate-nutrition", response_model=NutritionEvaluationResponse)
    async def evaluate_nutrition(
        request: NutritionEvaluationRequest,
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        """Structured compliance evaluation of one food item"""
        if not request.item or not request.item.strip():
            raise HTTPException(status_code=400, detail="Food item description is required")

        try:
            session = await get_or_create_session(request.session_id, request.user_id)
            result = await coordinator.nutrition_agent.evaluate_food(
                request.item,
                nutrition_info=request.nutrition_info,
                ingredient_list=request.ingredient_list,
                serving_size=request.serving_size,
            )
            return await _respond_with_evaluation(
                result,
                session,
                f"[Nutrition Query] {request.item}",
                f"[Nutrition Evaluation] {request.item}",
                {
                    "nutritionInfo": bool(request.nutrition_info),
                    "ingredientList": bool(request.ingredient_list),
                },
            )
        except (HTTPException, SessionNotFoundError):
            raise
        except Exception as e:
            logger.error(f"❌ Nutrition evaluation failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/evaluate-meal", response_model=NutritionEvaluationResponse)
    async def evaluate_meal(
        request: MealEvaluationRequest,
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        """Structured compliance evaluation of a whole meal"""
        if not request.meal or not request.meal.strip():
            raise HTTPException(status_code=400, detail="Meal description is required")

        try:
            session = await get_or_create_session(request.session_id, request.user_id)
            result = await coordinator.nutrition_agent.evaluate_meal(request.meal, request.items)
            return await _respond_with_evaluation(
                result,
                session,
                f"[Meal Query] {request.meal}",
                f"[Meal Evaluation] {request.meal}",
                {"itemCount": len(request.items)},
            )
        except (HTTPException, SessionNotFoundError):
            raise
        except Exception as e:
            logger.error(f"❌ Meal evaluation failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/nutrition/daily-guidance", response_model=DailyGuidanceResponse)
    async def daily_guidance(
        request: DailyGuidanceRequest,
        coordinator: CoordinatorAgent = Depends(get_coordinator),
    ):
        """Free-text guidance for the rest of the day"""
        try:
            session = await get_or_create_session(request.session_id, request.user_id)
            session_id = session["session_id"]
            intake = DailyIntake(
                fruits=request.fruits,
                greens=request.greens,
                soy=request.soy,
                sodium=request.sodium,
            )
            interaction_input = (
                f"[Daily Guidance] fruits={intake.fruits} greens={intake.greens} "
                f"soy={intake.soy} sodium={intake.sodium}"
            )

            result = await coordinator.nutrition_agent.get_daily_guidance(intake)
            if not result.success:
                await persist_failure(session_id, interaction_input, result)
                return agent_failure(result, session_id)

            guidance = result.response or ""
            await persist_exchange(
                session_id,
                interaction_input,
                interaction_input,
                result,
                guidance,
                metadata={"mode": result.mode.value, "intake": intake.model_dump()},
            )

            return DailyGuidanceResponse(
                guidance=guidance,
                agent=result.agent,
                mode=result.mode,
                session_id=session_id,
                user_id=session["user_id"],
                tokens_used=result.tokens_used,
                timestamp=now_iso(),
            )
        except (HTTPException, SessionNotFoundError):
            raise
        except Exception as e:
            logger.error(f"❌ Daily guidance failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    # ========================================================================
    # Session Endpoints
    # ========================================================================

    @app.get("/session/{session_id}/history")
    async def session_history(session_id: str, limit: int = 50):
        try:
            history = await get_conversation_history(session_id, limit)
            stats = await get_session_stats(session_id)
            return {
                "sessionId": session_id,
                "history": [camelize(message) for message in history],
                "stats": SessionStats(**stats).model_dump(by_alias=True),
                "timestamp": now_iso(),
            }
        except Exception as e:
            logger.error(f"❌ Failed to get history: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/session/{session_id}/stats", response_model=SessionStats)
    async def session_stats(session_id: str):
        try:
            if await get_session(session_id) is None:
                raise SessionNotFoundError(session_id)
            return SessionStats(**await get_session_stats(session_id))
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            logger.error(f"❌ Failed to get stats: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.delete("/session/{session_id}/messages")
    async def clear_session_messages(session_id: str):
        try:
            result = await clear_session(session_id)
            return {"message": "Session cleared", **camelize(result)}
        except Exception as e:
            logger.error(f"❌ Failed to clear session: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.delete("/session/{session_id}")
    async def remove_session(session_id: str):
        try:
            result = await delete_session(session_id)
            return {"message": "Session deleted", **camelize(result)}
        except Exception as e:
            logger.error(f"❌ Failed to delete session: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/user/{user_id}/sessions")
    async def user_sessions(user_id: str, limit: int = 20):
        try:
            sessions: List[Dict[str, Any]] = await get_user_sessions(user_id, limit)
            return {
                "userId": user_id,
                "sessions": [camelize(session) for session in sessions],
                "timestamp": now_iso(),
            }
        except Exception as e:
            logger.error(f"❌ Failed to get user sessions: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return app


app = create_app()


# ============================================================================
# Server Startup
# ============================================================================

def main():
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    import uvicorn

    uvicorn.run(
        "plantwise.api.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

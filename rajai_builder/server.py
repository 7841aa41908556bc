"""
API Server for the RajAI app builder.

Run with: uvicorn rajai_builder.server:create_app --factory --port 8000
Or: python -m rajai_builder.server
"""
import logging
from typing import Optional
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, BackgroundTasks, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel
import uvicorn

from rajai_builder.config import Settings, load_settings
from rajai_builder.errors import ConfigurationError, SessionBusyError
from rajai_builder.io import JsonFileStore
from rajai_builder.session import ChatSession

logger = logging.getLogger(__name__)

# Generated apps run with scripts but without same-origin access to this API
PREVIEW_CSP = "sandbox allow-scripts allow-forms allow-modals allow-popups"


# ============== Request/Response Models ==============

class GenerateRequest(BaseModel):
    """Body of a generation request."""
    prompt: str


class SessionResponse(BaseModel):
    """Current session as seen by the UI."""
    phase: str
    configuration_error: Optional[str] = None
    session: dict
    projects: list[dict] = []


# ============== Helper Functions ==============

def session_response(session: ChatSession) -> SessionResponse:
    return SessionResponse(
        phase=session.phase.value,
        configuration_error=session.configuration_error,
        session=session.snapshot().model_dump(mode="json", by_alias=True),
        projects=[project.model_dump(mode="json") for project in session.projects],
    )


def _check_can_submit(session: ChatSession, prompt: str) -> None:
    if session.configuration_error:
        raise HTTPException(status_code=503, detail=session.configuration_error)
    if not prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt must not be empty")
    if session.phase.value != "idle":
        raise HTTPException(status_code=409, detail="A generation is already in progress")


def create_app(session: Optional[ChatSession] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app around one chat session."""
    if session is None:
        settings = settings or load_settings()
        session = ChatSession(settings, store=JsonFileStore(settings.store_dir))
        session.restore()

    app = FastAPI(
        title="RajAI App Builder API",
        description="Chat API that turns app ideas into single-file web applications",
        version="1.0.0"
    )
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_session(request: Request) -> ChatSession:
        return request.app.state.session

    # ============== API Endpoints ==============

    @app.get("/")
    async def root():
        """Service description."""
        return {
            "service": "RajAI App Builder API",
            "status": "running",
            "version": "1.0.0",
            "endpoints": {
                "session": "GET /session - Current conversation, agent progress and code",
                "generate": "POST /generate - Build an app and wait for it",
                "generate_async": "POST /generate/async - Start building an app in the background",
                "new_chat": "POST /session/new - Start a new chat",
                "projects": "GET /projects - Recently generated apps",
                "preview": "GET /preview - Sandboxed live preview",
                "code": "GET /code - Raw generated code",
                "health": "GET /health - Health check"
            }
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/session", response_model=SessionResponse)
    async def get_current_session(request: Request):
        return session_response(get_session(request))

    @app.post("/generate", response_model=SessionResponse)
    async def generate(body: GenerateRequest, request: Request):
        """
        Build an app from a prompt (synchronous).

        Blocks until the stream ends. Failures are reported as an assistant
        message in the returned session, not as an HTTP error.
        """
        current = get_session(request)
        _check_can_submit(current, body.prompt)
        logger.info(f"Received generation request: {body.prompt[:100]}")
        try:
            await current.submit(body.prompt)
        except SessionBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return session_response(current)

    @app.post("/generate/async", status_code=202)
    async def generate_async(body: GenerateRequest, request: Request, background_tasks: BackgroundTasks):
        """
        Build an app in the background. Poll GET /session for progress.
        """
        current = get_session(request)
        _check_can_submit(current, body.prompt)
        logger.info(f"Received async generation request: {body.prompt[:100]}")
        # Claim the session before responding so a second request gets 409
        try:
            generation = current.begin(body.prompt)
        except SessionBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))

        background_tasks.add_task(current.run, generation)
        return {
            "status": "accepted",
            "request_id": generation.request_id,
            "message": "Generation started. Use /session to follow progress.",
            "check_status_url": "/session"
        }

    @app.post("/session/new", response_model=SessionResponse)
    async def new_chat(request: Request, abandon: bool = False):
        """Start a new chat. Pass abandon=true to drop an in-flight generation."""
        current = get_session(request)
        if current.phase.value != "idle" and not abandon:
            raise HTTPException(status_code=409, detail="Cannot start a new chat while generating")
        current.reset_conversation(abandon=abandon)
        return session_response(current)

    @app.get("/projects")
    async def list_projects(request: Request):
        """Most recent generated apps first."""
        return {"projects": [project.model_dump(mode="json") for project in get_session(request).projects]}

    @app.get("/preview", response_class=HTMLResponse)
    async def preview(request: Request):
        """Live preview of the generated app, sandboxed by CSP."""
        html = get_session(request).generated_code
        if not html:
            raise HTTPException(status_code=404, detail="No app generated yet")
        return HTMLResponse(content=html, headers={"Content-Security-Policy": PREVIEW_CSP})

    @app.get("/code", response_class=PlainTextResponse)
    async def code(request: Request):
        """Raw generated source."""
        return PlainTextResponse(get_session(request).generated_code)

    return app


# ============== Main Entry Point ==============

def run() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    settings = load_settings()
    if settings.configuration_error:
        logger.error(f"❌ {settings.configuration_error}")

    logger.info(f"Starting RajAI App Builder API on {settings.host}:{settings.port}")
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    run()

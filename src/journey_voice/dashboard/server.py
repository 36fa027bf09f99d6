"""Dashboard FastAPI server integrated with the journey session."""

import asyncio
from typing import TYPE_CHECKING

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from .conversation_logger import ConversationLogger
from .websocket import ConnectionManager

if TYPE_CHECKING:
    from ..orchestrator import DialogueOrchestrator


def create_dashboard_app(
    orchestrator: "DialogueOrchestrator",
    conversation_logger: "ConversationLogger | None" = None,
) -> FastAPI:
    """Create FastAPI app with injected dependencies.

    Args:
        orchestrator: The running session; read for state, driven by controls
        conversation_logger: ConversationLogger for transcript access

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Journey Voice Dashboard",
        description="Session state and controls for the journey reflection exercise",
        version="0.1.0"
    )

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:8080",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8080",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.orchestrator = orchestrator
    app.state.logger = conversation_logger or orchestrator.conversation_logger or ConversationLogger()
    app.state.ws_manager = ConnectionManager()

    # Wire up conversation logger to broadcast to WebSocket
    async def broadcast_entry(entry):
        await app.state.ws_manager.broadcast_conversation_entry(entry.to_dict())

    app.state.logger.add_listener(broadcast_entry)

    # Wire up the session store to broadcast every mutation
    app.state.broadcast_tasks = set()

    def broadcast_session_change(change: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Mutated outside the event loop; nothing to broadcast to
            return
        task = loop.create_task(
            app.state.ws_manager.broadcast_session_update(change, orchestrator.snapshot())
        )
        # The loop only keeps a weak reference to running tasks
        app.state.broadcast_tasks.add(task)
        task.add_done_callback(app.state.broadcast_tasks.discard)

    orchestrator.store.add_listener(broadcast_session_change)

    from .routes import events, session

    app.include_router(session.router, prefix="/api/session", tags=["session"])
    app.include_router(events.router, prefix="/api/events", tags=["events"])

    @app.websocket("/ws/events")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for real-time session streaming."""
        await app.state.ws_manager.connect(websocket)
        await app.state.ws_manager.send_to_one(
            websocket, "session_update", {"change": "connected", "session": orchestrator.snapshot()}
        )
        try:
            while True:
                # Keep connection alive; client messages are ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            app.state.ws_manager.disconnect(websocket)

    @app.get("/health")
    async def health():
        """Quick health check."""
        return {
            "status": "ok",
            "service": "journey-voice-dashboard",
            "started": orchestrator.started,
            "is_listening": orchestrator.speech_in.is_listening,
            "watchdog_restarts": orchestrator.watchdog.restart_count,
        }

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """API overview."""
        return """
        <!DOCTYPE html>
        <html>
        <head><title>Journey Voice Dashboard</title></head>
        <body>
            <h1>Journey Voice Dashboard API</h1>
            <ul>
                <li><a href="/api/session">/api/session</a> - Session state</li>
                <li><a href="/api/events/conversation">/api/events/conversation</a> - Conversation log</li>
                <li><a href="/health">/health</a> - Health</li>
                <li><a href="/docs">/docs</a> - OpenAPI documentation</li>
            </ul>
            <p>WebSocket: <code>/ws/events</code></p>
        </body>
        </html>
        """

    return app

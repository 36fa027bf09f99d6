"""Session state and control endpoints.

The dashboard only reads session state. The three POST endpoints are the
manual controls: start, end (reset), and recover a stuck microphone.
"""

from fastapi import APIRouter, BackgroundTasks, Request

router = APIRouter()


@router.get("")
async def get_session(request: Request):
    """Current phase, variables, history, insights and turn status."""
    return request.app.state.orchestrator.snapshot()


@router.get("/history/{branch_key}")
async def get_branch_history(request: Request, branch_key: str):
    """Exchanges recorded for one journey branch."""
    store = request.app.state.orchestrator.store
    entries = store.get_history(branch_key)
    return {
        "branch": branch_key,
        "entries": [entry.to_dict() for entry in entries],
        "count": len(entries),
    }


@router.post("/start")
async def start_session(request: Request, background_tasks: BackgroundTasks):
    """Start the session; the greeting and listen loop run in the background."""
    orchestrator = request.app.state.orchestrator
    if orchestrator.started:
        return {"status": "already_started"}
    background_tasks.add_task(orchestrator.start_session)
    return {"status": "starting"}


@router.post("/end")
async def end_session(request: Request):
    """End the session and reset all state to its initial values."""
    orchestrator = request.app.state.orchestrator
    await orchestrator.end_session()
    return {"status": "ended", "session": orchestrator.snapshot()}


@router.post("/recover")
async def recover_session(request: Request):
    """Force-clear a stuck turn and restart listening."""
    orchestrator = request.app.state.orchestrator
    if not orchestrator.started:
        return {"status": "not_started"}
    await orchestrator.recover()
    return {"status": "recovered", "session": orchestrator.snapshot()}

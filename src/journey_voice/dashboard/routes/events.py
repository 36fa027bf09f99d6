"""Conversation log endpoints."""

from typing import Optional

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/conversation")
async def get_conversation_log(
    request: Request,
    limit: int = 100,
    offset: int = 0,
    roles: Optional[str] = None
):
    """Get conversation log entries.

    Args:
        limit: Max entries to return
        offset: Skip this many entries
        roles: Comma-separated roles to filter (user,assistant,system)

    Returns:
        Entries, newest first
    """
    conversation = request.app.state.logger
    role_filter = [role.strip() for role in roles.split(",")] if roles else None

    entries = conversation.get_entries(limit=limit, offset=offset, roles=role_filter)
    return {
        "entries": [entry.to_dict() for entry in entries],
        "count": len(entries),
    }


@router.get("/conversation/transcript")
async def get_transcript(request: Request, count: int = 20):
    """The last ``count`` spoken lines as plain text, oldest first."""
    return {"transcript": request.app.state.logger.get_recent_transcript(count)}


@router.get("/conversation/stats")
async def get_conversation_stats(request: Request):
    """Entry counts by speaker and by session phase."""
    conversation = request.app.state.logger
    return {
        "total_entries": len(conversation.entries),
        "by_role": conversation.count_by("role"),
        "by_phase": conversation.count_by("phase"),
    }

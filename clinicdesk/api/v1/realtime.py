"""
WebSocket endpoint forwarding clinic change events.
"""

import asyncio
import contextlib
import uuid
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from clinicdesk.core.auth import AuthDependencies
from clinicdesk.core.exceptions import Unauthenticated
from clinicdesk.core.logging import get_logger
from clinicdesk.db.session import db_manager
from clinicdesk.services.access_service import access_service
from clinicdesk.services.realtime_service import change_notifier

logger = get_logger(__name__)

router = APIRouter()


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        await websocket.send_json(await queue.get())


@router.websocket("/ws")
async def clinic_changes(
    websocket: WebSocket,
    token: str = Query(...),
    clinic_id: uuid.UUID = Query(...),
):
    """Stream change events for one clinic to a member's socket."""
    async with db_manager.get_session() as db:
        try:
            principal = await AuthDependencies.principal_from_session_token(token, db)
        except Unauthenticated:
            await websocket.close(code=1008, reason="Unauthorized")
            return
        facts = await access_service.load_facts(db, principal.user_id, clinic_id)
    
    if not facts.is_member:
        await websocket.close(code=1008, reason="Not a member of this clinic")
        return
    
    await websocket.accept()
    await websocket.send_json({"type": "connection", "status": "connected", "clinic_id": str(clinic_id)})
    logger.info("Realtime socket connected", user_id=str(principal.user_id), clinic_id=str(clinic_id))
    
    async with change_notifier.subscribe(clinic_id) as queue:
        forwarder = asyncio.create_task(_forward_events(websocket, queue))
        try:
            # Client messages are only used to detect disconnects
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Realtime socket disconnected", user_id=str(principal.user_id), clinic_id=str(clinic_id))
        finally:
            forwarder.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await forwarder

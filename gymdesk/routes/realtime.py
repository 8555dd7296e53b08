from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from gymdesk.dependencies import broadcaster

router = APIRouter()

@router.websocket("/realtime")
async def realtime(websocket: WebSocket):
    """Dashboard event stream. Clients only listen; inbound messages are ignored."""
    await websocket.accept()
    broadcaster.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)

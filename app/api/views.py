import asyncio
import logging
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from app.api.deps import CurrentUser, get_current_user, get_store, resolve_current_user
from app.core import errors
from app.core.store import RecordStore
from app.schemas.breakdown import ViewResponse
from app.services.account_service import AccountService
from app.services.view_service import ManagerView, RoleView, build_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/views", tags=["Views"])

@router.get("", response_model=ViewResponse)
def current_view(
    status_filter: str = Query("all", alias="status"),
    current: CurrentUser = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    """
    One-off projection of the breakdown collection for the caller's role.
    """
    with build_view(store, current.account, status_filter) as view:
        return view.payload()


@router.websocket("/ws")
async def view_stream(
    websocket: WebSocket,
    token: str = Query(...),
    status_filter: str = Query("all", alias="status"),
):
    """
    Live projection for the caller's role.

    Connect with: ws://host/views/ws?token=<session token>

    A `snapshot` message is pushed on connect and after every change to the
    collection. Managers may send {"status": "<filter>"} to change the filter.
    The socket is closed with code 4001 when the session signs out.
    """
    store = websocket.app.state.store
    identity_provider = websocket.app.state.identity
    accounts = AccountService(store, identity_provider)

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push(view: RoleView):
        loop.call_soon_threadsafe(queue.put_nowait, {"type": "snapshot", **view.payload()})

    def on_session_change(identity):
        if identity is None:
            loop.call_soon_threadsafe(queue.put_nowait, None)

    try:
        current = await run_in_threadpool(resolve_current_user, token, identity_provider, accounts)
        view = build_view(store, current.account, status_filter, push)
    except errors.BreakdownServiceError as exc:
        code = 4001 if exc.status_code == 401 else 4003
        await websocket.close(code=code, reason=exc.message)
        return

    await websocket.accept()
    await run_in_threadpool(view.open)
    stop_watching = identity_provider.on_session_change(token, on_session_change)
    logger.info("View stream opened for %s", current.identity.email)

    receive_task = asyncio.ensure_future(websocket.receive_json())
    queue_task = asyncio.ensure_future(queue.get())
    try:
        while True:
            done, _ = await asyncio.wait({receive_task, queue_task}, return_when=asyncio.FIRST_COMPLETED)

            if queue_task in done:
                message = queue_task.result()
                if message is None:
                    await websocket.close(code=4001, reason="Session ended")
                    break
                await websocket.send_json(message)
                queue_task = asyncio.ensure_future(queue.get())

            if receive_task in done:
                try:
                    data = receive_task.result()
                except (ValueError, KeyError):
                    # KeyError: binary frame, no text payload
                    await websocket.send_json({"type": "error", "detail": "Messages must be JSON objects"})
                    data = None
                if isinstance(data, dict) and "status" in data:
                    if isinstance(view, ManagerView):
                        try:
                            await run_in_threadpool(view.set_status_filter, data["status"])
                        except errors.ValidationError as exc:
                            await websocket.send_json({"type": "error", "detail": exc.message})
                    else:
                        await websocket.send_json({"type": "error", "detail": "Only managers can filter by status"})
                receive_task = asyncio.ensure_future(websocket.receive_json())
    except WebSocketDisconnect:
        pass
    finally:
        for task in (receive_task, queue_task):
            if not task.done():
                task.cancel()
        stop_watching()
        view.close()
        logger.info("View stream closed for %s", current.identity.email)

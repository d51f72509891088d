"""FastAPI + WebSocket server for solving split-delivery instances."""

from __future__ import annotations

import asyncio
import threading

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from src.analysis.report import result_to_dict, solution_to_dict
from src.network.config import ConfigurationError, ProblemConfig, SolverConfig
from src.routing.objective import Solution
from src.routing.solver import SplitDeliverySolver

app = FastAPI(title="Split Delivery Router API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SolveRequest(BaseModel):
    """Problem plus optional solver settings."""

    customers_per_warehouse: int
    distance_matrix: list[list[int]]
    time_limit_s: float | None = None
    node_limit: int | None = None
    workers: int = 1
    use_length_identity: bool = True


def _build_solver(request: SolveRequest) -> SplitDeliverySolver:
    problem = ProblemConfig(
        customers_per_warehouse=request.customers_per_warehouse,
        distance_matrix=request.distance_matrix,
    )
    solver_config = SolverConfig(
        time_limit_s=request.time_limit_s,
        node_limit=request.node_limit,
        workers=request.workers,
        use_length_identity=request.use_length_identity,
    )
    return SplitDeliverySolver(problem, solver_config)


@app.get("/api/health")
async def health() -> dict:
    """Basic readiness endpoint."""

    return {"status": "ok"}


@app.post("/api/solve")
def solve_instance(request: SolveRequest) -> dict:
    """Solve one instance synchronously and return the result summary."""

    try:
        solver = _build_solver(request)
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return result_to_dict(solver.solve())


@app.websocket("/api/solve/ws")
async def solve_ws(websocket: WebSocket) -> None:
    """Receive one SolveRequest as JSON, stream incumbents, then the result."""

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=512)
    stop_event = threading.Event()

    def emit(event_type: str, payload: dict) -> None:
        def _enqueue() -> None:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait({"type": event_type, "payload": payload})

        loop.call_soon_threadsafe(_enqueue)

    try:
        body = await websocket.receive_json()
    except WebSocketDisconnect:
        return

    try:
        request = SolveRequest(**body)
        solver = _build_solver(request)
    except (ConfigurationError, ValueError, TypeError) as exc:
        await websocket.send_json({"type": "error", "payload": {"message": str(exc)}})
        await websocket.close()
        return

    def on_incumbent(solution: Solution) -> None:
        emit("incumbent", solution_to_dict(solution))

    def _run() -> None:
        try:
            result = solver.solve(stop_requested=stop_event.is_set, on_incumbent=on_incumbent)
            emit("completed", result_to_dict(result))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            emit("error", {"message": str(exc)})

    emit(
        "started",
        {
            "customers_per_warehouse": request.customers_per_warehouse,
            "naive_bound": solver.naive_bound,
            "seed": None if solver.seed is None else solution_to_dict(solver.seed),
            "workers": request.workers,
        },
    )
    thread = threading.Thread(target=_run, daemon=True)
    thread.start()

    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
            if event["type"] in {"completed", "error"}:
                break
    except WebSocketDisconnect:
        stop_event.set()
    finally:
        stop_event.set()
        thread.join(timeout=3.0)

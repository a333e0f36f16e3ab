from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.requests import Request
from starlette.responses import JSONResponse

from ...deps import get_db_session
from ....db import check_database_health

router = APIRouter(tags=["ops"])


def _runner_status(request: Request) -> dict:
    out = {}
    for runner in getattr(request.app.state, "runners", []):
        out[runner.name_prefix] = {
            "alive": runner.is_alive(),
            "cycles": runner.cycles,
            "last_error": runner.last_error,
        }
    return out


@router.get("/health")
def health(request: Request, session: Session = Depends(get_db_session)) -> JSONResponse:
    # Touch the session to ensure ORM roundtrip is functional
    try:
        session.execute(text("SELECT 1"))
        orm_ok = True
    except Exception as exc:  # noqa: BLE001
        orm_ok = False
        orm_details = str(exc)
    else:
        orm_details = "ok"

    db = check_database_health()
    runners = _runner_status(request)
    # cycle errors are retried on the next tick; only a dead thread is unhealthy
    runners_ok = all(r["alive"] for r in runners.values())
    overall_ok = db["ok"] and orm_ok and runners_ok
    status_code = 200 if overall_ok else 503
    return JSONResponse(
        {
            "status": "ok" if overall_ok else "degraded",
            "db": db,
            "orm": {"ok": orm_ok, "details": orm_details},
            "runners": runners,
        },
        status_code=status_code,
    )

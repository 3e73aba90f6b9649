import json
from pathlib import Path
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from app.core.container import global_container
from app.core.settings import settings
from app.tools.intents import get_intent, run_intent_job, submit_intent
from execution.evm import abbreviate_tx_hash
from job_store import IntentStatus
from observability import build_log_context, log_event

API_CTX = build_log_context(tool="api_server")

app = FastAPI(title="Txt-2-Tx", version=settings.VERSION)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "app" / "templates"))
templates.env.filters["abbrev"] = abbreviate_tx_hash

_ERROR_STATUS = {"job_in_flight": 409, "job_not_found": 404, "empty_intent": 400}


def current_user(request: Request) -> Optional[str]:
    """Owner id from a verified session cookie, or None."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    claims = global_container.session_verifier.verify(token)
    if not claims:
        return None
    return str(claims.get("sub") or "") or None


def _require_user(request: Request) -> str:
    owner = current_user(request)
    if owner is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return owner


def _as_response(res: str) -> JSONResponse:
    body = json.loads(res)
    if body["ok"]:
        return JSONResponse(body)
    return JSONResponse(body, status_code=_ERROR_STATUS.get(body["error"]["code"], 400))


def _start(owner: str, text: str, background_tasks: BackgroundTasks) -> str:
    res = submit_intent(owner, text)
    body = json.loads(res)
    if body["ok"]:
        job_id = body["data"]["job"]["job_id"]
        background_tasks.add_task(run_intent_job, job_id)
        log_event("intent_submitted", ctx=API_CTX, data={"job_id": job_id})
    return res


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "version": settings.VERSION,
        "backend_url": settings.BACKEND_URL,
        "metrics": global_container.metrics.snapshot(),
    }


@app.get("/")
async def login_page(request: Request):
    """
    Login page. A visitor whose cookie already verifies goes straight to the dashboard.
    """
    if current_user(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)
    return templates.TemplateResponse(
        request,
        "login.html",
        {"title": f"Login · {settings.PROJECT_NAME}", "login_url": settings.AUTH_LOGIN_URL},
    )


@app.get("/dashboard")
async def dashboard(request: Request):
    owner = current_user(request)
    if owner is None:
        return RedirectResponse("/", status_code=302)
    store = global_container.job_store
    latest = store.latest_for(owner)
    active = store.active_for(owner)
    popup = None
    if latest is not None and not latest.dismissed and latest.status not in (IntentStatus.IDLE, IntentStatus.LOADING):
        popup = latest
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "title": settings.PROJECT_NAME,
            "job": popup,
            "loading": active is not None,
        },
    )


@app.post("/dashboard")
async def dashboard_submit(request: Request, background_tasks: BackgroundTasks, intent: str = Form("")):
    owner = current_user(request)
    if owner is None:
        return RedirectResponse("/", status_code=303)
    _start(owner, intent, background_tasks)
    return RedirectResponse("/dashboard", status_code=303)


@app.post("/dashboard/dismiss")
async def dashboard_dismiss(request: Request, job_id: str = Form(...)):
    owner = current_user(request)
    if owner is None:
        return RedirectResponse("/", status_code=303)
    global_container.job_store.dismiss(job_id, owner=owner)
    return RedirectResponse("/dashboard", status_code=303)


@app.post("/logout")
async def logout():
    response = RedirectResponse("/", status_code=303)
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return response


class IntentRequest(BaseModel):
    question: str


@app.post("/api/intents")
async def create_intent(req: IntentRequest, request: Request, background_tasks: BackgroundTasks):
    """
    Submit free text; the job runs in the background. Poll GET /api/intents/{job_id}.
    """
    owner = _require_user(request)
    return _as_response(_start(owner, req.question, background_tasks))


@app.get("/api/intents/{job_id}")
async def read_intent(job_id: str, request: Request):
    owner = _require_user(request)
    return _as_response(get_intent(owner, job_id))


def main() -> None:
    import uvicorn

    log_event("api_server_started", ctx=API_CTX, data={"port": settings.API_PORT, "host": settings.API_HOST})
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()

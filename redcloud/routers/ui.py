"""Server-rendered pages and the HTML fragments the realtime script re-fetches."""

from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.jinja import get_templates
from ..crud import guestbook as guestbook_crud
from ..crud import organizations as orgs
from ..crud import tasks as tasks_crud
from ..crud import users as users_crud
from ..db.session import get_db
from ..deps.auth import AuthContext, get_optional_auth, require_auth
from ..schemas.auth import ProfileUpdate, SignInEmail, SignInOtp
from ..schemas.guestbook import GuestbookMessageCreate
from ..schemas.task import PAGE_SIZES, BulkDeleteTasks, TaskCreate, TaskQuery, TaskUpdate
from ..services import auth as auth_service
from ..services import avatars, oauth
from ..services.email import EmailDeliveryError
from ..services.realtime import REALTIME_KEYS, trigger_realtime_update
from .api_auth import safe_next, start_session
from .api_tasks import task_query_params

templates = get_templates()

router = APIRouter(include_in_schema=False)

ONBOARDING_PATH = "/profile"
SORT_COLUMNS = (
    ("title", "Title"),
    ("status", "Status"),
    ("priority", "Priority"),
    ("assignee", "Assignee"),
    ("project", "Project"),
    ("due_date", "Due date"),
)
SOCIAL_ERRORS = {"social": "Social sign-in failed. Please try again."}


def _messages(exc: ValidationError) -> str:
    seen: list[str] = []
    for error in exc.errors():
        text = str(error.get("msg") or "Invalid value").removeprefix("Value error, ")
        if text not in seen:
            seen.append(text)
    return ", ".join(seen)


def _render(request: Request, name: str, context: dict, status_code: int = 200, auth: AuthContext | None = None):
    base = {"auth": auth, "user": auth.user if auth else None}
    base.update(context)
    return templates.TemplateResponse(request, name, base, status_code=status_code)


def _onboarding_redirect(auth: AuthContext) -> RedirectResponse | None:
    if auth.needs_onboarding:
        return RedirectResponse(url=f"{ONBOARDING_PATH}?onboarding=1", status_code=302)
    return None


def query_string(query: TaskQuery, **changes) -> str:
    values = query.model_dump()
    values.update(changes)
    params: list[tuple[str, object]] = []
    if values.get("search"):
        params.append(("search", values["search"]))
    params.extend(("status", item) for item in values.get("status") or [])
    params.extend(("priority", item) for item in values.get("priority") or [])
    params.append(("sort", values["sort"]))
    if values.get("desc"):
        params.append(("desc", "true"))
    params.append(("page_index", values["page_index"]))
    params.append(("page_size", values["page_size"]))
    return urlencode(params)


def _tasks_context(db: Session, auth: AuthContext, query: TaskQuery) -> dict:
    return {
        "page": tasks_crud.list_tasks(db, auth.task_scope(), query),
        "query": query,
        "query_string": query_string,
        "sort_columns": SORT_COLUMNS,
        "page_sizes": PAGE_SIZES,
    }


# ---------- Landing & sign-in ----------


@router.get("/", response_class=HTMLResponse)
def landing_page(request: Request, auth: AuthContext | None = Depends(get_optional_auth)):
    return _render(request, "landing.html", {}, auth=auth)


@router.get("/sign-in", response_class=HTMLResponse)
def sign_in_page(
    request: Request,
    next: str = "/",
    error: str | None = None,
    auth: AuthContext | None = Depends(get_optional_auth),
):
    if auth is not None:
        return RedirectResponse(url=safe_next(next), status_code=302)
    context = {
        "next": safe_next(next),
        "step": "email",
        "email": "",
        "error": SOCIAL_ERRORS.get(error or "", ""),
        "providers": oauth.PROVIDERS,
    }
    return _render(request, "sign_in.html", context)


@router.post("/sign-in/email", response_class=HTMLResponse)
def sign_in_email_submit(request: Request, email: str = Form(""), next: str = Form("/"), db: Session = Depends(get_db)):
    context = {"next": safe_next(next), "email": email, "providers": oauth.PROVIDERS}
    try:
        payload = SignInEmail(email=email)
    except ValidationError as exc:
        return _render(request, "sign_in.html", {**context, "step": "email", "error": _messages(exc)}, status_code=422)
    try:
        auth_service.send_sign_in_otp(db, payload.email)
    except EmailDeliveryError:
        return _render(
            request,
            "sign_in.html",
            {**context, "step": "email", "error": "Failed to send verification code"},
            status_code=502,
        )
    return _render(request, "sign_in.html", {**context, "email": payload.email, "step": "otp", "error": ""})


@router.post("/sign-in/otp", response_class=HTMLResponse)
def sign_in_otp_submit(
    request: Request,
    email: str = Form(""),
    otp: str = Form(""),
    next: str = Form("/"),
    db: Session = Depends(get_db),
):
    context = {"next": safe_next(next), "email": email, "step": "otp", "providers": oauth.PROVIDERS}
    try:
        payload = SignInOtp(email=email, otp=otp)
    except ValidationError as exc:
        return _render(request, "sign_in.html", {**context, "error": _messages(exc)}, status_code=422)
    try:
        user = auth_service.verify_sign_in_otp(db, payload.email, payload.otp)
    except auth_service.AuthenticationError as exc:
        return _render(request, "sign_in.html", {**context, "error": str(exc)}, status_code=401)
    auth = start_session(request, db, user)
    target = _onboarding_redirect(auth)
    return target or RedirectResponse(url=context["next"], status_code=303)


@router.get("/sign-out")
def sign_out(request: Request, auth: AuthContext | None = Depends(get_optional_auth), db: Session = Depends(get_db)):
    if auth is not None:
        auth_service.revoke_session(db, auth.session)
    request.session.clear()
    return RedirectResponse(url="/", status_code=302)


# ---------- Tasks ----------


def _tasks_page_context(db: Session, auth: AuthContext, query: TaskQuery, error: str = "") -> dict:
    scope = auth.task_scope()
    context = _tasks_context(db, auth, query)
    context["projects"] = tasks_crud.list_projects(db, scope)
    context["assignees"] = tasks_crud.list_assignees(db, scope)
    context["error"] = error
    return context


def _task_or_404(db: Session, auth: AuthContext, task_id: str):
    task = tasks_crud.get_task(db, auth.task_scope(), task_id)
    if not task:
        raise HTTPException(404, "Task not found")
    return task


@router.get("/tasks", response_class=HTMLResponse)
def tasks_page(
    request: Request,
    query: TaskQuery = Depends(task_query_params),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    redirect = _onboarding_redirect(auth)
    if redirect:
        return redirect
    return _render(request, "tasks.html", _tasks_page_context(db, auth, query), auth=auth)


@router.get("/ui/tasks_table", response_class=HTMLResponse)
def tasks_table_partial(
    request: Request,
    query: TaskQuery = Depends(task_query_params),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return _render(request, "partials/_tasks_table.html", _tasks_context(db, auth, query), auth=auth)


@router.post("/ui/tasks", response_class=HTMLResponse)
def ui_create_task(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    status: str = Form("todo"),
    priority: str = Form("medium"),
    assignee_id: str = Form(""),
    project_id: str = Form(""),
    due_date: str = Form(""),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        payload = TaskCreate(
            title=title,
            description=description or None,
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            project_id=project_id,
            due_date=due_date,
        )
        tasks_crud.create_task(db, auth.task_scope(), payload.model_dump())
    except (ValidationError, ValueError) as exc:
        message = _messages(exc) if isinstance(exc, ValidationError) else str(exc)
        context = _tasks_page_context(db, auth, TaskQuery(), error=message)
        return _render(request, "tasks.html", context, status_code=422, auth=auth)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return RedirectResponse(url="/tasks", status_code=303)


@router.post("/ui/tasks/bulk-delete", response_class=HTMLResponse)
def ui_bulk_delete_tasks(
    request: Request,
    task_ids: list[str] = Form(default=[]),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        payload = BulkDeleteTasks(task_ids=task_ids)
    except ValidationError as exc:
        context = _tasks_page_context(db, auth, TaskQuery(), error=_messages(exc))
        return _render(request, "tasks.html", context, status_code=422, auth=auth)
    if tasks_crud.bulk_delete_tasks(db, auth.task_scope(), payload.task_ids):
        trigger_realtime_update(REALTIME_KEYS.TASKS)
    return RedirectResponse(url="/tasks", status_code=303)


@router.get("/tasks/{task_id}/edit", response_class=HTMLResponse)
def edit_task_page(
    task_id: str, request: Request, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    scope = auth.task_scope()
    context = {
        "task": _task_or_404(db, auth, task_id),
        "projects": tasks_crud.list_projects(db, scope),
        "assignees": tasks_crud.list_assignees(db, scope),
        "error": "",
    }
    return _render(request, "task_edit.html", context, auth=auth)


@router.post("/ui/tasks/{task_id}", response_class=HTMLResponse)
def ui_update_task(
    task_id: str,
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    status: str = Form("todo"),
    priority: str = Form("medium"),
    assignee_id: str = Form(""),
    project_id: str = Form(""),
    due_date: str = Form(""),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    scope = auth.task_scope()
    task = _task_or_404(db, auth, task_id)
    try:
        # every field is on the form, so blanks clear assignee, project and due date
        payload = TaskUpdate(
            title=title,
            description=description,
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            project_id=project_id,
            due_date=due_date,
        )
        tasks_crud.update_task(db, scope, task, payload.model_dump())
    except (ValidationError, ValueError) as exc:
        db.rollback()
        context = {
            "task": _task_or_404(db, auth, task_id),
            "projects": tasks_crud.list_projects(db, scope),
            "assignees": tasks_crud.list_assignees(db, scope),
            "error": _messages(exc) if isinstance(exc, ValidationError) else str(exc),
        }
        return _render(request, "task_edit.html", context, status_code=422, auth=auth)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return RedirectResponse(url="/tasks", status_code=303)


@router.post("/ui/tasks/{task_id}/delete", response_class=HTMLResponse)
def ui_delete_task(task_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    tasks_crud.delete_task(db, _task_or_404(db, auth, task_id))
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return HTMLResponse("", status_code=204)


# ---------- Guestbook ----------


@router.get("/guestbook", response_class=HTMLResponse)
def guestbook_page(request: Request, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    redirect = _onboarding_redirect(auth)
    if redirect:
        return redirect
    context = {"messages": guestbook_crud.list_messages(db), "error": "", "form": {"name": auth.user.name or ""}}
    return _render(request, "guestbook.html", context, auth=auth)


@router.get("/ui/guestbook_messages", response_class=HTMLResponse)
def guestbook_messages_partial(request: Request, auth: AuthContext = Depends(require_auth),
                               db: Session = Depends(get_db)):
    return _render(request, "partials/_guestbook_messages.html", {"messages": guestbook_crud.list_messages(db)}, auth=auth)


@router.post("/ui/guestbook", response_class=HTMLResponse)
def ui_create_message(
    request: Request,
    name: str = Form(""),
    message: str = Form(""),
    country: str = Form(""),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        payload = GuestbookMessageCreate(name=name, message=message, country=country or None)
    except ValidationError as exc:
        context = {
            "messages": guestbook_crud.list_messages(db),
            "error": _messages(exc),
            "form": {"name": name, "message": message, "country": country},
        }
        return _render(request, "guestbook.html", context, status_code=422, auth=auth)
    guestbook_crud.create_message(db, auth.user, payload.model_dump())
    trigger_realtime_update(REALTIME_KEYS.GUESTBOOK)
    return RedirectResponse(url="/guestbook", status_code=303)


@router.post("/ui/guestbook/{message_id}/delete", response_class=HTMLResponse)
def ui_delete_message(message_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    message = guestbook_crud.get_message(db, message_id)
    if not message:
        raise HTTPException(404, "Message not found")
    try:
        guestbook_crud.delete_message(db, message, auth.user)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.GUESTBOOK)
    return HTMLResponse("", status_code=204)


# ---------- Profile ----------


def _profile_context(db: Session, auth: AuthContext, onboarding: bool) -> dict:
    return {
        "onboarding": onboarding or auth.needs_onboarding,
        "organizations": orgs.list_organizations(db, auth.user),
        "invitations": orgs.list_user_invitations(db, auth.user),
        "error": "",
    }


@router.get("/profile", response_class=HTMLResponse)
def profile_page(
    request: Request,
    onboarding: bool = False,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return _render(request, "profile.html", _profile_context(db, auth, onboarding), auth=auth)


@router.post("/ui/profile", response_class=HTMLResponse)
def ui_update_profile(
    request: Request,
    name: str = Form(""),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        payload = ProfileUpdate(name=name)
    except ValidationError as exc:
        context = _profile_context(db, auth, False)
        context["error"] = _messages(exc)
        return _render(request, "profile.html", context, status_code=422, auth=auth)
    users_crud.update_profile(db, auth.user, {"name": payload.name})
    trigger_realtime_update(REALTIME_KEYS.PROFILE)
    return RedirectResponse(url="/profile", status_code=303)


@router.post("/ui/profile/avatar", response_class=HTMLResponse)
def ui_upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        key = avatars.store_avatar(auth.user.id, file.content_type, file.file)
    except ValueError as exc:
        context = _profile_context(db, auth, False)
        context["error"] = str(exc)
        return _render(request, "profile.html", context, status_code=422, auth=auth)
    finally:
        file.file.close()
    users_crud.set_avatar(db, auth.user, key)
    trigger_realtime_update(REALTIME_KEYS.PROFILE)
    return RedirectResponse(url="/profile", status_code=303)


# ---------- Invitations ----------


@router.get("/accept-invitation/{invitation_id}", response_class=HTMLResponse)
def accept_invitation_page(
    request: Request,
    invitation_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        invitation = orgs.get_invitation(db, invitation_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    organization = orgs.get_organization(db, invitation.organization_id)
    context = {"invitation": invitation, "organization": organization, "error": ""}
    return _render(request, "accept_invitation.html", context, auth=auth)


@router.post("/accept-invitation/{invitation_id}", response_class=HTMLResponse)
def accept_invitation_submit(
    request: Request,
    invitation_id: str,
    action: str = Form("accept"),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        if action == "reject":
            orgs.reject_invitation(db, invitation_id, auth.user)
        else:
            orgs.accept_invitation(db, invitation_id, auth.user, auth.session)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (PermissionError, ValueError) as exc:
        invitation = orgs.get_invitation(db, invitation_id)
        context = {
            "invitation": invitation,
            "organization": orgs.get_organization(db, invitation.organization_id),
            "error": str(exc),
        }
        return _render(request, "accept_invitation.html", context, status_code=400, auth=auth)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return RedirectResponse(url="/tasks" if action != "reject" else "/profile", status_code=303)

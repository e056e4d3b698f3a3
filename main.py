import asyncio
import os
from datetime import date as date_type
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, FastAPI, Header, Request, WebSocket
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import attendance
import directory
import finance
import grading
import school_config
from app_logger import get_logger, setup_logging
from database import DocumentStore, get_store
from errors import AccessRestricted, NotAuthenticated, PortalError
from identity import IdentityStore
from schemas import Role, TransactionStatus, TransactionType
from sessions import SessionContext, load_session, login, open_session
from settings import settings
from signup import SignupReconciler
from views import can_access, menu_for, resolve_view

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL] if settings.FRONTEND_URL != "*" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code,
                        content={"detail": exc.message, "error_code": exc.error_code})


# Dependencies

def get_identity_store(store: DocumentStore = Depends(get_store)) -> IdentityStore:
    return IdentityStore(store)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    return authorization.replace("Bearer ", "").strip() or None


def get_session(authorization: Optional[str] = Header(None),
                store: DocumentStore = Depends(get_store)) -> SessionContext:
    return load_session(store, bearer_token(authorization))


def require_page(page: str):
    """Guard a route the way the dashboard guards its pages: by the view role."""
    def guard(session: SessionContext = Depends(get_session)) -> SessionContext:
        if not can_access(page, session.view_role):
            raise AccessRestricted(page, session.view_role.value)
        return session
    return guard


# Request models

class LoginRequest(BaseModel):
    email: str
    password: str


class OwnerSignupRequest(BaseModel):
    name: str
    school_name: str
    email: str
    password: str
    license_code: str


class ActivateRequest(BaseModel):
    email: str
    password: str


class ViewRoleRequest(BaseModel):
    role: Role


class InviteRequest(BaseModel):
    name: str
    email: str
    role: Literal["teacher", "student"] = "teacher"
    class_assigned: Optional[str] = None


class CustomerCreate(BaseModel):
    name: str
    phone: str
    email: Optional[str] = ""
    status: str = "Active"


class TransactionCreate(BaseModel):
    type: TransactionType = "income"
    amount: float
    status: TransactionStatus = "Completed"
    date: Optional[date_type] = None
    note: str = ""
    customer_id: Optional[str] = None
    description: Optional[str] = None


class TransactionUpdate(BaseModel):
    status: TransactionStatus
    note: Optional[str] = ""
    date: Optional[date_type] = None


class StructuredGradeRequest(BaseModel):
    student_id: str
    class_name: str
    subject: str
    test: Optional[Any] = None
    assignment: Optional[Any] = None
    exam: Optional[Any] = None


class FreeformGradeRequest(BaseModel):
    student_id: str
    subject: str
    score: Optional[Any] = None
    feedback: Optional[str] = None


class RemarkRequest(BaseModel):
    student_id: str
    message: str


class AttendanceSave(BaseModel):
    class_name: str
    date: Optional[date_type] = None
    records: Dict[str, str] = Field(default_factory=dict)


class NameRequest(BaseModel):
    name: str


class TermRequest(BaseModel):
    current_term: str


@app.get("/")
def read_root():
    return {"message": "School Portal API"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/test")
def test_database(store: DocumentStore = Depends(get_store)):
    resp = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        resp["database"] = "✅ Available"
        resp["database_name"] = getattr(store.db, "name", None)
        resp["collections"] = store.db.list_collection_names()[:10]
        resp["database"] = "✅ Connected & Working"
        resp["connection_status"] = "Connected"
    except Exception as e:
        logger.warning(f"Store connectivity check failed: {e}")
        resp["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    resp["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return resp


# Auth routes

def session_payload(session: SessionContext, user: Optional[dict] = None) -> dict:
    payload = {"token": session.token, "session": session.to_public()}
    if user is not None:
        payload["user"] = user
    return payload


@app.post("/auth/login")
def auth_login(payload: LoginRequest, store: DocumentStore = Depends(get_store),
               identities: IdentityStore = Depends(get_identity_store)):
    session = login(store, identities, payload.email, payload.password)
    return session_payload(session)


@app.post("/auth/logout")
def auth_logout(session: SessionContext = Depends(get_session)):
    session.clear()
    return {"message": "Logged out"}


@app.post("/auth/signup/owner")
def signup_owner(payload: OwnerSignupRequest, store: DocumentStore = Depends(get_store),
                 identities: IdentityStore = Depends(get_identity_store)):
    user = SignupReconciler(store, identities).signup(
        "owner", payload.email, payload.password,
        name=payload.name, school_name=payload.school_name, license_code=payload.license_code,
    )
    return session_payload(open_session(store, user["id"], user), user)


@app.post("/auth/signup/activate")
def signup_activate(payload: ActivateRequest, store: DocumentStore = Depends(get_store),
                    identities: IdentityStore = Depends(get_identity_store)):
    user = SignupReconciler(store, identities).signup("invite", payload.email, payload.password)
    return session_payload(open_session(store, user["id"], user), user)


# Session and navigation

@app.get("/session")
def get_session_state(session: SessionContext = Depends(get_session)):
    return session.to_public()


@app.put("/session/view-role")
def set_view_role(payload: ViewRoleRequest, session: SessionContext = Depends(get_session)):
    session.set_view_role(payload.role)
    return session.to_public()


@app.post("/session/simulate/{user_id}")
def start_simulation(user_id: str, session: SessionContext = Depends(require_page("staff")),
                     store: DocumentStore = Depends(get_store)):
    session.start_simulation(directory.get_user(store, user_id))
    return session.to_public()


@app.delete("/session/simulate")
def exit_simulation(session: SessionContext = Depends(get_session)):
    session.exit_simulation()
    return session.to_public()


@app.get("/views/{page}")
def get_view(page: str, session: SessionContext = Depends(get_session)):
    return resolve_view(page, session.view_role)._asdict()


@app.get("/menu")
def get_menu(session: SessionContext = Depends(get_session)):
    return [item._asdict() for item in menu_for(session.view_role)]


# Dashboard

@app.get("/dashboard")
def dashboard(session: SessionContext = Depends(get_session), store: DocumentStore = Depends(get_store)):
    view_role = session.view_role
    resp = {"viewRole": view_role.value, "session": session.to_public()}
    if view_role == Role.ADMIN:
        stats = finance.empty_stats()
        # Financial data is only fetched for a real admin
        feed = finance.feed_for_session(session, store)
        if feed:
            stats = feed.stats
            feed.stop()
        resp["stats"] = stats
    elif view_role == Role.TEACHER:
        resp["quickActions"] = ["grading", "attendance", "my-students"]
    else:
        resp["results"] = grading.list_student_results(store, session.effective_identity)
    return resp


@app.websocket("/ws/dashboard")
async def dashboard_stream(websocket: WebSocket, token: Optional[str] = None,
                           store: DocumentStore = Depends(get_store)):
    try:
        session = await run_in_threadpool(load_session, store, token)
    except NotAuthenticated:
        await websocket.close(code=1008)
        return
    if not session.can_fetch_financials:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push(stats: dict) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, dict(stats))

    async def watch_disconnect():
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            queue.put_nowait(None)

    feed = await run_in_threadpool(finance.DashboardFeed(store, push).start)
    watcher = asyncio.create_task(watch_disconnect())
    try:
        while True:
            stats = await queue.get()
            if stats is None:
                break
            await websocket.send_json(jsonable_encoder(stats))
    finally:
        feed.stop()
        watcher.cancel()


# Staff and students

@app.get("/users")
def list_users(role: Role = Role.TEACHER, search: str = "",
               session: SessionContext = Depends(require_page("staff")),
               store: DocumentStore = Depends(get_store)):
    return directory.list_users(store, role, search)


@app.post("/users/invite")
def invite_user(payload: InviteRequest, session: SessionContext = Depends(require_page("staff")),
                store: DocumentStore = Depends(get_store)):
    return directory.invite_user(store, payload.name, payload.email, Role(payload.role), payload.class_assigned)


@app.delete("/users/{user_id}")
def delete_user(user_id: str, session: SessionContext = Depends(require_page("staff")),
                store: DocumentStore = Depends(get_store)):
    directory.delete_user(store, user_id)
    return {"message": "User removed"}


@app.get("/students")
def list_students(class_name: Optional[str] = None, search: str = "",
                  session: SessionContext = Depends(require_page("customers")),
                  store: DocumentStore = Depends(get_store)):
    return directory.list_students(store, class_name, search)


@app.delete("/students/{student_id}")
def expel_student(student_id: str, session: SessionContext = Depends(require_page("customers")),
                  store: DocumentStore = Depends(get_store)):
    # The student directory checks the stored role, not the view role
    if session.real_role != Role.ADMIN:
        raise AccessRestricted("customers", session.real_role.value)
    directory.delete_user(store, student_id)
    return {"message": "Student removed"}


# Finance

@app.get("/customers")
def list_customers(session: SessionContext = Depends(require_page("transactions")),
                   store: DocumentStore = Depends(get_store)):
    return finance.list_customers(store)


@app.post("/customers")
def add_customer(payload: CustomerCreate, session: SessionContext = Depends(require_page("transactions")),
                 store: DocumentStore = Depends(get_store)):
    return finance.add_customer(store, payload.name, payload.phone, payload.email, payload.status)


@app.get("/transactions")
def list_transactions(search: str = "", session: SessionContext = Depends(require_page("transactions")),
                      store: DocumentStore = Depends(get_store)):
    return finance.list_transactions(store, search)


@app.post("/transactions")
def add_transaction(payload: TransactionCreate, session: SessionContext = Depends(require_page("transactions")),
                    store: DocumentStore = Depends(get_store)):
    return finance.add_transaction(store, payload.type, payload.amount, payload.status, payload.date,
                                   payload.note, payload.customer_id, payload.description)


@app.patch("/transactions/{txn_id}")
def update_transaction(txn_id: str, payload: TransactionUpdate,
                       session: SessionContext = Depends(require_page("transactions")),
                       store: DocumentStore = Depends(get_store)):
    return finance.update_transaction(store, txn_id, payload.status, payload.note, payload.date)


# Grades

@app.post("/gradebook/save")
def save_structured_grade(payload: StructuredGradeRequest,
                          session: SessionContext = Depends(require_page("grading")),
                          store: DocumentStore = Depends(get_store)):
    student = directory.get_user(store, payload.student_id)
    book = grading.StructuredGradebook(payload.class_name, payload.subject)
    for field in grading.COMPONENTS:
        value = getattr(payload, field)
        if value is not None:
            book.enter(student["id"], field, value)
    saved = book.save(store, student)
    return {"saved": saved is not None, "grade": saved}


@app.post("/gradebook/entries")
def preview_structured_grade(payload: StructuredGradeRequest,
                             session: SessionContext = Depends(require_page("grading"))):
    result = grading.compute(payload.test, payload.assignment, payload.exam)
    return {"total": result.total, "grade": result.grade}


@app.post("/gradebook/freeform")
def save_freeform_grade(payload: FreeformGradeRequest,
                        session: SessionContext = Depends(require_page("grading")),
                        store: DocumentStore = Depends(get_store)):
    student = directory.get_user(store, payload.student_id)
    return grading.append_freeform_grade(store, student, payload.subject, payload.score, payload.feedback,
                                         teacher_name=session.identity.userName)


@app.get("/results")
def my_results(session: SessionContext = Depends(get_session), store: DocumentStore = Depends(get_store)):
    return grading.list_student_results(store, session.effective_identity)


@app.post("/remarks")
def send_remark(payload: RemarkRequest, session: SessionContext = Depends(require_page("grading")),
                store: DocumentStore = Depends(get_store)):
    student = directory.get_user(store, payload.student_id)
    return grading.send_remark(store, student, payload.message, session.identity.userName)


# Attendance

@app.get("/attendance")
def get_attendance(class_name: str, day: Optional[date_type] = None,
                   session: SessionContext = Depends(require_page("attendance")),
                   store: DocumentStore = Depends(get_store)):
    day_str = (day or date_type.today()).isoformat()
    return {
        "class": class_name,
        "date": day_str,
        "students": attendance.class_roster(store, class_name),
        "record": attendance.load_attendance(store, class_name, day_str),
    }


@app.put("/attendance")
def save_attendance(payload: AttendanceSave, session: SessionContext = Depends(require_page("attendance")),
                    store: DocumentStore = Depends(get_store)):
    register = attendance.AttendanceRegister(payload.class_name, payload.date.isoformat() if payload.date else None)
    for student_id, status in payload.records.items():
        register.mark(student_id, status)
    return register.save(store, marked_by=session.identity.userName)


# School config

@app.get("/config")
def get_config(session: SessionContext = Depends(get_session), store: DocumentStore = Depends(get_store)):
    return school_config.load_config(store)


@app.post("/config/classes")
def add_class(payload: NameRequest, session: SessionContext = Depends(require_page("config")),
              store: DocumentStore = Depends(get_store)):
    return school_config.add_class(store, payload.name)


@app.delete("/config/classes/{name}")
def remove_class(name: str, session: SessionContext = Depends(require_page("config")),
                 store: DocumentStore = Depends(get_store)):
    return school_config.remove_class(store, name)


@app.post("/config/subjects")
def add_subject(payload: NameRequest, session: SessionContext = Depends(require_page("config")),
                store: DocumentStore = Depends(get_store)):
    return school_config.add_subject(store, payload.name)


@app.delete("/config/subjects/{name}")
def remove_subject(name: str, session: SessionContext = Depends(require_page("config")),
                   store: DocumentStore = Depends(get_store)):
    return school_config.remove_subject(store, name)


@app.put("/config/term")
def set_term(payload: TermRequest, session: SessionContext = Depends(require_page("config")),
             store: DocumentStore = Depends(get_store)):
    return school_config.set_term(store, payload.current_term)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

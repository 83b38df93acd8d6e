import logging
import os

import pandas as pd
import requests
import extra_streamlit_components as stx
import streamlit as st
from dotenv import load_dotenv
from pydantic import ValidationError

from portal import ActionInProgress, FormValidationError, RequestFailed
from portal.api_client import PortalClient
from portal.assessment_form import AssessmentForm, StatusDot
from portal.cookie_storage import CookieStorage
from portal.query_cache import ASSESSMENTS, TEMPLATES, QueryCache, assessment_key
from portal.realtime import TemplateWatcher, has_processing
from portal.session import AUTH_FAILED_ERROR, Session, google_auth_url
from portal.upload_flow import SelectedFile, UploadFlow

load_dotenv()

# ── configurable via .env ──
API_BASE = os.getenv("API_BASE", "http://localhost:8000")
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))
TEMPLATE_POLL_SECONDS = int(os.getenv("TEMPLATE_POLL_SECONDS", "5"))

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("portal.app")

st.set_page_config(page_title="RegXperience", page_icon="📋", layout="wide")

DOT_ICONS = {
    StatusDot.IDLE: "⚪",
    StatusDot.ACTIVE: "🔘",
    StatusDot.IN_REVIEW: "🔵",
    StatusDot.COMPLIANT: "🟢",
    StatusDot.REJECTED: "🔴",
}
BADGE_COLORS = {
    "AVAILABLE": "green", "PROCESSING": "orange", "FAILED": "red",
    "IN_PROGRESS": "blue", "SUBMITTED": "violet", "REVIEWED": "green",
}
REVIEW_LABELS = {None: "Select status...", "COMPLIANT": "Compliant", "REJECTED": "Not Compliant"}


def _state(key, factory):
    if key not in st.session_state:
        st.session_state[key] = factory()
    return st.session_state[key]


auth_storage: CookieStorage = _state("auth_storage", lambda: CookieStorage(st.context.cookies))
session: Session = _state("session", lambda: Session(auth_storage).init())
cache: QueryCache = _state("query_cache", QueryCache)
client: PortalClient = _state("client", lambda: PortalClient(session, API_BASE, REQUEST_TIMEOUT))
watcher: TemplateWatcher = _state("template_watcher", lambda: TemplateWatcher(cache))


def navigate(page: str, **params):
    st.query_params.clear()
    st.query_params.update(page=page, **params)
    st.rerun()


def flash(kind: str, message: str):
    st.session_state["flash"] = (kind, message)


def show_flash():
    kind, message = st.session_state.pop("flash", (None, None))
    if kind:
        getattr(st, kind)(message)


def badge(status: str) -> str:
    return f":{BADGE_COLORS.get(status, 'gray')}-background[{status.replace('_', ' ')}]"


def query(key, loader):
    try:
        return cache.fetch(key, loader)
    except (requests.RequestException, ValidationError) as e:
        logger.exception("Query %s failed", key)
        raise RequestFailed(str(e)) from e


# ============== Auth ==============

def finish_sign_in() -> str:
    """Handle the OAuth redirect back from the backend; returns the page to show."""
    signed_in = session.complete_callback(st.query_params)
    st.query_params.clear()
    if signed_in:
        st.query_params["page"] = "home"
        return "home"
    st.query_params.update(page="login", error=AUTH_FAILED_ERROR)
    return "login"


def render_login():
    _, mid, _ = st.columns([1, 2, 1])
    with mid, st.container(border=True):
        st.title("RegXperience")
        st.caption("Compliance Assessment & Management Platform")
        if st.query_params.get("error") == AUTH_FAILED_ERROR:
            st.error("Sign-in failed. Please try again.")
        st.write("Sign in to your account to get started with compliance assessments.")
        st.link_button("Sign in with Google", google_auth_url(), type="primary", use_container_width=True)
        st.caption("New to RegXperience? Sign in with Google to create your account.")


def sign_out():
    session.sign_out()
    watcher.close()
    cache.clear()
    for key in [k for k in st.session_state if str(k).startswith(("assessment_form:", "upload_"))]:
        del st.session_state[key]
    navigate("login")


def render_sidebar():
    with st.sidebar:
        st.header("RegXperience")
        for page, label in (("home", "Home"), ("templates", "Templates"), ("assessments", "Assessments")):
            if st.button(label, key=f"nav_{page}", use_container_width=True):
                navigate(page)
        st.divider()
        st.caption(f"👤 {session.user.email}")
        if st.button("Sign out", use_container_width=True):
            sign_out()


# ============== Home ==============

def render_home():
    st.title("Compliance Assessment Platform")
    st.write("Streamline your compliance workflows with AI-powered requirements extraction "
             "and assessment tracking")

    cards = [
        ("📋 Templates", "Upload compliance documents as PDFs and automatically extract requirements using AI",
         "Browse Templates", "templates"),
        ("✅ Assessments", "Create and manage assessments based on templates, tracking compliance status",
         "View Assessments", "assessments"),
        ("📊 Tracking", "Real-time progress tracking and submission review with detailed reporting",
         "Coming Soon", None),
    ]
    for col, (title, text, action, page) in zip(st.columns(3), cards):
        with col, st.container(border=True):
            st.subheader(title)
            st.write(text)
            if st.button(action, key=f"home_{title}", disabled=page is None, use_container_width=True):
                navigate(page)

    with st.container(border=True):
        st.subheader("Quick Start")
        st.markdown(
            "1. Go to Templates and upload a compliance document (PDF)\n"
            "2. Wait for AI processing to extract requirements\n"
            "3. Create an Assessment from the template\n"
            "4. Fill out and submit your compliance responses"
        )


# ============== Templates ==============

def render_upload_card():
    flow: UploadFlow = _state("upload_flow", lambda: UploadFlow(client, cache))
    nonce = _state("upload_nonce", int)

    with st.container(border=True):
        st.subheader("Upload Compliance Template")

        if flow.selected_file is None:
            uploaded = st.file_uploader("Drag and drop your PDF here", key=f"upload_file_{nonce}",
                                        disabled=flow.is_pending)
            if uploaded is not None and st.session_state.get("upload_seen") != uploaded.file_id:
                st.session_state["upload_seen"] = uploaded.file_id
                try:
                    flow.drop([SelectedFile(uploaded.name, uploaded.getvalue())])
                except FormValidationError as e:
                    st.warning(str(e))
                else:
                    st.rerun()
        else:
            left, right = st.columns([5, 1])
            left.markdown(f"📄 **{flow.selected_file.name}**  \n{flow.selected_file.size_mb:.2f} MB")
            if right.button("✕", key="upload_clear", disabled=flow.is_pending):
                flow.clear_file()
                st.session_state["upload_nonce"] = nonce + 1
                st.rerun()

            flow.title = st.text_input("Template Title", value=flow.title, key=f"upload_title_{nonce}",
                                       placeholder="Enter template title...", disabled=flow.is_pending)

            if st.button("Upload Template", type="primary", use_container_width=True, disabled=flow.is_pending):
                try:
                    with st.spinner("Uploading..."):
                        template = flow.submit()
                except (FormValidationError, ActionInProgress) as e:
                    st.warning(str(e))
                except RequestFailed as e:
                    st.error(str(e))
                else:
                    st.session_state["upload_nonce"] = nonce + 1
                    flash("success", f'Template "{template.title}" uploaded! Processing started.')
                    st.rerun()

        st.caption("✓ Supports PDF files up to 50MB  \n✓ Will be processed with AI for requirements extraction")


def start_assessment(template_id: str):
    try:
        with st.spinner("Creating assessment..."):
            assessment = client.create_assessment(template_id)
    except (requests.RequestException, ValidationError):
        logger.exception("Failed to create assessment for template %s", template_id)
        st.error("Failed to create assessment")
        return
    cache.invalidate(ASSESSMENTS)
    navigate("assessment", id=assessment.id)


def refresh_processing_templates():
    if has_processing(cache.peek(TEMPLATES)):
        cache.invalidate(TEMPLATES)


def render_templates_list():
    # the full run has just loaded the list; later ticks re-fetch it
    if not st.session_state.pop("templates_loaded", False):
        refresh_processing_templates()
    try:
        templates = query(TEMPLATES, client.list_templates)
    except RequestFailed:
        watcher.close()
        st.error("Failed to load templates. Please try again.")
        return
    watcher.sync(templates)

    if not templates:
        st.info("No templates available yet.")
        return

    cols = st.columns(2)
    for i, template in enumerate(templates):
        with cols[i % 2], st.container(border=True):
            st.markdown(f"**{template.title}** {badge(template.status)}")
            if template.categories_count:
                st.caption(f"{template.categories_count} categories • {template.requirements_count} requirements")
            if template.created_at:
                st.caption(template.created_at[:10])
            if template.status == "AVAILABLE":
                if st.button("Start Assessment", key=f"start_{template.id}", use_container_width=True):
                    start_assessment(template.id)
            else:
                st.button("Not Available", key=f"start_{template.id}", disabled=True, use_container_width=True)


def render_templates():
    st.title("Compliance Templates")
    st.write("Upload compliance documents or start an assessment from existing templates")
    show_flash()

    left, right = st.columns([1, 2])
    with left:
        render_upload_card()
    with right:
        st.subheader("Available Templates")
        refresh_processing_templates()
        try:
            templates = query(TEMPLATES, client.list_templates)
        except RequestFailed:
            templates = None
        st.session_state["templates_loaded"] = templates is not None
        # re-fetch on an interval while the backend is still processing uploads
        run_every = TEMPLATE_POLL_SECONDS if has_processing(templates) else None
        st.fragment(run_every=run_every)(render_templates_list)()


# ============== Assessments ==============

def render_assessments():
    head, action = st.columns([4, 1])
    head.title("My Assessments")
    head.write("Track and manage your compliance assessments")
    if action.button("Create New Assessment", type="primary"):
        navigate("templates")

    try:
        with st.spinner("Loading assessments..."):
            assessments = query(ASSESSMENTS, client.list_assessments)
    except RequestFailed:
        st.error("Failed to load assessments. Please try again.")
        return

    if not assessments:
        st.info("No assessments yet. Start by selecting a template.")
        return

    df = pd.DataFrame([{
        "ID": f"{a.id[:8]}...",
        "Status": a.status,
        "Updated": (a.updated_at or "")[:10] or "—",
    } for a in assessments])

    def color(val):
        colors = {"SUBMITTED": "#C7D2FE", "REVIEWED": "#90EE90"}
        return f"background-color: {colors.get(val, '#E0F2FE')}"

    st.dataframe(df.style.map(color, subset=["Status"]), hide_index=True, use_container_width=True)

    by_id = {a.id: a for a in assessments}
    choice = st.selectbox("Open assessment", list(by_id),
                          format_func=lambda i: f"{i[:8]}... ({by_id[i].status.replace('_', ' ')})")
    if st.button("Open"):
        navigate("assessment", id=choice)


def render_review_panel(form: AssessmentForm):
    view = form.view
    review = form.current_review
    sid = view.submission.id if view.submission else "none"

    st.caption("GRC REVIEW")
    if not view.has_submission:
        st.warning("Choose a requirement to get started")

    options = list(REVIEW_LABELS)
    status = st.selectbox("Reviewer Assessment", options, index=options.index(review.review_status),
                          format_func=REVIEW_LABELS.get, key=f"review_status:{sid}",
                          disabled=not view.has_submission)
    note = st.text_area("Consultant Notes", value=review.review_note, key=f"review_note:{sid}",
                        placeholder="Enter consultant notes...", height=140, disabled=not view.has_submission)
    form.set_review(status=status, note=note)

    disabled = form.is_reviewing or not view.has_submission or not form.current_review.review_status
    if st.button("Complete Review", type="primary", disabled=disabled):
        try:
            with st.spinner("Submitting..."):
                form.complete_review()
        except (FormValidationError, ActionInProgress) as e:
            st.warning(str(e))
        except RequestFailed as e:
            st.error(str(e))
        else:
            flash("success", "Review submitted")
            st.rerun()


def render_requirement(form: AssessmentForm):
    view = form.view
    req = view.requirement
    entry = form.entry_for(req.id)
    key = f"{form.assessment_id}:{req.id}"

    st.caption(view.category.name.upper())
    st.subheader(req.title)
    st.info(req.description)

    detail = st.text_area("Implementation Details", value=entry.implementation_detail, key=f"detail:{key}",
                          placeholder="Describe how you implement this requirement...", height=150)
    if detail != entry.implementation_detail:
        form.update_field(req.id, "implementation_detail", detail)

    link = st.text_input("Evidence Link", value=entry.evidence_link, key=f"link:{key}",
                         placeholder="https://...")
    if link != entry.evidence_link:
        form.update_field(req.id, "evidence_link", link)

    if form.view.can_save:
        if st.button("💾 Save Response", type="primary", disabled=form.is_saving):
            try:
                with st.spinner("Saving..."):
                    form.save()
            except (FormValidationError, ActionInProgress) as e:
                st.warning(str(e))
            except RequestFailed as e:
                st.error(str(e))
            else:
                flash("success", "Submission saved successfully")
                st.rerun()


def render_assessment(assessment_id: str):
    if st.button("← Back to Assessments"):
        navigate("assessments")

    form_key = f"assessment_form:{assessment_id}"
    if form_key not in st.session_state:
        # opening the view seeds from the server's current submissions
        cache.invalidate(assessment_key(assessment_id))
    form: AssessmentForm = _state(form_key, lambda: AssessmentForm(assessment_id, client, cache, session))
    try:
        with st.spinner("Loading assessment..."):
            form.load()
    except RequestFailed:
        st.info("Assessment not found")
        return

    show_flash()
    view = form.view
    top, toggle = st.columns([4, 1])
    top.markdown(f"**{form.template.title}** {badge(form.assessment.status)}")
    if view.show_review_button:
        label = "Close Review" if form.show_review_panel else "Submit for Review"
        if toggle.button(label, type="secondary" if form.show_review_panel else "primary"):
            form.toggle_review_panel()
            st.rerun()

    widths = [2, 3, 6, 3] if view.can_review else [2, 3, 6]
    panels = st.columns(widths, border=True)

    with panels[0]:
        st.caption("CLAUSES")
        for idx, category in enumerate(form.template.categories, start=1):
            active = view.category is not None and view.category.id == category.id
            if st.button(f"{idx}. {category.name}", key=f"cat:{category.id}",
                         type="primary" if active else "tertiary"):
                form.select_category(category.id)
                st.rerun()

    with panels[1]:
        if view.category:
            st.caption(view.category.name.upper())
            for req in view.category.requirements:
                active = view.requirement is not None and view.requirement.id == req.id
                label = f"{DOT_ICONS[form.dot_for(req.id)]} {req.title}"
                if st.button(label, key=f"req:{req.id}", type="secondary" if active else "tertiary"):
                    form.select_requirement(req.id)
                    st.rerun()

    with panels[2]:
        if view.requirement:
            render_requirement(form)
        else:
            st.caption("Select a requirement to get started")

    if view.can_review:
        with panels[3]:
            render_review_panel(form)


# ============== Router ==============

page = st.query_params.get("page", "home")

if st.query_params.get("token"):
    page = finish_sign_in()

if auth_storage.pending:
    auth_storage.flush(stx.CookieManager(key="auth_cookies"))

# a form only lives while its assessment is on screen
open_form = f"assessment_form:{st.query_params.get('id')}" if page == "assessment" else None
for key in [k for k in st.session_state if str(k).startswith("assessment_form:") and k != open_form]:
    del st.session_state[key]

if not session.is_authenticated or page == "login":
    if session.is_authenticated:
        navigate("home")
    render_login()
    st.stop()

render_sidebar()

if page != "templates":
    watcher.close()

if page == "templates":
    render_templates()
elif page == "assessments":
    render_assessments()
elif page == "assessment" and st.query_params.get("id"):
    render_assessment(st.query_params["id"])
else:
    render_home()

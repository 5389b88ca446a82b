from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pandas as pd
import streamlit as st

from auth import authenticate_admin, is_session_active, start_session
from config import get_settings
from db import db_session, get_session_factory, init_schema
from export import build_dashboard_export, build_receipt_pdf
from forms import email_notice, format_phone_number, validate_registration
from log import configure_logging, get_logger
from logic import PROVINCES, ROOM_TYPES, SPECIALIZATIONS, STATUSES, compute_live_stats
from seed import import_snapshot, seed_default_admin, seed_demo_applications
from storage import build_storage
from ui import (
    GENDER_LABELS,
    ROOM_LABELS,
    inject_rtl_css,
    render_application_card,
    render_form_errors,
    render_meter,
    t,
)
from vault import StudentVault

logger = get_logger("app")

st.set_page_config(page_title="NU Student Housing", layout="wide")

SORT_OPTIONS = {
    "date_desc": "Newest first",
    "date_asc": "Oldest first",
    "gpa_desc": "GPA (high to low)",
    "gpa_asc": "GPA (low to high)",
    "name_asc": "Name (A-Z)",
    "name_desc": "Name (Z-A)",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@st.cache_resource
def get_vault() -> StudentVault:
    settings = get_settings()
    storage = build_storage(
        settings.vault_backend,
        data_dir=settings.vault_data_dir,
        session_factory=get_session_factory() if settings.vault_backend == "sql" else None,
    )
    return StudentVault(storage, storage_key=settings.vault_storage_key, max_applications=settings.vault_max_capacity)


@st.cache_resource
def bootstrap() -> bool:
    configure_logging()
    init_schema()
    with db_session() as db:
        seed_default_admin(db)
    seeded = seed_demo_applications(get_vault())
    if seeded:
        logger.info("Seeded %s demo applications", seeded)
    return True


def current_admin() -> dict[str, Any] | None:
    session = st.session_state.get("admin_session")
    if not is_session_active(session, _now()):
        st.session_state.pop("admin_session", None)
        return None
    return {"username": session.username, "role": session.role}


def render_register_page(language: str, vault: StudentVault) -> None:
    st.subheader(t(language, "register"))
    with st.form("registration_form"):
        full_name = st.text_input("الاسم الرباعي / Full name")
        national_id = st.text_input("رقم الهوية / National ID", max_chars=10)
        phone = st.text_input("رقم الجوال / Phone", max_chars=10)
        email = st.text_input("البريد الإلكتروني / Email")
        gender = st.selectbox("الجنس / Gender", list(GENDER_LABELS.keys()), format_func=lambda g: GENDER_LABELS[g])
        province = st.selectbox("المنطقة / Province", PROVINCES)
        gpa = st.text_input("المعدل التراكمي / GPA (0-5)")
        specialization = st.selectbox("التخصص / Specialization", SPECIALIZATIONS)
        room_type = st.selectbox("نوع الغرفة / Room type", ROOM_TYPES, format_func=lambda r: ROOM_LABELS[r])
        submitted = st.form_submit_button(t(language, "submit"))

    if not submitted:
        return

    raw = {
        "full_name": full_name,
        "national_id": national_id,
        "phone": format_phone_number(phone),
        "email": email,
        "gender": gender,
        "province": province,
        "gpa": gpa,
        "specialization": specialization,
        "room_type": room_type,
    }
    cleaned, errors = validate_registration(raw)
    if errors:
        render_form_errors(language, errors)
        return

    notice = email_notice(cleaned["email"])
    if notice:
        st.info(notice)

    result = vault.save(cleaned)
    if not result.success:
        st.error(t(language, "not_saved"))
        return

    st.success(t(language, "updated") if result.updated else t(language, "saved"))
    score = vault.priority_score(result.application)
    render_application_card(result.application, priority_score=score)
    st.download_button(
        t(language, "download_receipt"),
        data=build_receipt_pdf(result.application, priority_score=score),
        file_name=f"{result.reference_number}.pdf",
        mime="application/pdf",
    )


def render_login_page(language: str) -> None:
    admin = current_admin()
    if admin:
        st.success(f"Logged in as {admin['username']} ({admin['role']})")
        if st.button("Logout"):
            st.session_state.pop("admin_session", None)
            st.rerun()
        return

    st.subheader(t(language, "admin_login"))
    with st.form("admin_login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        login_submitted = st.form_submit_button("Login")

    if login_submitted:
        if not username or not password:
            st.error("Username and password are required.")
            return
        with db_session() as db:
            found = authenticate_admin(db, username, password)
            if not found:
                logger.warning("Failed admin login for %s", username)
                st.error("Invalid credentials")
                return
            st.session_state["admin_session"] = start_session(found, _now(), hours=get_settings().admin_session_hours)
        st.rerun()


def render_vault_page(language: str, vault: StudentVault) -> None:
    if not current_admin():
        st.info(t(language, "login_required"))
        return

    st.subheader(t(language, "vault"))
    render_meter(t(language, "capacity"), 100 * vault.count() / vault.max_applications, f"{vault.count()}/{vault.max_applications}")

    query = st.text_input(t(language, "search"))
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        gender = st.selectbox("Gender", [""] + list(GENDER_LABELS.keys()))
    with col2:
        province = st.selectbox("Province", [""] + PROVINCES)
    with col3:
        status = st.selectbox("Status", [""] + STATUSES)
    with col4:
        sort_key = st.selectbox("Sort", list(SORT_OPTIONS.keys()), format_func=lambda key: SORT_OPTIONS[key])

    items = vault.filter(gender=gender, province=province, status=status, applications=vault.search(query))
    items = vault.sorted_by(sort_key, items)

    per_page = st.selectbox("Rows per page", [10, 25, 50], index=1)
    page_number = st.number_input("Page", min_value=1, value=1, step=1)
    page = vault.paginate(items, page=int(page_number), per_page=per_page)

    if not page.items:
        st.write(t(language, "empty_vault"))
    else:
        st.caption(f"{page.total_items} applications, page {page.page}/{page.total_pages}")
        st.dataframe(pd.DataFrame(page.items), use_container_width=True)

    st.markdown("**Manage application**")
    options = {f"{app.get('reference_number')} - {app.get('full_name')}": app["id"] for app in items}
    if options:
        selected = st.selectbox("Application", list(options.keys()))
        new_status = st.selectbox("New status", STATUSES)
        action_col1, action_col2 = st.columns(2)
        with action_col1:
            if st.button("Update status"):
                if vault.update_status(options[selected], new_status):
                    st.success("Status updated.")
                else:
                    st.error("Status could not be updated.")
        with action_col2:
            if st.button("Delete application"):
                if vault.delete(options[selected]):
                    st.success("Application deleted.")
                    st.rerun()
                else:
                    st.error("Application not found.")

    st.markdown("**Export / import**")
    st.download_button(t(language, "download_json"), data=vault.export_json(), file_name="vault.json", mime="application/json")
    st.download_button(t(language, "download_csv"), data=vault.export_csv().encode("utf-8-sig"), file_name="vault.csv", mime="text/csv")

    upload = st.file_uploader("Import snapshot (JSON or CSV)", type=["json", "csv"])
    if upload is not None and st.button("Replace vault with snapshot"):
        result = import_snapshot(vault, upload.name, upload.getvalue().decode("utf-8-sig"))
        if result.success:
            st.success(f"Loaded {result.loaded} applications.")
        elif result.storage_failed:
            st.error(t(language, "not_saved"))
        else:
            st.error(result.message)

    st.markdown("**Maintenance**")
    max_age = st.number_input("Remove applications older than (days)", min_value=1, value=7, step=1)
    if st.button("Clean up old applications"):
        st.info(f"Removed {vault.cleanup_old_applications(int(max_age))} applications.")
    if st.button("Clear vault") and vault.clear():
        st.warning("All applications were removed.")

    with st.expander("Recent vault events"):
        events = vault.events()
        if events:
            st.dataframe(pd.DataFrame(events[::-1]), use_container_width=True)
        else:
            st.write("No events yet.")


def _counts_series(counts: dict[str, int]) -> pd.Series:
    return pd.Series(counts).sort_values(ascending=False)


def render_dashboard_page(language: str, vault: StudentVault) -> None:
    if not current_admin():
        st.info(t(language, "login_required"))
        return

    st.subheader(t(language, "dashboard"))
    stats = vault.statistics()
    live = compute_live_stats(vault.list(), total_beds=get_settings().total_beds)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Applications", stats["total"])
    col2.metric("Average GPA", f"{stats['average_gpa']:.2f}")
    col3.metric("Total fees (SAR)", f"{stats['total_fees']:,}")
    col4.metric("Occupancy", f"{live['occupancy_rate']}%")

    for title, counts in [
        ("By gender", stats["gender_counts"]),
        ("By province", stats["province_counts"]),
        ("By specialization", stats["specialization_counts"]),
        ("By college", live["colleges"]),
    ]:
        st.markdown(f"**{title}**")
        if counts and any(counts.values()):
            st.bar_chart(_counts_series(counts))
        else:
            st.write("No data yet.")

    st.markdown("**Top priority applications**")
    ranked = vault.ranked_by_priority()[:10]
    if ranked:
        st.dataframe(
            pd.DataFrame(ranked)[["reference_number", "full_name", "national_id", "gpa", "province", "priority_score", "status"]],
            use_container_width=True,
        )
    else:
        st.write("No data yet.")

    st.download_button(
        t(language, "download_dashboard"),
        data=build_dashboard_export(stats, live, _now()),
        file_name=f"dashboard_export_{_now().date().isoformat()}.json",
        mime="application/json",
    )


def main() -> None:
    bootstrap()
    vault = get_vault()

    language = st.sidebar.selectbox("Language / اللغة", ["ar", "en"], key="language")
    inject_rtl_css(language)
    st.title(t(language, "app_title"))
    st.caption(t(language, "subtitle"))

    pages = {
        "register": t(language, "register"),
        "login": t(language, "admin_login"),
        "vault": t(language, "vault"),
        "dashboard": t(language, "dashboard"),
    }
    page = st.sidebar.radio("Page", list(pages.keys()), format_func=lambda key: pages[key])

    if page == "register":
        render_register_page(language, vault)
    elif page == "login":
        render_login_page(language)
    elif page == "vault":
        render_vault_page(language, vault)
    else:
        render_dashboard_page(language, vault)


if __name__ == "__main__":
    main()

from __future__ import annotations

from html import escape
from typing import Any

import streamlit as st

from logic import STATUS_LABELS


I18N = {
    "en": {
        "app_title": "Najran University - Student Housing",
        "subtitle": "Register for university housing and track your application.",
        "register": "Register",
        "admin_login": "Admin Login",
        "vault": "Applications Vault",
        "dashboard": "Dashboard",
        "language": "Language",
        "submit": "Submit Application",
        "saved": "Your application was saved.",
        "updated": "Your existing application was updated.",
        "not_saved": "Your application could not be saved. Please try again.",
        "form_errors": "The form has errors:",
        "download_receipt": "Download Receipt (PDF)",
        "download_json": "Download JSON",
        "download_csv": "Download CSV",
        "download_dashboard": "Export Dashboard Data",
        "search": "Search by name, national ID, reference or phone",
        "empty_vault": "No applications match the current search or filters.",
        "login_required": "Admin login required.",
        "capacity": "Vault capacity",
    },
    "ar": {
        "app_title": "جامعة نجران - السكن الجامعي",
        "subtitle": "سجّل في السكن الجامعي وتابع حالة طلبك.",
        "register": "التسجيل",
        "admin_login": "دخول المشرف",
        "vault": "خزنة الطلبات",
        "dashboard": "لوحة التحكم",
        "language": "اللغة",
        "submit": "إرسال الطلب",
        "saved": "تم حفظ الطلب بنجاح في الخزنة",
        "updated": "تم تحديث طلبك السابق",
        "not_saved": "حدث خطأ في حفظ الطلب، الرجاء المحاولة مرة أخرى.",
        "form_errors": "يوجد أخطاء في النموذج:",
        "download_receipt": "تحميل الإيصال (PDF)",
        "download_json": "تحميل JSON",
        "download_csv": "تحميل CSV",
        "download_dashboard": "تصدير بيانات لوحة التحكم",
        "search": "ابحث بالاسم أو رقم الهوية أو رقم الطلب أو الهاتف",
        "empty_vault": "لم يتم العثور على طلاب مطابقين للبحث أو الفلاتر المحددة",
        "login_required": "يجب تسجيل دخول المشرف.",
        "capacity": "سعة الخزنة",
    },
}

GENDER_LABELS = {"male": "ذكر", "female": "أنثى"}
ROOM_LABELS = {"standard": "قياسية", "premium": "مميزة", "suite": "جناح"}


@st.cache_data
def get_i18n(language: str) -> dict[str, str]:
    return I18N.get(language, I18N["en"])


def t(language: str, key: str) -> str:
    return get_i18n(language).get(key, key)


def inject_rtl_css(language: str) -> None:
    direction = "rtl" if language == "ar" else "ltr"
    st.markdown(
        f"""
        <style>
            [data-testid="stAppViewContainer"] .main {{
                direction: {direction};
            }}
            .nu-card {{
                border: 1px solid #d1def1;
                border-radius: 12px;
                padding: 0.8rem 1rem;
                margin-bottom: 0.6rem;
                background: #ffffff;
            }}
            .nu-meter {{
                background: #eef4ff;
                border-radius: 999px;
                height: 10px;
                overflow: hidden;
            }}
            .nu-meter-fill {{
                background: linear-gradient(90deg, #0D47A1, #1E8E5A);
                height: 10px;
            }}
            .nu-status {{
                border-radius: 999px;
                padding: 0.1rem 0.6rem;
                font-size: 0.85rem;
            }}
            .nu-status.pending {{ background: #fff4d6; }}
            .nu-status.confirmed {{ background: #dff5e6; }}
            .nu-status.rejected {{ background: #fde2e2; }}
            .nu-status.completed {{ background: #e3ecff; }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_meter(label: str, pct: float, value_text: str | None = None) -> None:
    pct = max(0.0, min(100.0, pct))
    st.markdown(
        f"""
        <div class="nu-card">
            <div><strong>{escape(label)}</strong> {escape(value_text or f"{pct:.0f}%")}</div>
            <div class="nu-meter"><div class="nu-meter-fill" style="width: {pct:.1f}%"></div></div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def status_badge(status: str) -> str:
    label = STATUS_LABELS.get(status, status)
    return f"<span class='nu-status {escape(status)}'>{escape(label)}</span>"


def render_application_card(application: dict[str, Any], priority_score: int | None = None) -> None:
    gender = GENDER_LABELS.get(application.get("gender", ""), application.get("gender", "-"))
    room = ROOM_LABELS.get(application.get("room_type", ""), application.get("room_type", "-"))
    score_html = f"<div>الأولوية: <strong>{priority_score}</strong>/100</div>" if priority_score is not None else ""
    st.markdown(
        f"""
        <div class="nu-card">
            <div><strong>{escape(str(application.get("full_name", "-")))}</strong>
                {status_badge(str(application.get("status", "pending")))}</div>
            <div>رقم الطلب: <code>{escape(str(application.get("reference_number", "-")))}</code></div>
            <div>رقم الهوية: {escape(str(application.get("national_id", "-")))} | {escape(str(gender))}</div>
            <div>{escape(str(application.get("province", "-")))} | {escape(str(application.get("specialization", "-")))}</div>
            <div>المعدل: {escape(str(application.get("gpa", "-")))} | الغرفة: {escape(str(room))}
                | الرسوم: {escape(str(application.get("fees", "-")))}</div>
            {score_html}
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_form_errors(language: str, errors: dict[str, str]) -> None:
    items = "".join(f"<li>{escape(message)}</li>" for message in errors.values())
    st.markdown(
        f"<div class='nu-card'><strong>{escape(t(language, 'form_errors'))}</strong><ul>{items}</ul></div>",
        unsafe_allow_html=True,
    )

"""
HTML rendering for resume downloads.

Stored content is used verbatim; otherwise a document is assembled from
the structured form fields with every user value escaped. The browser can
save the result as PDF.
"""
import html
import re
from typing import Any, Dict, Optional

SECTION = (
    '<section style="margin-bottom: 20px;">'
    '<h3 style="color: #2980b9; border-bottom: 1px solid #eee; padding-bottom: 5px; margin-bottom: 10px;">{title}</h3>'
    "{body}"
    "</section>"
)

PAGE_STYLE = (
    "body { font-family: 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; "
    "margin: 0; padding: 20px; background: white; }"
    "h1, h2, h3, h4 { margin-top: 0; margin-bottom: 10px; }"
    "h3 { font-size: 16px; font-weight: bold; color: #2c3e50; }"
    "p, div { margin: 0 0 10px 0; }"
    "a { color: #3498db; text-decoration: none; }"
    "header { border-bottom: 2px solid #3498db; padding-bottom: 15px; margin-bottom: 20px; }"
    "section { margin-bottom: 20px; }"
    "@media print { body { padding: 0; } }"
)


def _text(value: Any) -> str:
    return html.escape(str(value)) if value else ""


def _multiline(value: Any) -> str:
    """Escape, then keep the user's line breaks."""
    return _text(value).replace("\n", "<br>")


def _portfolio_link(url: Optional[str]) -> str:
    if not url:
        return ""
    safe = html.escape(str(url), quote=True)
    if not re.match(r"^https?://", str(url), re.IGNORECASE):
        return safe
    return f'<a href="{safe}">{safe}</a>'


def render_from_data(data: Dict[str, Any]) -> str:
    """Assemble resume markup from the form fields."""
    data = data or {}
    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto;">',
        '<header style="text-align: center; border-bottom: 2px solid #333; padding-bottom: 20px; margin-bottom: 20px;">',
        f'<h1 style="margin: 0; color: #2c3e50; font-size: 28px;">{_text(data.get("fullName")) or "Name"}</h1>',
        f'<h2 style="margin: 5px 0; color: #34495e; font-size: 20px; font-weight: normal;">{_text(data.get("jobRole")) or "Job Title"}</h2>',
        '<div style="margin-top: 10px; color: #7f8c8d; font-size: 14px;">',
        f'<div>{_text(data.get("email"))} | {_text(data.get("phone"))}</div>',
        f'<div>{_text(data.get("location"))} | {_portfolio_link(data.get("portfolio"))}</div>',
        "</div>",
        "</header>",
        SECTION.format(title="Career Goal", body=f"<p>{_text(data.get('careerGoal'))}</p>"),
        SECTION.format(title="Work Experience", body=f"<div>{_multiline(data.get('workExperience'))}</div>"),
        SECTION.format(title="Skills", body=f"<div>{_multiline(data.get('skills'))}</div>"),
        SECTION.format(title="Education", body=f"<div>{_multiline(data.get('education'))}</div>"),
    ]
    if data.get("projects"):
        parts.append(SECTION.format(title="Projects", body=f"<div>{_multiline(data.get('projects'))}</div>"))
    parts.append("</div>")
    return "".join(parts)


def render_resume_html(title: str, data: Optional[Dict[str, Any]], content: Optional[str]) -> str:
    """
    Full HTML document for a resume download.

    Args:
        title: Resume title, used for the page title
        data: Structured form fields
        content: Previously generated markup; used as-is when non-blank

    Returns:
        Complete HTML page
    """
    body = content if content and content.strip() else render_from_data(data)
    return (
        "<!DOCTYPE html>"
        "<html>"
        "<head>"
        '<meta charset="utf-8">'
        f"<title>{_text(title)}</title>"
        f"<style>{PAGE_STYLE}</style>"
        "</head>"
        f"<body>{body}</body>"
        "</html>"
    )


def download_filename(title: Optional[str]) -> str:
    """Attachment filename: non-alphanumerics become underscores."""
    stem = re.sub(r"[^A-Za-z0-9]", "_", title or "") or "resume"
    return f"{stem}.html"

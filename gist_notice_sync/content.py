"""Build the stored body of an ingested notice."""

from html import escape

from .models import RemoteDetail


def render_attachment_list(detail: RemoteDetail) -> str:
    items = "".join(
        f'<li><a href="{escape(att.href)}">{escape(att.display_name)}</a></li>'
        for att in detail.attachments
    )
    return f"<ul>{items}</ul>"


def assemble_body(detail: RemoteDetail) -> str:
    """Prepend the attachment links (if any) to the detail content."""
    if not detail.attachments:
        return detail.body_html
    return render_attachment_list(detail) + detail.body_html

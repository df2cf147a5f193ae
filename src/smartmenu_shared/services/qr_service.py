"""
QR codes for tables.

A table's QR code points at the client app's `/table-redirect` entry point,
never at the menu directly, so the session id is read on scan and not baked
into the printed code.
"""

from __future__ import annotations

import logging
from io import BytesIO
from urllib.parse import urlencode

import qrcode
from sqlalchemy.orm import Session

from smartmenu_shared.models import Restaurant, Table
from smartmenu_shared.services.table_session_service import new_session_id
from smartmenu_shared.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)


def table_qr_url(base_url: str, table: Table) -> str:
    params = {"table": table.id}
    if table.area_id:
        params["area"] = table.area_id
    return f"{base_url.rstrip('/')}/table-redirect?{urlencode(params)}"


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_table_qr(
    db: Session, table: Table, base_url: str, bucket: str
) -> tuple[bytes, str]:
    """
    Render the table's QR code and publish it when storage is configured.

    Assigns a session id if the table lacks one. Returns (png_bytes, url).
    An upload failure is logged and the PNG is still returned.
    """
    if not table.session_id:
        table.session_id = new_session_id()

    url = table_qr_url(base_url, table)
    png = render_qr_png(url)

    if SupabaseStorage.is_available():
        restaurant = db.get(Restaurant, table.restaurant_id)
        path = f"{restaurant.slug}/table-{table.table_number}.png"
        try:
            SupabaseStorage.upload_bytes(bucket, path, png, content_type="image/png")
            table.qr_code_path = path
            table.qr_code_url = SupabaseStorage.get_public_url(bucket, path)
        except Exception as exc:
            logger.error(f"QR upload failed for table {table.id}: {exc}", exc_info=True)
    db.flush()
    return png, url

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import qrcode
from loguru import logger

from app.core.config import settings
from app.models.item import ITEM_ID_PATTERN, QRCodeRead


STATIC_URL_PREFIX = "/static/qrcodes"


def qr_code_dir() -> Path:
    return settings.static_dir / "qrcodes"


def item_qr_path(item_id: str) -> Path:
    return qr_code_dir() / f"{item_id}.png"


def render_item_qr(item_id: str) -> QRCodeRead:
    """
    Renders the QR code for an item and returns where it is served.

    The payload is the bare item id, so any scanner hands back exactly what
    ``item_id_from_scan`` expects. Items never change, so an image already on
    disk is reused as is.
    """
    path = item_qr_path(item_id)
    if not path.exists():
        os.makedirs(path.parent, exist_ok=True)

        # High error correction: labels get scuffed on physical products
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(item_id)
        qr.make(fit=True)
        qr.make_image(fill_color="black", back_color="white").save(path)
        logger.info(f"Rendered QR code for {item_id}")

    return QRCodeRead(
        item_id=item_id,
        payload=item_id,
        qr_code_url=f"{settings.public_url}{STATIC_URL_PREFIX}/{path.name}"
    )


def item_id_from_scan(payload: str) -> Optional[str]:
    """
    Extracts the item id from scanned text.

    Accepts the bare id this service encodes, and also a link to one of the
    item routes (e.g. ``https://host/api/v1/items/<id>/public``) as printed
    by third-party label software. Returns None when nothing usable is found.
    """
    text = payload.strip()
    parsed = urlparse(text)
    if parsed.scheme in ("http", "https"):
        segments = [s for s in parsed.path.split("/") if s]
        if "items" in segments and segments.index("items") + 1 < len(segments):
            text = segments[segments.index("items") + 1]
        elif segments:
            text = segments[-1]
        else:
            return None

    if not ITEM_ID_PATTERN.fullmatch(text):
        return None
    return text

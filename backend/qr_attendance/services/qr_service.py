"""QR code payload encoding, decoding and rendering."""
import base64
import io
import json
from datetime import datetime
from typing import Any, Dict

import qrcode

from qr_attendance.domain import QRPayload, Session
from qr_attendance.errors import MalformedPayloadError
from qr_attendance.utils.helpers import parse_iso


class QRService:
    """Service for QR code operations.

    The payload is a compact JSON object. The token inside it is an opaque
    random string checked by equality against the stored session; the
    payload itself is not signed.
    """

    REQUIRED_FIELDS = ('sessionId', 'token', 'subject', 'issuedAt', 'expiresAt')

    @staticmethod
    def encode(session: Session) -> str:
        """Serialize a session's identity and expiry for embedding in a QR image."""
        qr_data = {
            'sessionId': session.id,
            'token': session.token,
            'subject': session.subject,
            'issuedAt': session.created_at.isoformat(),
            'expiresAt': session.expires_at.isoformat(),
        }
        return json.dumps(qr_data, separators=(',', ':'), sort_keys=True)

    @staticmethod
    def decode(payload: Any) -> QRPayload:
        """Parse a scanned payload. Raises MalformedPayloadError on bad structure."""
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8', errors='replace')
        if not isinstance(payload, str):
            raise MalformedPayloadError("QR data must be a string")

        try:
            qr_data = json.loads(payload)
        except json.JSONDecodeError:
            raise MalformedPayloadError("Invalid QR code format")

        if not isinstance(qr_data, dict):
            raise MalformedPayloadError("Invalid QR code format")

        for field in QRService.REQUIRED_FIELDS:
            if field not in qr_data:
                raise MalformedPayloadError(f"Invalid QR code - missing field: {field}")
            if not isinstance(qr_data[field], str) or not qr_data[field]:
                raise MalformedPayloadError(f"Invalid QR code - bad value for {field}")

        return QRPayload(
            session_id=qr_data['sessionId'],
            token=qr_data['token'],
            subject=qr_data['subject'],
            issued_at=QRService._timestamp(qr_data, 'issuedAt'),
            expires_at=QRService._timestamp(qr_data, 'expiresAt'),
        )

    @staticmethod
    def _timestamp(qr_data: Dict[str, Any], field: str) -> datetime:
        try:
            return parse_iso(qr_data[field])
        except ValueError:
            raise MalformedPayloadError(f"Invalid QR code - bad timestamp for {field}")

    @staticmethod
    def render_image(data: str) -> str:
        """Render `data` as a PNG QR code and return it as a data URI."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

"""QR payload codec tests."""
import json
from datetime import datetime, timedelta

import pytest

from qr_attendance.domain import Session
from qr_attendance.errors import MalformedPayloadError
from qr_attendance.services.qr_service import QRService


@pytest.fixture
def session():
    created = datetime(2024, 3, 1, 9, 0, 0)
    return Session(
        id='3f1c2a4e-0000-4000-8000-000000000001',
        subject='Hymn Singing',
        academic_level='Second Year',
        token='tok-abc',
        created_at=created,
        expires_at=created + timedelta(minutes=30),
    )


def test_encode_is_compact_json_with_expected_fields(session):
    payload = QRService.encode(session)

    assert payload == json.dumps(json.loads(payload), separators=(',', ':'), sort_keys=True)
    assert '", "' not in payload and '": ' not in payload
    assert json.loads(payload) == {
        'sessionId': session.id,
        'token': 'tok-abc',
        'subject': 'Hymn Singing',
        'issuedAt': '2024-03-01T09:00:00',
        'expiresAt': '2024-03-01T09:30:00',
    }


def test_decode_returns_the_encoded_session_fields(session):
    decoded = QRService.decode(QRService.encode(session))

    assert decoded.session_id == session.id
    assert decoded.token == session.token
    assert decoded.subject == session.subject
    assert decoded.issued_at == session.created_at
    assert decoded.expires_at == session.expires_at


def test_decode_accepts_bytes(session):
    assert QRService.decode(QRService.encode(session).encode()).token == 'tok-abc'


def test_decode_normalises_timezone_aware_timestamps(session):
    data = json.loads(QRService.encode(session))
    data['expiresAt'] = '2024-03-01T11:30:00+02:00'

    assert QRService.decode(json.dumps(data)).expires_at == datetime(2024, 3, 1, 9, 30)


@pytest.mark.parametrize('payload', [
    'not json at all',
    '[1, 2, 3]',
    '{"sessionId": "x"}',
    None,
    42,
])
def test_decode_rejects_malformed_payloads(payload):
    with pytest.raises(MalformedPayloadError):
        QRService.decode(payload)


def test_decode_rejects_missing_field_with_its_name(session):
    data = json.loads(QRService.encode(session))
    del data['token']

    with pytest.raises(MalformedPayloadError, match='token'):
        QRService.decode(json.dumps(data))


def test_decode_rejects_bad_timestamp(session):
    data = json.loads(QRService.encode(session))
    data['issuedAt'] = 'yesterday'

    with pytest.raises(MalformedPayloadError, match='issuedAt'):
        QRService.decode(json.dumps(data))


def test_render_image_returns_png_data_uri(session):
    image = QRService.render_image(QRService.encode(session))
    assert image.startswith('data:image/png;base64,')

"""Tests for the WhatsApp Cloud API client (HTTP session mocked)."""
from unittest.mock import MagicMock

import pytest
import requests

from whatsapp_bridge.config import Settings
from whatsapp_bridge.services.whatsapp_client import WhatsAppAPIError, WhatsAppClient


def _response(status_code, json_data=None, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api(session):
    return WhatsAppClient(token="secret-token", phone_number_id="123456789",
                          api_version="v18.0", timeout=5.0, session=session)


class TestSendMessage:
    def test_posts_payload_with_auth(self, api, session):
        session.post.return_value = _response(200, {"messages": [{"id": "wamid.1"}]})

        result = api.send_message({"to": "15551234567", "type": "text"})

        assert result == {"messages": [{"id": "wamid.1"}]}
        args, kwargs = session.post.call_args
        assert args[0] == "https://graph.facebook.com/v18.0/123456789/messages"
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
        assert kwargs["json"] == {"to": "15551234567", "type": "text"}
        assert kwargs["timeout"] == 5.0

    def test_error_response_raises_with_details(self, api, session):
        error = {"error": {"message": "Invalid parameter", "code": 100}}
        session.post.return_value = _response(400, error)

        with pytest.raises(WhatsAppAPIError) as exc_info:
            api.send_message({})

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == error["error"]
        assert str(exc_info.value) == "Invalid parameter"

    def test_non_json_error(self, api, session):
        session.post.return_value = _response(502, text="Bad Gateway")

        with pytest.raises(WhatsAppAPIError) as exc_info:
            api.send_message({})

        assert exc_info.value.status_code == 502

    def test_timeout_raises(self, api, session):
        session.post.side_effect = requests.Timeout("timed out")

        with pytest.raises(WhatsAppAPIError):
            api.send_message({})


class TestUploadMedia:
    def test_uploads_file_and_returns_id(self, api, session, tmp_path):
        media = tmp_path / "photo.jpg"
        media.write_bytes(b"\xff\xd8\xff")
        session.post.return_value = _response(200, {"id": "media-42"})

        assert api.upload_media(str(media), "image/jpeg") == "media-42"

        args, kwargs = session.post.call_args
        assert args[0] == "https://graph.facebook.com/v18.0/123456789/media"
        assert kwargs["data"]["messaging_product"] == "whatsapp"
        file_name, _, mime_type = kwargs["files"]["file"]
        assert (file_name, mime_type) == ("photo.jpg", "image/jpeg")

    def test_guesses_mime_type(self, api, session, tmp_path):
        media = tmp_path / "report.pdf"
        media.write_bytes(b"%PDF-1.4")
        session.post.return_value = _response(200, {"id": "media-7"})

        api.upload_media(str(media))

        assert session.post.call_args[1]["files"]["file"][2] == "application/pdf"

    def test_missing_file(self, api, tmp_path):
        with pytest.raises(WhatsAppAPIError):
            api.upload_media(str(tmp_path / "missing.jpg"))

    def test_response_without_id(self, api, session, tmp_path):
        media = tmp_path / "photo.png"
        media.write_bytes(b"png")
        session.post.return_value = _response(200, {})

        with pytest.raises(WhatsAppAPIError):
            api.upload_media(str(media), "image/png")


def test_from_settings():
    settings = Settings(whatsapp_token="t", whatsapp_phone_number_id="999",
                        whatsapp_api_version="v19.0", whatsapp_api_base_url="https://graph.example.com/")
    api = WhatsAppClient.from_settings(settings)
    assert api.messages_url == "https://graph.example.com/v19.0/999/messages"

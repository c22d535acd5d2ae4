import mimetypes
import os
import requests
from typing import Any, Dict, Optional
from whatsapp_bridge.config import Settings
from whatsapp_bridge.utils.logger import get_logger

logger = get_logger(__name__)


class WhatsAppAPIError(Exception):
    """Raised when a WhatsApp Cloud API call fails or cannot be made."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class WhatsAppClient:
    """
    Thin client for the WhatsApp Cloud API (Graph API).

    Only the calls this service needs: posting message payloads and
    uploading media. Every call is bounded by the configured timeout and is
    never retried here.
    """

    def __init__(self,
                 token: str,
                 phone_number_id: str,
                 api_version: str = "v18.0",
                 base_url: str = "https://graph.facebook.com",
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppClient":
        return cls(
            token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_version=settings.whatsapp_api_version,
            base_url=settings.whatsapp_api_base_url,
            timeout=settings.whatsapp_request_timeout,
        )

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    @property
    def media_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/media"

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def send_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Post a message payload to the messages endpoint.

        Args:
            payload: Complete Cloud API message object

        Returns:
            The API's JSON response (contains `messages[0].id`)

        Raises:
            WhatsAppAPIError: On network failure, timeout or non-2xx response
        """
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"

        try:
            response = self.session.post(self.messages_url,
                                         headers=headers,
                                         json=payload,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"WhatsApp API request failed: {str(e)}")
            raise WhatsAppAPIError(f"WhatsApp API request failed: {str(e)}") from e

        return self._parse_response(response)

    def upload_media(self, file_path: str, mime_type: Optional[str] = None) -> str:
        """
        Upload a local file to WhatsApp and return its media ID.

        The file is streamed as multipart/form-data. The returned ID can be
        used in `image`/`audio`/`document` payloads instead of a `link`.

        Raises:
            WhatsAppAPIError: If the file cannot be read or the upload fails
        """
        mime_type = mime_type or mimetypes.guess_type(file_path)[0] or "application/octet-stream"
        file_name = os.path.basename(file_path)

        try:
            with open(file_path, "rb") as file_obj:
                response = self.session.post(
                    self.media_url,
                    headers=self._auth_headers(),
                    data={"messaging_product": "whatsapp", "type": mime_type},
                    files={"file": (file_name, file_obj, mime_type)},
                    timeout=self.timeout,
                )
        except OSError as e:
            raise WhatsAppAPIError(f"Cannot read media file {file_name}: {str(e)}") from e
        except requests.RequestException as e:
            logger.error(f"WhatsApp media upload failed: {str(e)}")
            raise WhatsAppAPIError(f"WhatsApp media upload failed: {str(e)}") from e

        data = self._parse_response(response)
        media_id = data.get("id")
        if not media_id:
            raise WhatsAppAPIError("WhatsApp media upload returned no media id", details=data)

        logger.info(f"Uploaded media {file_name} as {media_id}")
        return media_id

    def _parse_response(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if response.status_code >= 400:
            error = data.get("error", data) if isinstance(data, dict) else data
            logger.error(f"WhatsApp API error {response.status_code}: {error}")
            message = error.get("message") if isinstance(error, dict) else None
            raise WhatsAppAPIError(message or f"WhatsApp API returned {response.status_code}",
                                   status_code=response.status_code,
                                   details=error)
        return data

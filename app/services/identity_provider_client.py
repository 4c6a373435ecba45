"""
HTTP client for the identity verification provider (Didit v2).

Only session creation is needed server-side: the provider reports outcomes
back through the callback endpoints.
"""

from dataclasses import dataclass

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.errors import ProviderError

logger = get_logger(__name__)


@dataclass(slots=True)
class VerificationSession:
    session_id: str
    verification_url: str


class IdentityProviderClient:
    """Thin async wrapper over the provider's verification-sessions API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        app_id: str | None = None,
        workflow_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.DIDIT_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.DIDIT_API_KEY
        self.app_id = app_id if app_id is not None else settings.DIDIT_APP_ID
        self.workflow_id = workflow_id if workflow_id is not None else settings.DIDIT_WORKFLOW_ID
        self.timeout = timeout or settings.DIDIT_TIMEOUT_S
        self._transport = transport

    def _auth_header_variants(self) -> list[dict[str, str]]:
        # Accounts are provisioned with either X-Api-Key or Bearer auth
        base = {"Content-Type": "application/json"}
        if self.app_id:
            base["X-App-Id"] = self.app_id
        variants = [
            {**base, "X-Api-Key": self.api_key or ""},
            {**base, "Authorization": f"Bearer {self.api_key or ''}"},
        ]
        if self.app_id:
            # Some keys are rejected when sent with an app id
            variants.append({"Content-Type": "application/json", "X-Api-Key": self.api_key or ""})
        return variants

    async def create_session(
        self,
        user_id: str,
        callback_url: str,
        *,
        email: str | None = None,
        phone_number: str | None = None,
        document_number: str | None = None,
    ) -> VerificationSession:
        """
        Start a verification session for a user.

        Raises:
            ProviderError: transport failure, provider error status, or a
                response missing the session id or URL
        """
        url = f"{self.base_url}/verification-sessions"
        payload = {
            "workflow_id": self.workflow_id,
            "callback": callback_url,
            "vendor_data": user_id,
            "metadata": {
                "user_id": user_id,
                "document_number": document_number,
                "email": email,
                "phone_number": phone_number,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = None
                for headers in self._auth_header_variants():
                    response = await client.post(url, json=payload, headers=headers)
                    if response.status_code != 401:
                        break
                    logger.info("Identity provider rejected auth header style, trying next")
        except httpx.RequestError as e:
            logger.error(
                "Identity provider request failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderError(f"Could not reach identity provider: {e}") from e

        data = self._json_body(response)

        if response.is_error:
            message = data.get("message") or data.get("error") or data.get("detail")
            logger.error(
                "Identity provider returned error",
                user_id=user_id,
                status_code=response.status_code,
                provider_message=message,
            )
            raise ProviderError(
                f"Identity provider error ({response.status_code}): {message or 'no details'}"
            )

        session_id = data.get("session_id") or data.get("id") or data.get("verificationSessionId")
        verification_url = (
            data.get("verification_url") or data.get("url") or data.get("verificationUrl")
        )
        if not session_id or not verification_url:
            logger.error(
                "Identity provider response missing fields",
                user_id=user_id,
                keys=sorted(data.keys()),
            )
            raise ProviderError("Invalid response from identity provider")

        logger.info("Identity verification session created", user_id=user_id, session_id=session_id)
        return VerificationSession(session_id=str(session_id), verification_url=verification_url)

    @staticmethod
    def _json_body(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text} if response.text else {}
        return body if isinstance(body, dict) else {}

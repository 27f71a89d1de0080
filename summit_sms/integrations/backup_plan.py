from typing import Dict, Optional
import httpx

class BackupPlanClient:
    """
    HTTP client for the BACKUP plan-adjustment service. It owns that whole
    conversation; we only hand it the raw inbound webhook fields.
    """
    def __init__(self, url: str, secret_token: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.headers = {"Authorization": f"Bearer {secret_token}"}
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def forward(self, form: Dict[str, str]) -> int:
        """Returns the collaborator's HTTP status."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, data=form, headers=self.headers)
            resp.raise_for_status()
            return resp.status_code

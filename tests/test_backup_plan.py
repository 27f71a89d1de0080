import httpx
import pytest

from summit_sms.integrations.backup_plan import BackupPlanClient


@pytest.mark.asyncio
async def test_forward_posts_form_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content.decode()
        return httpx.Response(200)

    client = BackupPlanClient("https://backup.example/plan", "s3cret", transport=httpx.MockTransport(handler))
    status = await client.forward({"From": "+15550001111", "Body": "BACKUP"})

    assert status == 200
    assert seen["auth"] == "Bearer s3cret"
    assert "Body=BACKUP" in seen["body"]


@pytest.mark.asyncio
async def test_forward_raises_on_error_status():
    client = BackupPlanClient(
        "https://backup.example/plan", "s3cret",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await client.forward({"Body": "BACKUP"})


def test_unconfigured_without_url():
    assert not BackupPlanClient("", "").configured

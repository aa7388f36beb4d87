"""
Tests for ContentGate.
"""

import pytest

from scripthub.exceptions import AuthorizationError, DocumentNotFoundError, NotAuthenticatedError
from scripthub.models.domain import Role

FREE_SCRIPT = {
    "title": "ESP",
    "slug": "esp",
    "scriptUrl": "https://cdn.example.com/esp.lua",
    "isPremium": False,
}
PREMIUM_SCRIPT = {
    "title": "Auto Farm",
    "slug": "auto-farm",
    "scriptUrl": "https://cdn.example.com/auto-farm.lua",
    "isPremium": True,
}


class TestAuthorizeDownload:
    async def test_free_script_for_basic_user(self, content_gate, seed):
        await seed({"sourceCodes/esp": FREE_SCRIPT})

        asset = await content_gate.authorize_download("u1", "esp")

        assert asset.script_url == FREE_SCRIPT["scriptUrl"]
        assert asset.is_premium is False

    async def test_premium_script_for_premium_user(self, content_gate, seed, user_record, clock):
        await seed(
            {
                "sourceCodes/farm": PREMIUM_SCRIPT,
                "users/u1": user_record(Role.PREMIUM, clock.now + 1000),
            }
        )

        asset = await content_gate.authorize_download("u1", "farm")

        assert asset.title == "Auto Farm"

    async def test_premium_script_for_basic_user(self, content_gate, seed, user_record):
        await seed({"sourceCodes/farm": PREMIUM_SCRIPT, "users/u1": user_record(Role.BASIC)})

        with pytest.raises(AuthorizationError) as exc_info:
            await content_gate.authorize_download("u1", "farm")

        assert exc_info.value.required_role == "premium"

    async def test_premium_script_after_grant_lapsed(
        self, content_gate, store, seed, user_record, clock
    ):
        """The gate resolves the role live and heals the stale record."""
        await seed(
            {
                "sourceCodes/farm": PREMIUM_SCRIPT,
                "users/u1": user_record(Role.PREMIUM, clock.now + 1000),
            }
        )
        await content_gate.authorize_download("u1", "farm")

        clock.advance(1001)

        with pytest.raises(AuthorizationError):
            await content_gate.authorize_download("u1", "farm")
        assert await store.get("users/u1") == {"role": "basic"}

    async def test_unknown_script(self, content_gate):
        with pytest.raises(DocumentNotFoundError):
            await content_gate.authorize_download("u1", "missing")

    async def test_script_without_url(self, content_gate, seed):
        await seed({"sourceCodes/draft": {"title": "Draft", "isPremium": False}})

        with pytest.raises(DocumentNotFoundError):
            await content_gate.authorize_download("u1", "draft")

    @pytest.mark.parametrize("user_id", [None, ""])
    async def test_requires_login(self, content_gate, seed, user_id):
        await seed({"sourceCodes/esp": FREE_SCRIPT})

        with pytest.raises(NotAuthenticatedError):
            await content_gate.authorize_download(user_id, "esp")

"""
Content Gate - Premium check in front of script downloads.
"""

from structlog import get_logger

from scripthub.exceptions import AuthorizationError, DocumentNotFoundError, NotAuthenticatedError
from scripthub.models.domain import Role, SourceCodeAsset
from scripthub.observability.logging import log_context
from scripthub.services.entitlement import EntitlementManager
from scripthub.store.base import DocumentStore, join_path

logger = get_logger(__name__)

SOURCE_CODES = "sourceCodes"


class ContentGate:
    """Decides whether a caller may download a source code asset."""

    def __init__(self, store: DocumentStore, entitlements: EntitlementManager) -> None:
        self.store = store
        self.entitlements = entitlements

    async def authorize_download(self, user_id: str | None, asset_id: str) -> SourceCodeAsset:
        """
        Return the asset when the caller may download it.

        The caller's role is resolved live on every call, so a premium grant
        that lapsed a moment ago is already refused here.

        Raises:
            NotAuthenticatedError: no caller
            DocumentNotFoundError: unknown asset, or asset without a script URL
            AuthorizationError: premium asset and caller is not premium
        """
        if not user_id:
            raise NotAuthenticatedError("You must be logged in to download")

        with log_context(user_id=user_id, asset_id=asset_id):
            return await self._authorize(user_id, asset_id)

    async def _authorize(self, user_id: str, asset_id: str) -> SourceCodeAsset:
        path = join_path(SOURCE_CODES, asset_id)
        record = await self.store.get(path)
        if record is None:
            raise DocumentNotFoundError(path)

        asset = SourceCodeAsset.from_record(asset_id, record)
        if asset.script_url is None:
            raise DocumentNotFoundError(f"{path}/scriptUrl")

        if not await self.entitlements.can_access(user_id, asset):
            logger.info("download_denied")
            raise AuthorizationError(Role.PREMIUM.value)

        logger.info("download_authorized", is_premium=asset.is_premium)
        return asset

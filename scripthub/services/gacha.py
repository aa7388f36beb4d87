"""
Daily Gacha - Once-a-day lottery that rewards basic users with redeem codes.

The play itself is claimed with a conditional update on the user's
lastGachaTime, so two simultaneous plays cannot both get past the cooldown.
"""

import math
import random

from structlog import get_logger

from scripthub.config import settings
from scripthub.exceptions import GachaCooldownError, GachaIneligibleError
from scripthub.models.domain import GachaOutcome, GachaPrize, Role, as_millis
from scripthub.observability.logging import log_context
from scripthub.observability.tracing import set_attributes, traced
from scripthub.services.entitlement import Clock, EntitlementManager, now_ms, user_path
from scripthub.services.redeem_codes import HOUR_MS, RedeemCodeService
from scripthub.store.base import DocumentStore, Record, merge_fields

logger = get_logger(__name__)

WIN_MESSAGE = (
    "Congratulations! You've won a redeem code for {hours} of premium access: {code}"
)
LOSE_MESSAGE = "Better luck next time! Try again tomorrow."


def prizes_collection(user_id: str) -> str:
    return f"users/{user_id}/gachaPrizes"


class DailyGachaService:
    """Plays the daily gacha and lists a user's prizes."""

    def __init__(
        self,
        store: DocumentStore,
        entitlements: EntitlementManager,
        codes: RedeemCodeService,
        clock: Clock = now_ms,
        rng: random.Random | None = None,
        win_chance: float | None = None,
        prize_duration_ms: int | None = None,
        cooldown_ms: int | None = None,
    ) -> None:
        self.store = store
        self.entitlements = entitlements
        self.codes = codes
        self.clock = clock
        self.rng = rng or random.Random()
        self.win_chance = settings.gacha_win_chance if win_chance is None else win_chance
        self.prize_duration_ms = (
            settings.gacha_prize_duration_ms if prize_duration_ms is None else prize_duration_ms
        )
        self.cooldown_ms = settings.gacha_cooldown_ms if cooldown_ms is None else cooldown_ms

    async def play(self, user_id: str) -> GachaOutcome:
        """
        Play once for user_id.

        Raises:
            GachaIneligibleError: the user's live role is not basic
            GachaCooldownError: last play was within the cooldown window
        """
        with log_context(user_id=user_id), traced("gacha_play", user_id=user_id) as span:
            outcome = await self._play(user_id)
            set_attributes(span, won=outcome.won)
        return outcome

    async def _play(self, user_id: str) -> GachaOutcome:
        resolved = await self.entitlements.resolve_user(user_id)
        if resolved.role != Role.BASIC:
            raise GachaIneligibleError(resolved.role.value)

        now = self.clock()
        last_seen: dict[str, int | None] = {}

        def cooled_down(current: Record | None) -> bool:
            last = as_millis((current or {}).get("lastGachaTime"))
            last_seen["last"] = last
            return last is None or now - last > self.cooldown_ms

        def stamp(current: Record | None) -> Record:
            return merge_fields(current, {"lastGachaTime": now})

        if not await self.store.conditional_update(user_path(user_id), cooled_down, stamp):
            last = last_seen.get("last") or now
            hours = max(math.ceil((last + self.cooldown_ms - now) / HOUR_MS), 1)
            raise GachaCooldownError(hours)

        if self.rng.random() >= self.win_chance:
            logger.info("gacha_played", user_id=user_id, won=False)
            return GachaOutcome(won=False, message=LOSE_MESSAGE)

        code = await self.codes.issue_reward_code(self.prize_duration_ms)
        prize_record = {"type": "redeemCode", "code": code.code, "timestamp": now}
        prize_id = await self.store.push(prizes_collection(user_id), prize_record)

        logger.info("gacha_played", user_id=user_id, won=True, code_id=code.code_id)
        return GachaOutcome(
            won=True,
            message=WIN_MESSAGE.format(hours=_hours_label(self.prize_duration_ms), code=code.code),
            prize=GachaPrize.from_record(prize_id, prize_record),
        )

    async def list_prizes(self, user_id: str) -> list[GachaPrize]:
        return [
            GachaPrize.from_record(prize_id, record)
            for prize_id, record in await self.store.list_records(prizes_collection(user_id))
        ]


def _hours_label(duration: int) -> str:
    hours = max(duration // HOUR_MS, 1)
    return "1 hour" if hours == 1 else f"{hours} hours"

import logging
import time
from typing import Callable

import numpy as np

from config import (
    CHALLENGE_CACHE_PREFIX, CHALLENGE_GRACE_SECONDS, CHALLENGE_NONCE_BYTES,
    DEFAULT_POLYGON_COUNT, DEFAULT_TTL_SECONDS,
)
from processing.crypto import CryptoService
from processing.polygons import generate_polygons
from schemas.challenge import Challenge, ChallengeResponse
from state.cache import ExpiringCache

logger = logging.getLogger("uvicorn.error").getChild("challenge")


class ChallengeManager:
    """Creates, looks up and consumes polygon challenges.

    A challenge is Active from creation until either a capture consumes it
    (deleted) or its `expires_at` passes. The cache keeps it for a grace period
    past `expires_at`; lookups re-check the challenge's own expiry so a stale
    entry inside that window is never served.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        crypto: CryptoService,
        rng: np.random.Generator | None = None,
        clock: Callable[[], float] = time.time,
        grace_seconds: float = CHALLENGE_GRACE_SECONDS,
    ):
        self.cache = cache
        self.crypto = crypto
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock
        self.grace_seconds = grace_seconds

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    @staticmethod
    def cache_key(challenge_id: str) -> str:
        return f"{CHALLENGE_CACHE_PREFIX}{challenge_id}"

    def create_challenge(
        self,
        client_id: str,
        polygon_count: int = DEFAULT_POLYGON_COUNT,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> ChallengeResponse:
        created_at = self._now_ms()
        challenge = Challenge(
            challenge_id=self.crypto.generate_uuid(),
            nonce=self.crypto.generate_nonce(CHALLENGE_NONCE_BYTES),
            polygons=tuple(generate_polygons(polygon_count, self.rng)),
            client_id=client_id,
            created_at=created_at,
            expires_at=created_at + int(ttl_seconds * 1000),
        )

        self.cache.set(self.cache_key(challenge.challenge_id), challenge, ttl_seconds + self.grace_seconds)
        logger.info(f"Challenge created: {challenge.challenge_id} for client: {client_id} "
                    f"(polygons={polygon_count}, ttl={ttl_seconds}s)")

        return ChallengeResponse(
            challenge_id=challenge.challenge_id,
            nonce=challenge.nonce,
            polygons=challenge.polygons,
            expires_at=challenge.expires_at,
            ttl=ttl_seconds,
        )

    def get_challenge(self, challenge_id: str) -> Challenge | None:
        challenge = self.cache.get(self.cache_key(challenge_id))
        if challenge is None:
            return None

        if self._now_ms() > challenge.expires_at:
            logger.debug(f"Challenge expired: {challenge_id}")
            self.delete_challenge(challenge_id)
            return None

        return challenge

    def verify_challenge(self, challenge_id: str) -> bool:
        return self.get_challenge(challenge_id) is not None

    def delete_challenge(self, challenge_id: str) -> bool:
        deleted = self.cache.delete(self.cache_key(challenge_id))
        if deleted:
            logger.info(f"Challenge deleted: {challenge_id}")
        return deleted

"""
Verrou de checkout par utilisateur et réponses idempotentes (Redis).
- Un seul checkout en cours par utilisateur: SET NX EX, libération atomique via Lua
- Idempotency-Key: la réponse d'un checkout terminé est rejouée au lieu de re-débiter
"""
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import redis
from redis.exceptions import RedisError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cursoshub.errors import CheckoutInProgressError

logger = logging.getLogger(__name__)

# Compare-and-delete: ne supprime que si la valeur est toujours notre jeton
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

# Prolonge le verrou (PEXPIRE) seulement s'il nous appartient encore
_EXTEND_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('PEXPIRE', KEYS[1], ARGV[2])
else
    return 0
end
"""

# Attente maximale entre deux tentatives d'écriture (cf. PaymentOutbox.wait)
_WRITE_RETRY_WAIT_SECONDS = 3


def post_payment_window(store_timeout: int, write_attempts: int) -> int:
    """
    Durée maximale des écritures post-paiement (secondes):
    outbox.record + mark, et inscriptions (lecture + insertion) / vidage du panier,
    chacun répété write_attempts fois avec attente entre les tentatives.
    """
    attempts = max(1, write_attempts)
    calls = 2 + 3 * attempts
    waits = 2 * (attempts - 1) * _WRITE_RETRY_WAIT_SECONDS
    return calls * store_timeout + waits


def checkout_lock_ttl(gateway_timeout: int, store_timeout: int, write_attempts: int, minimum: int = 0) -> int:
    """TTL du verrou: deux lectures catalogue/inscriptions, l'appel passerelle, puis les écritures."""
    needed = 2 * store_timeout + gateway_timeout + post_payment_window(store_timeout, write_attempts)
    return max(minimum, needed)


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


class CheckoutLock:
    def __init__(self, client: redis.Redis, ttl: int = 90, extend_ttl: Optional[int] = None):
        self.redis = client
        self.ttl = ttl
        # Durée garantie après paiement confirmé, pour les écritures
        self.extend_ttl = extend_ttl or ttl

    @staticmethod
    def _key(user_id: str) -> str:
        return f"checkout:{user_id}:lock"

    @redis_retry()
    def acquire(self, user_id: str) -> Optional[str]:
        """Retourne le jeton du verrou, ou None si un checkout est déjà en cours."""
        token = uuid.uuid4().hex
        ok = self.redis.set(name=self._key(user_id), value=token, nx=True, ex=self.ttl)
        return token if ok else None

    @redis_retry()
    def release(self, user_id: str, token: str) -> bool:
        res = self.redis.eval(_RELEASE_LUA, 1, self._key(user_id), token)
        return bool(res)

    @redis_retry()
    def extend(self, user_id: str, token: str) -> bool:
        """Repousse l'expiration à extend_ttl; False si le verrou a expiré ou changé de main."""
        res = self.redis.eval(_EXTEND_LUA, 1, self._key(user_id), token, int(self.extend_ttl * 1000))
        return bool(res)

    @contextmanager
    def hold(self, user_id: str) -> Iterator[str]:
        token = self.acquire(user_id)
        if not token:
            logger.warning("checkout.lock busy user_id=%s", user_id)
            raise CheckoutInProgressError("Un paiement est déjà en cours pour ce compte")
        try:
            yield token
        finally:
            try:
                self.release(user_id, token)
            except RedisError:
                # Le TTL finira par libérer la clé
                logger.exception("checkout.lock release failed user_id=%s", user_id)


class IdempotencyStore:
    def __init__(self, client: redis.Redis, ttl: int = 24 * 60 * 60):
        self.redis = client
        self.ttl = ttl

    @staticmethod
    def _key(user_id: str, key: str) -> str:
        return f"checkout:{user_id}:idem:{key}"

    @redis_retry()
    def get(self, user_id: str, key: str) -> Optional[Dict[str, Any]]:
        raw = self.redis.get(self._key(user_id, key))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("checkout.idempotency corrupted entry user_id=%s", user_id)
            return None

    @redis_retry()
    def put(self, user_id: str, key: str, status_code: int, body: Dict[str, Any]) -> None:
        value = json.dumps({"status_code": status_code, "body": body})
        self.redis.set(name=self._key(user_id, key), value=value, ex=self.ttl)

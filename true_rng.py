"""Buffered true-random supply.

TrueRNG keeps a small cache of random.org decimals and serves them through
``get_random_number()``, which a host swaps in for its own random function.
The cache is topped up in a background thread whenever it drops below the
low-water mark; draws never wait on the network and fall back to the host's
original generator when the cache is empty, the key is missing, or the
supply is disabled.

    rng = TrueRNG()
    rng.install(dice, "random_uniform")   # dice.random_uniform now draws from random.org
    rng.configure(os.environ["RANDOM_ORG_API_KEY"])

Hooks subclass DrawHook and answer CONTINUE or Override(...) before and after
each draw.
"""
import functools, logging, random, sys, threading, time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from randomorg_client import MAX_DECIMALS_PER_REQUEST, RandomOrgClient, RandomSourceError, TrueRNGError

logger = logging.getLogger(__name__)

DECIMAL_PLACES = 5
EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class Override:
    """Replace the draw function (before_draw) or the drawn value (after_draw).
    ``Override()`` from before_draw means "use the fallback generator";
    from after_draw it keeps the drawn value.
    """
    value: Any = None


CONTINUE = Continue()


class DrawHook:
    def before_draw(self, supply: "TrueRNG"):
        return CONTINUE

    def after_draw(self, supply: "TrueRNG", value: float):
        return CONTINUE


def _spawn_thread(fn):
    threading.Thread(target=fn, name="trng-refill", daemon=True).start()


def _wall_clock_ms():
    return time.time_ns() // 1_000_000


class TrueRNG:
    def __init__(self, fallback: Optional[Callable[[], float]] = None, capacity=50, refill_threshold=0.5,
                 enabled=True, client_factory=None, spawn=None, clock=None, on_missing_key=None):
        self.cache: List[float] = []
        self.capacity = capacity
        self.refill_threshold = refill_threshold
        self.enabled = enabled
        self.awaiting_refill = False
        self.has_warned_missing_key = False
        self.fallback = fallback or random.random
        self.last_drawn_value = self.fallback()
        self.true_random_count = 0
        self.fallback_count = 0
        self.client: Optional[RandomOrgClient] = None
        self.on_missing_key = on_missing_key
        self._client_factory = client_factory or RandomOrgClient
        self._spawn = spawn or _spawn_thread
        self._clock = clock or _wall_clock_ms
        self._hooks: List[DrawHook] = []
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._installed = None

    @classmethod
    def from_settings(cls, settings, **kwargs):
        factory = functools.partial(RandomOrgClient, endpoint=settings.endpoint, timeout=settings.timeout)
        kwargs.setdefault("client_factory", factory)
        rng = cls(capacity=settings.capacity, refill_threshold=settings.refill_threshold,
                  enabled=settings.enabled, **kwargs)
        if settings.api_key:
            rng.configure(settings.api_key)
        return rng

    @property
    def capacity(self) -> int:
        return self._capacity

    @capacity.setter
    def capacity(self, value):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_DECIMALS_PER_REQUEST:
            raise ValueError(f"capacity must be an integer in 1..{MAX_DECIMALS_PER_REQUEST}, got {value!r}")
        self._capacity = value

    @property
    def refill_threshold(self) -> float:
        return self._refill_threshold

    @refill_threshold.setter
    def refill_threshold(self, value):
        if not 0 < value <= 1:
            raise ValueError(f"refill_threshold must be in (0, 1], got {value!r}")
        self._refill_threshold = float(value)

    @property
    def has_key(self) -> bool:
        return bool(self.client is not None and self.client.api_key)

    @property
    def fill_ratio(self) -> float:
        return len(self.cache) / self.capacity

    def configure(self, api_key: str):
        """Swap in a client for ``api_key`` and start filling the cache."""
        old, self.client = self.client, (self._client_factory(api_key) if api_key else None)
        if old is not None and old is not self.client:
            old.close()
        logger.info("random.org key %s", "configured" if self.client else "cleared")
        self.trigger_refill()

    def add_hook(self, hook: DrawHook):
        self._hooks.append(hook)

    def remove_hook(self, hook: DrawHook):
        self._hooks.remove(hook)

    def _fallback_draw(self) -> float:
        self.fallback_count += 1
        return self.fallback()

    def _warn_once(self):
        if self.has_warned_missing_key:
            return
        self.has_warned_missing_key = True
        if self.enabled:
            message = "You must set a random.org API key for TrueRNG to function."
        else:
            message = "TrueRNG is disabled; using the local random generator."
        logger.warning(message)
        if self.on_missing_key is not None:
            try:
                self.on_missing_key(message)
            except Exception:
                logger.exception("missing-key callback failed")

    def get_random_number(self) -> float:
        """One value in [0,1). Never raises; every failure path uses the fallback."""
        if not self.enabled or not self.has_key:
            self._warn_once()
            return self._fallback_draw()
        if not self.cache:
            self.trigger_refill()
            return self._fallback_draw()
        try:
            draw, from_cache = self.pop_random_number, True
            for hook in list(self._hooks):
                decision = hook.before_draw(self)
                if isinstance(decision, Override):
                    draw, from_cache = decision.value or self.fallback, False
            try:
                value = draw()
            finally:
                # low-water mark is measured on the cache this draw leaves behind
                if self.fill_ratio < self.refill_threshold:
                    self.trigger_refill()
            for hook in list(self._hooks):
                decision = hook.after_draw(self, value)
                if isinstance(decision, Override) and decision.value is not None:
                    value = decision.value
        except Exception:
            logger.exception("draw failed, using fallback")
            return self._fallback_draw()
        if from_cache:
            self.true_random_count += 1
        else:
            self.fallback_count += 1
        self.last_drawn_value = value
        return value

    def pop_random_number(self) -> float:
        # wall-clock index: cheap and not cryptographic; the values carry the randomness
        with self._lock:
            if not self.cache:
                raise IndexError("pop from empty random cache")
            value = self.cache.pop(self._clock() % len(self.cache))
        return EPSILON if value <= EPSILON else value

    def trigger_refill(self) -> bool:
        with self._lock:
            if not self.enabled or self.client is None or self.awaiting_refill or self._closed.is_set():
                return False
            self.awaiting_refill = True
            client, count = self.client, self.capacity
        try:
            self._spawn(lambda: self._refill(client, count))
        except RuntimeError as e:
            logger.error("could not start refill: %s", e)
            with self._lock:
                self.awaiting_refill = False
            return False
        return True

    def _refill(self, client, count):
        try:
            values = client.fetch_decimals(count, DECIMAL_PLACES)
        except RandomSourceError as e:
            logger.warning("random.org error: %s", e.reason)
        except Exception as e:
            logger.warning("random.org error: %s", e, exc_info=True)
        else:
            with self._lock:
                closed = self._closed.is_set()
                if not closed:
                    self.cache.extend(values)
            if closed:
                logger.debug("supply closed, dropping %d late values", len(values))
            else:
                logger.debug("cache refilled with %d values", len(values))
        finally:
            with self._lock:
                self.awaiting_refill = False

    def install(self, target, attr="random"):
        """Replace ``target.attr`` with get_random_number; the old function becomes the fallback."""
        if self._installed is not None:
            raise TrueRNGError("already installed on %r" % (self._installed[0],))
        self.fallback = getattr(target, attr)
        setattr(target, attr, self.get_random_number)
        self._installed = (target, attr)

    def uninstall(self):
        if self._installed is None:
            return
        target, attr = self._installed
        setattr(target, attr, self.fallback)
        self._installed = None

    def close(self):
        self._closed.set()
        self.uninstall()
        if self.client is not None:
            self.client.close()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

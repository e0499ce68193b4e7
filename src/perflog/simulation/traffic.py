"""Virtual traffic generation.

A TrafficManager spawns VirtualUsers on an asyncio loop, keeping the number
of active users near a timing-adjusted target. Each user walks a weighted
journey against an HTTP application through an ``httpx.AsyncClient`` (an
``ASGITransport`` client drives an in-process app) and reports its actions
through a PerformanceManager.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from typing import Any

import httpx

from perflog.core.manager import PerformanceManager
from perflog.simulation.journeys import (
    DEFAULT_JOURNEYS,
    JOURNEY_PATTERNS,
    Journey,
    filter_journeys,
    select_weighted_journey,
    should_execute,
    think_time,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

_SESSION_WINDOW = 100


class TrafficTiming(StrEnum):
    STEADY = "steady"
    PEAK = "peak"
    LOW = "low"
    BURST = "burst"
    NORMAL = "normal"


@dataclass(frozen=True)
class TrafficConfig:
    """Virtual traffic settings.

    Attributes:
        enabled: Whether the spawn loop runs.
        target_concurrent_users: Desired number of simultaneous users.
        spawn_interval_min: Minimum seconds between spawns.
        spawn_interval_max: Maximum seconds between spawns.
        bounce_rate: Share of users leaving before their first step.
        journey_pattern: mixed, buyers, browsers or researchers.
        timing: Traffic shape applied to intervals and target.
        think_time_scale: Multiplier applied to every think time.
    """

    enabled: bool = False
    target_concurrent_users: int = 5
    spawn_interval_min: float = 30.0
    spawn_interval_max: float = 120.0
    bounce_rate: float = 0.15
    journey_pattern: str = "mixed"
    timing: TrafficTiming = TrafficTiming.STEADY
    think_time_scale: float = 1.0

    def __post_init__(self) -> None:
        if self.target_concurrent_users < 0:
            raise ValueError("target_concurrent_users must not be negative")
        if not 0.0 <= self.bounce_rate <= 1.0:
            raise ValueError("bounce_rate must be between 0 and 1")
        if self.spawn_interval_min < 0:
            raise ValueError("spawn_interval_min must not be negative")
        if self.spawn_interval_max <= 0:
            raise ValueError("spawn_interval_max must be positive")
        if self.spawn_interval_min > self.spawn_interval_max:
            raise ValueError("spawn_interval_min must not exceed spawn_interval_max")
        if self.think_time_scale <= 0:
            raise ValueError("think_time_scale must be positive")
        if self.journey_pattern not in JOURNEY_PATTERNS:
            raise ValueError(
                f"journey_pattern must be one of {', '.join(JOURNEY_PATTERNS)}"
            )
        object.__setattr__(self, "timing", TrafficTiming(self.timing))


@dataclass(frozen=True)
class TimingProfile:
    interval_min: float
    interval_max: float
    target_adjustment: float


def timing_profile(config: TrafficConfig, rng: random.Random) -> TimingProfile:
    """Scale the spawn intervals and target for the configured timing."""
    low, high = config.spawn_interval_min, config.spawn_interval_max
    match config.timing:
        case TrafficTiming.STEADY:
            return TimingProfile(low * 0.5, high * 0.7, 1.0)
        case TrafficTiming.PEAK:
            return TimingProfile(low * 0.3, high * 0.5, 1.5)
        case TrafficTiming.LOW:
            return TimingProfile(low * 2, high * 3, 0.6)
        case TrafficTiming.BURST:
            if rng.random() < 0.3:
                return TimingProfile(low * 0.1, high * 0.2, 2.0)
            return TimingProfile(low * 4, high * 6, 0.3)
        case _:
            return TimingProfile(low, high, 1.0)


def adjusted_target(config: TrafficConfig, profile: TimingProfile) -> int:
    return round(config.target_concurrent_users * profile.target_adjustment)


def spawn_delay(config: TrafficConfig, active: int, rng: random.Random) -> float:
    """Seconds to wait before the next spawn given ``active`` users."""
    profile = timing_profile(config, rng)
    target = adjusted_target(config, profile)
    if config.timing is TrafficTiming.STEADY:
        if active < target:
            return profile.interval_min
        if active > target:
            return profile.interval_max * 1.5
        return profile.interval_min * 1.5
    minimum = max(1, target - 2)
    maximum = target + 2
    if active < minimum:
        return profile.interval_min
    if active >= maximum:
        return profile.interval_max * 2
    return rng.uniform(profile.interval_min, profile.interval_max)


class VirtualUser:
    """A simulated visitor walking one journey."""

    def __init__(
        self,
        user_id: str,
        journey: Journey,
        client: httpx.AsyncClient,
        manager: PerformanceManager,
        rng: random.Random,
        think_time_scale: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.user_id = user_id
        self.journey = journey
        self.client = client
        self.manager = manager
        self.rng = rng
        self.think_time_scale = think_time_scale
        self.sleep = sleep
        self.activity = "arriving"
        self.step_index = 0
        self.requests = 0
        self.failures = 0

    @property
    def progress(self) -> float:
        if not self.journey.steps:
            return 1.0
        return self.step_index / len(self.journey.steps)

    async def run(self) -> None:
        """Execute the journey step by step."""
        self.activity = "browsing"
        for index, step in enumerate(self.journey.steps):
            self.step_index = index
            if not should_execute(step, self.rng):
                continue
            self.activity = step.action
            path = step.path.format(product_id=self.rng.randint(1, 20))
            status = await self._request(step.method, path, step.body)
            self.manager.log_user_action(
                step.action,
                path,
                self.user_id,
                {
                    "journey": self.journey.name,
                    "step": index + 1,
                    "method": step.method,
                    "status": status,
                },
            )
            await self.sleep(think_time(step, self.rng, self.think_time_scale))
        self.step_index = len(self.journey.steps)
        self.activity = "completed_purchase" if self.journey.purchases else "completed_browsing"
        self.manager.log_business_event(
            "journey_completed",
            self.journey.name,
            self.user_id,
            {"requests": self.requests, "failures": self.failures},
        )

    async def _request(self, method: str, path: str, body: dict | None) -> int | None:
        self.requests += 1
        try:
            response = await self.client.request(method, path, json=body)
        except httpx.HTTPError as exc:
            self.failures += 1
            self.manager.log_error(
                exc, {"userId": self.user_id, "method": method, "url": path}
            )
            return None
        if response.status_code >= 400:
            self.failures += 1
        return response.status_code


@dataclass
class ActiveUser:
    user: VirtualUser
    started: float
    task: asyncio.Task[None] | None = None
    completed: bool = False
    bounced: bool = False


@dataclass
class TrafficStats:
    total_sessions: int = 0
    total_orders: int = 0
    bounced_sessions: int = 0
    session_durations: list[float] = field(default_factory=list)

    def record(self, duration: float) -> None:
        self.session_durations.append(duration)
        del self.session_durations[:-_SESSION_WINDOW]

    def as_dict(self, active_users: int) -> dict[str, Any]:
        durations = self.session_durations
        return {
            "activeUsers": active_users,
            "totalSessions": self.total_sessions,
            "totalOrders": self.total_orders,
            "averageSessionDuration": sum(durations) / len(durations) if durations else 0.0,
            "bounceRate": (
                round(self.bounced_sessions / self.total_sessions, 2)
                if self.total_sessions
                else 0.0
            ),
        }


class TrafficManager:
    """Spawns virtual users and keeps their number near the target.

    Args:
        client: Client the users send requests through.
        manager: Manager receiving user actions and business events.
        config: Initial traffic settings.
        journeys: Journeys users are drawn from.
        rng: Random source; inject a seeded one for reproducible traffic.
        sleep: Awaitable sleep used for every delay.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        manager: PerformanceManager,
        config: TrafficConfig | None = None,
        journeys: Sequence[Journey] = DEFAULT_JOURNEYS,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.manager = manager
        self.config = config or TrafficConfig()
        self.journeys = tuple(journeys)
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.stats = TrafficStats()
        self._users: dict[str, ActiveUser] = {}
        self._counter = 0
        self._spawner: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._spawner is not None and not self._spawner.done()

    def active_count(self) -> int:
        return sum(1 for user in self._users.values() if not user.completed)

    def start(self) -> bool:
        """Start the spawn loop; returns False when disabled or already running."""
        if not self.config.enabled:
            logger.info("Virtual traffic disabled, not starting")
            return False
        if self.running:
            logger.warning("Virtual traffic already running")
            return False
        logger.info(
            "Starting virtual traffic: target=%d pattern=%s timing=%s",
            self.config.target_concurrent_users,
            self.config.journey_pattern,
            self.config.timing,
        )
        self._spawner = asyncio.get_running_loop().create_task(self._spawn_loop())
        return True

    def stop(self) -> None:
        """Stop spawning; users already walking finish their journeys."""
        spawner, self._spawner = self._spawner, None
        if spawner is not None:
            spawner.cancel()
            logger.info(
                "Stopped virtual traffic, %d users finishing", self.active_count()
            )

    async def shutdown(self) -> None:
        """Stop spawning and cancel every active user."""
        self.stop()
        tasks = [user.task for user in self._users.values() if user.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._users.clear()

    def update_config(self, **changes: Any) -> TrafficConfig:
        """Apply ``changes``, starting, stopping or restarting the loop as needed."""
        was_enabled = self.config.enabled
        self.config = replace(self.config, **changes)
        logger.info("Virtual traffic config updated: %s", asdict(self.config))
        if self.config.enabled and not was_enabled:
            self.start()
        elif was_enabled and not self.config.enabled:
            self.stop()
        elif self.config.enabled and self.running:
            self.stop()
            self.start()
        return self.config

    async def _spawn_loop(self) -> None:
        profile = timing_profile(self.config, self.rng)
        for _ in range(max(0, adjusted_target(self.config, profile) - self.active_count())):
            self.spawn_user()
            await self.sleep(0.5)
        while True:
            delay = spawn_delay(self.config, self.active_count(), self.rng)
            logger.debug("Next virtual user in %.1fs", delay)
            await self.sleep(delay)
            self.spawn_user()

    def spawn_user(self) -> ActiveUser | None:
        """Spawn one user unless the population is at capacity."""
        capacity = self.config.target_concurrent_users + 2
        if self.active_count() >= capacity:
            logger.debug("Virtual traffic at capacity (%d)", capacity)
            return None
        self._counter += 1
        user_id = f"traffic-user-{self._counter}-{int(time.time() * 1000)}"
        journey = select_weighted_journey(
            filter_journeys(self.journeys, self.config.journey_pattern), self.rng
        )
        user = VirtualUser(
            user_id,
            journey,
            self.client,
            self.manager,
            self.rng,
            self.config.think_time_scale,
            self.sleep,
        )
        active = ActiveUser(user=user, started=time.monotonic())
        self._users[user_id] = active
        self.stats.total_sessions += 1
        active.task = asyncio.get_running_loop().create_task(self._walk(active))
        logger.debug("Spawned %s on journey %r", user_id, journey.name)
        return active

    async def _walk(self, active: ActiveUser) -> None:
        user = active.user
        try:
            if self.rng.random() < self.config.bounce_rate:
                active.bounced = True
                user.activity = "bounced"
                self.stats.bounced_sessions += 1
                self.manager.log_user_action("bounce", "/", user.user_id)
                await self.sleep(self.rng.uniform(1.0, 6.0) * self.config.think_time_scale)
                return
            await user.run()
            if user.journey.purchases:
                self.stats.total_orders += 1
        except asyncio.CancelledError:
            user.activity = "aborted"
            raise
        except Exception as exc:
            user.activity = "error"
            logger.exception("Virtual user %s failed", user.user_id)
            self.manager.log_error(exc, {"userId": user.user_id})
        finally:
            self._complete(active)

    def _complete(self, active: ActiveUser) -> None:
        active.completed = True
        self.stats.record(time.monotonic() - active.started)
        # Drop finished users so the registry stays bounded.
        finished = [uid for uid, user in self._users.items() if user.completed]
        for uid in finished[:-5]:
            del self._users[uid]

    async def wait_idle(self) -> None:
        """Wait until every spawned user has finished."""
        tasks = [user.task for user in self._users.values() if user.task and not user.completed]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def status(self) -> dict[str, Any]:
        """Configuration, counters and the users currently walking."""
        config = asdict(self.config)
        config["timing"] = self.config.timing.value
        return {
            "running": self.running,
            "config": config,
            "stats": self.stats.as_dict(self.active_count()),
            "activeUsers": [
                {
                    "userId": user.user.user_id,
                    "journey": user.user.journey.name,
                    "activity": user.user.activity,
                    "progress": round(user.user.progress, 2),
                }
                for user in self._users.values()
                if not user.completed
            ],
        }

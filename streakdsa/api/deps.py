"""
Service wiring for the HTTP layer.

Routes depend on get_services(); main.py installs a SqlStore-backed bundle
at startup when DATABASE_URL is set. Without it the app runs on an
in-memory store. Tests swap bundles with install_services().
"""

from dataclasses import dataclass
from typing import Optional

from streakdsa.features.problems.service import ProblemService
from streakdsa.features.streaks.service import StreakService
from streakdsa.features.streaks.store import InMemoryStore


@dataclass
class Services:
    store: object
    streaks: StreakService
    problems: ProblemService


_services: Optional[Services] = None


def build_services(store, **streak_kwargs) -> Services:
    """One store backs the day records, the wallet and the problem log."""
    streaks = StreakService(store, store, **streak_kwargs)
    return Services(store=store, streaks=streaks, problems=ProblemService(store, streaks))


def install_services(services: Optional[Services]) -> None:
    global _services
    _services = services


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services(InMemoryStore())
    return _services


def get_streak_service() -> StreakService:
    return get_services().streaks


def get_problem_service() -> ProblemService:
    return get_services().problems

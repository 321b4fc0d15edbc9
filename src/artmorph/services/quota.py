"""Free-tier generation quota."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from artmorph.services.exceptions import NotFoundError
from artmorph.uow import UnitOfWork


@dataclass(frozen=True)
class GenerationLimit:
    """Quota state of one user.

    ``remaining`` is None for developer-mode users (unlimited).
    """

    limit: int
    used: int
    remaining: Optional[int]
    is_dev_mode: bool
    can_generate: bool


class QuotaGuard:
    """Decides whether a user may start a new generation job.

    ``used`` counts the user's currently existing job rows, so deleting a job
    gives the slot back.
    """

    def __init__(self, limit: int):
        self.limit = limit

    def evaluate(self, used: int, is_dev_mode: bool) -> GenerationLimit:
        """Pure quota arithmetic, separated from the database lookups."""
        if is_dev_mode:
            return GenerationLimit(
                limit=self.limit,
                used=used,
                remaining=None,
                is_dev_mode=True,
                can_generate=True,
            )
        return GenerationLimit(
            limit=self.limit,
            used=used,
            remaining=max(0, self.limit - used),
            is_dev_mode=False,
            can_generate=used < self.limit,
        )

    async def check_limit(self, uow: UnitOfWork, user_id: UUID) -> GenerationLimit:
        """Compute the user's quota state inside the caller's transaction.

        Raises:
            NotFoundError: If the user has no profile
        """
        profile = await uow.profiles.get_by_id(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")

        used = await uow.jobs.count_for_user(user_id)
        return self.evaluate(used=used, is_dev_mode=profile.is_dev_mode)

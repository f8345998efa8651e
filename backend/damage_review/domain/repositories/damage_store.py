from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from damage_review.domain.entities.damage_entity import Damage, DamageImage, DamageStatus
from damage_review.domain.entities.review_entity import DamageReviewSession


class DamageStore(ABC):
    """Keyed persistence contract for damages, images and review sessions.

    All operations are coroutines; implementations own their timeout and
    retry policy and raise StoreUnavailable when persistence fails.
    Patches are dicts keyed by Damage field names.
    """

    @abstractmethod
    async def get_images(
        self, report_id: str, section_id: Optional[str] = None, part_name: Optional[str] = None
    ) -> List[DamageImage]:
        """Images of a report, optionally scoped, ordered by order_index."""
        raise NotImplementedError

    @abstractmethod
    async def get_damages(
        self, report_id: str, section_id: Optional[str] = None, part_name: Optional[str] = None
    ) -> List[Damage]:
        """Damages of a report, optionally scoped.

        Part-scoped reads come most severe first; wider reads keep creation order.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_damage(self, damage_id: str) -> Damage:
        """Raises NotFound when absent."""
        raise NotImplementedError

    @abstractmethod
    async def get_damages_by_group(self, damage_group_id: str) -> List[Damage]:
        raise NotImplementedError

    @abstractmethod
    async def create_damage(self, damage: Damage) -> Damage:
        """Persist a new damage. An empty id is replaced by a generated one."""
        raise NotImplementedError

    @abstractmethod
    async def update_damage(self, damage_id: str, patch: Dict[str, Any]) -> Damage:
        """Raises NotFound when absent."""
        raise NotImplementedError

    @abstractmethod
    async def update_damages_by_scope(
        self,
        report_id: str,
        section_id: str,
        part_name: str,
        patch: Dict[str, Any],
        only_status: Optional[DamageStatus] = None,
    ) -> List[Damage]:
        """Bulk update of a part; only_status restricts it to damages in that status."""
        raise NotImplementedError

    @abstractmethod
    async def delete_damage(self, damage_id: str) -> None:
        """Raises NotFound when absent."""
        raise NotImplementedError

    @abstractmethod
    async def get_review_sessions(self, report_id: str) -> List[DamageReviewSession]:
        raise NotImplementedError

    @abstractmethod
    async def get_or_create_review_session(
        self, report_id: str, section_id: str, reviewer_id: str
    ) -> DamageReviewSession:
        """Existing session for (report, section, reviewer) or a new in-progress one."""
        raise NotImplementedError

    @abstractmethod
    async def update_review_session(self, session_id: str, patch: Dict[str, Any]) -> DamageReviewSession:
        """Raises NotFound when absent."""
        raise NotImplementedError

    @abstractmethod
    async def mark_report_reviewed(self, report_id: str, reviewer_id: str) -> None:
        raise NotImplementedError

"""
Collection areas.

Customers reference their area by name (``collector_name``), so an area that
still has customers can be neither renamed nor permanently deleted. Deleting
an area normally only deactivates it.
"""

from typing import List, Optional

from models.actor import Actor
from models.area import Area, AreaInput, AreaUpdate
from repositories.dynamodb_repo import DynamoDbRepository
from services.customer_service import COLLECTOR_INDEX
from utils.config import AppConfig
from utils.error_handling import ConflictError, InvalidStateError, NotFoundError, ValidationError
from utils.logging_config import get_logger
from utils.permissions import require_admin, require_authenticated

logger = get_logger(__name__)


class AreaService:
    """Admin-managed list of collection areas."""

    def __init__(
        self,
        repository: Optional[DynamoDbRepository] = None,
        customers: Optional[DynamoDbRepository] = None,
    ):
        config = AppConfig.from_environment()
        self.repository = repository or DynamoDbRepository(config.areas_table)
        self.customers = customers or DynamoDbRepository(config.customers_table)

    @classmethod
    def from_environment(cls) -> "AreaService":
        config = AppConfig.from_environment()
        options = dict(
            attempts=config.bootstrap_attempts, backoff_base=config.bootstrap_backoff_seconds
        )
        return cls(
            DynamoDbRepository.connect(config.areas_table, **options),
            DynamoDbRepository.connect(config.customers_table, **options),
        )

    def fetch(self, area_id: str) -> Area:
        area = self.repository.get_model(Area, area_id)
        if area is None:
            raise NotFoundError(f"Area {area_id} not found")
        return area

    def _all(self) -> List[Area]:
        return [Area.model_validate(item) for item in self.repository.scan()]

    def _ensure_unique(self, name: str, area_id: Optional[str] = None) -> None:
        wanted = name.lower()
        for area in self._all():
            if area.id != area_id and area.name.lower() == wanted:
                raise ValidationError("An area with this name already exists")

    def customer_count(self, name: str) -> int:
        return len(self.customers.query_index(COLLECTOR_INDEX, "collector_name", name))

    def list_areas(self, actor: Optional[Actor], active_only: bool = False) -> List[Area]:
        require_authenticated(actor, "list areas")
        areas = self._all()
        if active_only:
            areas = [area for area in areas if area.is_active]
        return sorted(areas, key=lambda a: a.name.lower())

    def get_area(self, actor: Optional[Actor], area_id: str) -> Area:
        require_authenticated(actor, "view area")
        return self.fetch(area_id)

    def create_area(self, actor: Optional[Actor], payload: AreaInput) -> Area:
        actor = require_admin(actor, "create area")
        self._ensure_unique(payload.name)
        stored = self.repository.save(Area(**payload.model_dump(), created_by=actor.user_id))
        logger.info("Area created", extra={"area_id": stored.id, "area_name": stored.name})
        return stored

    def update_area(
        self,
        actor: Optional[Actor],
        area_id: str,
        payload: AreaUpdate,
        expected_version: Optional[int] = None,
    ) -> Area:
        actor = require_admin(actor, "update area")
        current = self.fetch(area_id)
        if expected_version is not None and expected_version != current.version:
            raise ConflictError()

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and changes["name"] != current.name:
            self._ensure_unique(changes["name"], area_id)
            if self.customer_count(current.name):
                raise InvalidStateError(
                    f"Area {current.name} still has customers and cannot be renamed"
                )

        stored = self.repository.save(
            current.model_copy(update=changes), expected_version=current.version
        )
        logger.info(
            "Area updated",
            extra={"area_id": area_id, "fields": sorted(changes), "actor": actor.user_id},
        )
        return stored

    def delete_area(
        self,
        actor: Optional[Actor],
        area_id: str,
        permanent: bool = False,
        expected_version: Optional[int] = None,
    ) -> Optional[Area]:
        """Deactivate the area, or remove it when ``permanent`` and no customer uses it."""
        if not permanent:
            return self.update_area(
                actor, area_id, AreaUpdate(is_active=False), expected_version=expected_version
            )

        actor = require_admin(actor, "delete area")
        area = self.fetch(area_id)
        customers = self.customer_count(area.name)
        if customers:
            raise InvalidStateError(
                f"Area {area.name} is assigned to {customers} customer(s) and cannot be deleted"
            )
        self.repository.delete(area_id, expected_version=expected_version or area.version)
        logger.info("Area deleted", extra={"area_id": area_id, "area_name": area.name})
        return None

"""
Plan catalog used when approving plan changes.

Package names are unique. A package that any customer connection is still on
cannot be deleted; deactivate it instead so it stops being offered.
"""

from typing import List, Optional

from models.actor import Actor
from models.customer import Customer
from models.package import Package, PackageInput, PackageUpdate
from repositories.dynamodb_repo import DynamoDbRepository
from utils.config import AppConfig
from utils.error_handling import ConflictError, InvalidStateError, NotFoundError, ValidationError
from utils.logging_config import get_logger
from utils.permissions import require_admin, require_authenticated

logger = get_logger(__name__)

NAME_INDEX = "name-index"


def package_usage(package: Package, customers: List[Customer]) -> List[str]:
    """Describe every customer connection that is on ``package``."""
    usage = []
    for customer in customers:
        if not customer.connections:
            if customer.current_package == package.name and customer.custom_plan is None:
                usage.append(f"{customer.name} (Primary: {customer.vc_number})")
            continue
        for connection in customer.connections:
            if connection.effective_plan_name == package.name and not connection.is_custom_plan:
                kind = "Primary" if connection.is_primary else "Secondary"
                usage.append(f"{customer.name} ({kind}: {connection.vc_number})")
    return usage


class PackageService:
    """Admin-managed package catalog."""

    def __init__(
        self,
        repository: Optional[DynamoDbRepository] = None,
        customers: Optional[DynamoDbRepository] = None,
    ):
        config = AppConfig.from_environment()
        self.repository = repository or DynamoDbRepository(config.packages_table)
        self.customers = customers or DynamoDbRepository(config.customers_table)

    @classmethod
    def from_environment(cls) -> "PackageService":
        config = AppConfig.from_environment()
        options = dict(
            attempts=config.bootstrap_attempts, backoff_base=config.bootstrap_backoff_seconds
        )
        return cls(
            DynamoDbRepository.connect(config.packages_table, **options),
            DynamoDbRepository.connect(config.customers_table, **options),
        )

    def fetch(self, package_id: str) -> Package:
        package = self.repository.get_model(Package, package_id)
        if package is None:
            raise NotFoundError(f"Package {package_id} not found")
        return package

    def find_by_name(self, name: str) -> Optional[Package]:
        if not name:
            return None
        items = self.repository.query_index(NAME_INDEX, "name", name)
        return Package.model_validate(items[0]) if items else None

    def require_offered(self, name: Optional[str]) -> Package:
        """The active package called ``name``; unknown or retired plans are refused."""
        package = self.find_by_name(name or "")
        if package is None:
            raise NotFoundError(f"Package {name} not found")
        if not package.is_active:
            raise ValidationError(f"Package {name} is not active")
        return package

    def create_package(self, actor: Optional[Actor], payload: PackageInput) -> Package:
        actor = require_admin(actor, "create package")
        if self.find_by_name(payload.name) is not None:
            raise ValidationError(f"Package {payload.name} already exists")
        stored = self.repository.save(Package(**payload.model_dump()))
        logger.info("Package created", extra={"package_id": stored.id, "package_name": stored.name})
        return stored

    def get_package(self, actor: Optional[Actor], package_id: str) -> Package:
        require_authenticated(actor, "view package")
        return self.fetch(package_id)

    def list_packages(self, actor: Optional[Actor], active_only: bool = False) -> List[Package]:
        require_authenticated(actor, "list packages")
        packages = [Package.model_validate(item) for item in self.repository.scan()]
        if active_only:
            packages = [package for package in packages if package.is_active]
        return sorted(packages, key=lambda p: p.name.lower())

    def update_package(
        self,
        actor: Optional[Actor],
        package_id: str,
        payload: PackageUpdate,
        expected_version: Optional[int] = None,
    ) -> Package:
        """Apply the fields set on ``payload``; ``is_active=False`` retires the package."""
        actor = require_admin(actor, "update package")
        current = self.fetch(package_id)
        if expected_version is not None and expected_version != current.version:
            raise ConflictError()

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and changes["name"] != current.name:
            if self.find_by_name(changes["name"]) is not None:
                raise ValidationError(f"Package {changes['name']} already exists")

        stored = self.repository.save(
            current.model_copy(update=changes), expected_version=current.version
        )
        logger.info(
            "Package updated",
            extra={"package_id": package_id, "fields": sorted(changes), "actor": actor.user_id},
        )
        return stored

    def usage(self, package: Package) -> List[str]:
        customers = [Customer.model_validate(item) for item in self.customers.scan()]
        return package_usage(package, customers)

    def delete_package(
        self, actor: Optional[Actor], package_id: str, expected_version: Optional[int] = None
    ) -> None:
        actor = require_admin(actor, "delete package")
        package = self.fetch(package_id)
        in_use = self.usage(package)
        if in_use:
            raise InvalidStateError(
                f'Package "{package.name}" is currently assigned to '
                f"{len(in_use)} customer connection(s)"
            )
        self.repository.delete(package_id, expected_version=expected_version or package.version)
        logger.info(
            "Package deleted",
            extra={"package_id": package_id, "package_name": package.name, "actor": actor.user_id},
        )

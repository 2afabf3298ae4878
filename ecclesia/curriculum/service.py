"""Foundation School curriculum service.

Read side of the module catalog plus the upsert used by the seed script.
"""

from typing import TYPE_CHECKING

import structlog

from ecclesia.core.errors import NotFoundError

from .models import FoundationModule


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CurriculumModuleNotFoundError(NotFoundError):
    def __init__(self, module_number: int):
        super().__init__(f"Module {module_number} not found", "module_not_found")


class CurriculumService:
    """Service for Foundation School modules."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_module = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_modules WHERE module_number = ?
        """)

        # The catalog is a handful of rows; a full scan is fine
        self._get_all_modules = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_modules
        """)

        self._upsert_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_modules
            (module_number, title, description, lessons, quiz, passing_score,
             assignment, is_active, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

    async def list_active_modules(self) -> list[FoundationModule]:
        """All active modules ordered by module number."""
        rows = await self.session.aexecute(self._get_all_modules)
        modules = [FoundationModule.from_row(row) for row in rows]
        return sorted(
            (m for m in modules if m.is_active), key=lambda m: m.module_number
        )

    async def count_active_modules(self) -> int:
        return len(await self.list_active_modules())

    async def get_active_module(self, module_number: int) -> FoundationModule:
        """Get an active module.

        Raises:
            CurriculumModuleNotFoundError: If missing or inactive
        """
        result = await self.session.aexecute(self._get_module, [module_number])
        row = result.one()
        if not row:
            raise CurriculumModuleNotFoundError(module_number)
        module = FoundationModule.from_row(row)
        if not module.is_active:
            raise CurriculumModuleNotFoundError(module_number)
        return module

    async def upsert_module(self, module: FoundationModule) -> FoundationModule:
        await self.session.aexecute(self._upsert_module, module.to_row_values())
        logger.info(
            "foundation_module_saved",
            module_number=module.module_number,
            lessons=len(module.lessons),
            questions=len(module.quiz),
        )
        return module

"""Database management and models for Newsletter Studio."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column, String, DateTime, Integer, Text, ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import select, update, delete

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import handle_storage_errors
from newsletter_studio.models.newsletter import CANCELLATION_MESSAGE, NewsletterStatus

Base = declarative_base()

GENERATING = NewsletterStatus.GENERATING.value


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    """Newsletter configuration template."""

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    language = Column(String(20), default="en", nullable=False)
    frequency = Column(String(50), nullable=True)
    author_name = Column(String(255), default="", nullable=False)
    author_bio = Column(Text, nullable=True)
    tone = Column(Text, nullable=True)
    structure = Column(Text, nullable=True)
    newsletter_type = Column(String(20), default="personal", nullable=False)
    logo_url = Column(String(1000), nullable=True)
    design_guidelines = Column(Text, nullable=True)
    html_template = Column(Text, nullable=True)
    generation_backend = Column(String(20), default="builtin", nullable=False)
    webhook_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    newsletters = relationship("Newsletter", back_populates="project", cascade="all, delete-orphan")
    spreadsheets = relationship("Spreadsheet", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project(id={self.id}, name={self.name})>"


class Newsletter(Base):
    """One edition of a project's newsletter."""

    __tablename__ = "newsletters"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    title = Column(String(500), nullable=False)
    links_raw = Column(Text, default="", nullable=False)
    notes = Column(Text, default="", nullable=False)
    html_content = Column(Text, nullable=True)
    text_content = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    status = Column(String(20), default=NewsletterStatus.DRAFT.value, nullable=False)
    generation_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    project = relationship("Project", back_populates="newsletters")

    # Constraints
    __table_args__ = (
        Index("idx_newsletters_project_id", "project_id"),
        Index("idx_newsletters_status", "status"),
    )

    def __repr__(self):
        return f"<Newsletter(id={self.id}, status={self.status})>"


class Spreadsheet(Base):
    """Named tabular dataset attached to a project."""

    __tablename__ = "spreadsheets"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="spreadsheets")
    columns = relationship("SpreadsheetColumn", back_populates="spreadsheet", cascade="all, delete-orphan")
    rows = relationship("SpreadsheetRow", back_populates="spreadsheet", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_spreadsheets_project_id", "project_id"),
    )


class SpreadsheetColumn(Base):
    """Column definition of a spreadsheet."""

    __tablename__ = "spreadsheet_columns"

    id = Column(String(36), primary_key=True, default=_new_id)
    spreadsheet_id = Column(String(36), ForeignKey("spreadsheets.id"), nullable=False)
    name = Column(String(255), nullable=False)
    column_type = Column(String(20), default="text", nullable=False)
    column_order = Column(Integer, default=0, nullable=False)

    spreadsheet = relationship("Spreadsheet", back_populates="columns")

    __table_args__ = (
        UniqueConstraint("spreadsheet_id", "name", name="unique_spreadsheet_column_name"),
        Index("idx_spreadsheet_columns_spreadsheet_id", "spreadsheet_id"),
    )


class SpreadsheetRow(Base):
    """Row of a spreadsheet, stored as a column name -> value mapping."""

    __tablename__ = "spreadsheet_rows"

    id = Column(String(36), primary_key=True, default=_new_id)
    spreadsheet_id = Column(String(36), ForeignKey("spreadsheets.id"), nullable=False)
    data = Column(JSON, default=dict, nullable=False)
    row_order = Column(Integer, default=0, nullable=False)

    spreadsheet = relationship("Spreadsheet", back_populates="rows")

    __table_args__ = (
        Index("idx_spreadsheet_rows_spreadsheet_id", "spreadsheet_id"),
    )


class Database:
    """Database manager with async support.

    Status transitions of a newsletter are single conditional UPDATE
    statements; each returns whether a row matched, so callers never
    read the status and write it in separate steps.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_async_engine(
            database_url,
            echo=False,  # Set to True for SQL debugging
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init_tables(self) -> None:
        """Initialize database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()

    def get_session(self) -> AsyncSession:
        """Get database session."""
        return self.session_factory()

    async def _add(self, instance):
        async with self.get_session() as session:
            session.add(instance)
            await session.commit()
            await session.refresh(instance)
            return instance

    async def _conditional_update(self, model, *criteria, **values) -> bool:
        async with self.get_session() as session:
            result = await session.execute(
                update(model)
                .where(*criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0

    # Project operations
    @handle_storage_errors("create_project")
    async def create_project(self, name: str, **fields: Any) -> Project:
        """Create a new project."""
        return await self._add(Project(name=name, **fields))

    @handle_storage_errors("get_project")
    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get project by ID."""
        async with self.get_session() as session:
            return await session.get(Project, project_id)

    @handle_storage_errors("update_project")
    async def update_project(self, project_id: str, **fields: Any) -> bool:
        """Update editable project fields."""
        return await self._conditional_update(Project, Project.id == project_id, **fields)

    @handle_storage_errors("delete_project")
    async def delete_project(self, project_id: str) -> None:
        """Delete a project together with its newsletters and spreadsheets."""
        async with self.get_session() as session:
            spreadsheet_ids = select(Spreadsheet.id).where(Spreadsheet.project_id == project_id)
            await session.execute(
                delete(SpreadsheetRow).where(SpreadsheetRow.spreadsheet_id.in_(spreadsheet_ids))
            )
            await session.execute(
                delete(SpreadsheetColumn).where(SpreadsheetColumn.spreadsheet_id.in_(spreadsheet_ids))
            )
            await session.execute(delete(Spreadsheet).where(Spreadsheet.project_id == project_id))
            await session.execute(delete(Newsletter).where(Newsletter.project_id == project_id))
            await session.execute(delete(Project).where(Project.id == project_id))
            await session.commit()

    # Newsletter operations
    @handle_storage_errors("create_newsletter")
    async def create_newsletter(
        self,
        project_id: str,
        title: str,
        links_raw: str = "",
        notes: str = "",
    ) -> Newsletter:
        """Create a newsletter in draft status."""
        return await self._add(Newsletter(
            project_id=project_id,
            title=title,
            links_raw=links_raw,
            notes=notes,
            status=NewsletterStatus.DRAFT.value,
        ))

    @handle_storage_errors("get_newsletter")
    async def get_newsletter(self, newsletter_id: str) -> Optional[Newsletter]:
        """Get newsletter by ID."""
        async with self.get_session() as session:
            return await session.get(Newsletter, newsletter_id)

    @handle_storage_errors("list_newsletters")
    async def list_newsletters(self, project_id: str) -> List[Newsletter]:
        """List a project's newsletters, newest first."""
        async with self.get_session() as session:
            result = await session.execute(
                select(Newsletter)
                .where(Newsletter.project_id == project_id)
                .order_by(Newsletter.created_at.desc())
            )
            return list(result.scalars().all())

    @handle_storage_errors("update_newsletter_fields")
    async def update_newsletter_fields(self, newsletter_id: str, **fields: Any) -> bool:
        """Apply a user edit unless the newsletter is generating."""
        return await self._conditional_update(
            Newsletter,
            Newsletter.id == newsletter_id,
            Newsletter.status != GENERATING,
            **fields,
        )

    @handle_storage_errors("delete_newsletter")
    async def delete_newsletter(self, newsletter_id: str) -> None:
        """Delete a newsletter."""
        async with self.get_session() as session:
            await session.execute(delete(Newsletter).where(Newsletter.id == newsletter_id))
            await session.commit()

    # Generation lifecycle
    @handle_storage_errors("begin_generation")
    async def begin_generation(self, newsletter_id: str, generation_id: str) -> bool:
        """Enter ``generating`` from any other status, clearing the error."""
        return await self._conditional_update(
            Newsletter,
            Newsletter.id == newsletter_id,
            Newsletter.status != GENERATING,
            status=GENERATING,
            error_message=None,
            generation_id=generation_id,
        )

    @handle_storage_errors("complete_generation")
    async def complete_generation(
        self,
        newsletter_id: str,
        html_content: str,
        text_content: str,
        generation_id: Optional[str] = None,
    ) -> bool:
        """Commit content only while the newsletter is still generating.

        With ``generation_id`` the commit also requires that no newer
        attempt has started since.
        """
        criteria = [Newsletter.id == newsletter_id, Newsletter.status == GENERATING]
        if generation_id is not None:
            criteria.append(Newsletter.generation_id == generation_id)
        return await self._conditional_update(
            Newsletter,
            *criteria,
            status=NewsletterStatus.FINAL.value,
            html_content=html_content,
            text_content=text_content,
            error_message=None,
        )

    @handle_storage_errors("fail_generation")
    async def fail_generation(
        self,
        newsletter_id: str,
        error_message: str,
        generation_id: Optional[str] = None,
    ) -> bool:
        """Record a failure only while the newsletter is still generating."""
        criteria = [Newsletter.id == newsletter_id, Newsletter.status == GENERATING]
        if generation_id is not None:
            criteria.append(Newsletter.generation_id == generation_id)
        return await self._conditional_update(
            Newsletter,
            *criteria,
            status=NewsletterStatus.ERROR.value,
            error_message=error_message,
        )

    @handle_storage_errors("cancel_generation")
    async def cancel_generation(self, newsletter_id: str) -> bool:
        """Move a generating newsletter back to draft with the cancellation note."""
        return await self._conditional_update(
            Newsletter,
            Newsletter.id == newsletter_id,
            Newsletter.status == GENERATING,
            status=NewsletterStatus.DRAFT.value,
            error_message=CANCELLATION_MESSAGE,
        )

    # Spreadsheet operations
    @handle_storage_errors("create_spreadsheet")
    async def create_spreadsheet(
        self,
        project_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> Spreadsheet:
        """Create an empty spreadsheet."""
        return await self._add(Spreadsheet(project_id=project_id, name=name, description=description))

    @handle_storage_errors("get_spreadsheet")
    async def get_spreadsheet(self, spreadsheet_id: str) -> Optional[Spreadsheet]:
        """Get spreadsheet by ID."""
        async with self.get_session() as session:
            return await session.get(Spreadsheet, spreadsheet_id)

    @handle_storage_errors("list_spreadsheets")
    async def list_spreadsheets(self, project_id: str) -> List[Spreadsheet]:
        """List a project's spreadsheets in creation order."""
        async with self.get_session() as session:
            result = await session.execute(
                select(Spreadsheet)
                .where(Spreadsheet.project_id == project_id)
                .order_by(Spreadsheet.created_at, Spreadsheet.name)
            )
            return list(result.scalars().all())

    @handle_storage_errors("get_columns")
    async def get_columns(self, spreadsheet_id: str) -> List[SpreadsheetColumn]:
        """Columns of a spreadsheet ordered by column_order."""
        async with self.get_session() as session:
            result = await session.execute(
                select(SpreadsheetColumn)
                .where(SpreadsheetColumn.spreadsheet_id == spreadsheet_id)
                .order_by(SpreadsheetColumn.column_order)
            )
            return list(result.scalars().all())

    @handle_storage_errors("get_rows")
    async def get_rows(self, spreadsheet_id: str) -> List[SpreadsheetRow]:
        """Rows of a spreadsheet ordered by row_order."""
        async with self.get_session() as session:
            result = await session.execute(
                select(SpreadsheetRow)
                .where(SpreadsheetRow.spreadsheet_id == spreadsheet_id)
                .order_by(SpreadsheetRow.row_order)
            )
            return list(result.scalars().all())

    @handle_storage_errors("replace_spreadsheet_data")
    async def replace_spreadsheet_data(
        self,
        spreadsheet_id: str,
        columns: List[Dict[str, Any]],
        rows: List[Dict[str, Any]],
    ) -> None:
        """Swap a spreadsheet's columns and rows in one transaction.

        ``columns`` items carry ``name``, ``column_type`` and ``column_order``;
        ``rows`` items carry ``data`` and ``row_order``.
        """
        async with self.get_session() as session:
            await session.execute(
                delete(SpreadsheetRow).where(SpreadsheetRow.spreadsheet_id == spreadsheet_id)
            )
            await session.execute(
                delete(SpreadsheetColumn).where(SpreadsheetColumn.spreadsheet_id == spreadsheet_id)
            )
            for column_data in columns:
                session.add(SpreadsheetColumn(spreadsheet_id=spreadsheet_id, **column_data))
            for row_data in rows:
                session.add(SpreadsheetRow(spreadsheet_id=spreadsheet_id, **row_data))
            await session.commit()

    @handle_storage_errors("set_column_type")
    async def set_column_type(self, spreadsheet_id: str, column_id: str, column_type: str) -> bool:
        """Override the type assigned to a column."""
        return await self._conditional_update(
            SpreadsheetColumn,
            SpreadsheetColumn.id == column_id,
            SpreadsheetColumn.spreadsheet_id == spreadsheet_id,
            column_type=column_type,
        )


async def init_database(config: ApplicationConfig) -> Database:
    """Initialize database with configuration."""
    db = Database(config.async_database_url)
    await db.init_tables()
    return db

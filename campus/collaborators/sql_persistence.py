"""
SQL Persistence

SQLAlchemy implementation of the PersistenceGateway. Assessments and
attempts are stored as JSON payloads next to the columns used for lookup;
grades, weights and enrolments are plain rows.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import JSON, Boolean, Column, Float, Integer, MetaData, String, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from campus.assessments.models import Assessment, Attempt, Question
from campus.collaborators.persistence import PersistenceGateway
from campus.common.error_handling import AttemptVersionConflict
from campus.common.logger import app_logger
from campus.config import settings
from campus.gradebook.models import CategoryWeight, GradedItem

logger = app_logger.getChild("collaborators.sql")

# Configure naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class AssessmentRow(Base):
    __tablename__ = "assessments"

    id = Column(String(64), primary_key=True)
    course_id = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False)
    payload = Column(JSON, nullable=False)


class AttemptRow(Base):
    __tablename__ = "attempts"

    id = Column(String(64), primary_key=True)
    assessment_id = Column(String(64), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    course_id = Column(String(64), nullable=False)
    attempt_number = Column(Integer, nullable=False)
    state = Column(String(32), nullable=False)
    version = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)


class GradeRow(Base):
    __tablename__ = "grades"

    item_id = Column(String(64), primary_key=True)
    student_id = Column(String(64), primary_key=True)
    course_id = Column(String(64), nullable=False, index=True)
    category = Column(String(64), nullable=False)
    points_possible = Column(Float, nullable=False)
    score = Column(Float, nullable=True)
    released = Column(Boolean, nullable=False, default=False)
    title = Column(String(255), nullable=False, default="")

    def to_item(self) -> GradedItem:
        return GradedItem(
            item_id=self.item_id,
            student_id=self.student_id,
            course_id=self.course_id,
            category=self.category,
            points_possible=self.points_possible,
            score=self.score,
            released=self.released,
            title=self.title or "",
        )


class CategoryWeightRow(Base):
    __tablename__ = "category_weights"

    course_id = Column(String(64), primary_key=True)
    category = Column(String(64), primary_key=True)
    weight = Column(Float, nullable=False)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    course_id = Column(String(64), primary_key=True)
    user_id = Column(String(64), primary_key=True)
    role = Column(String(16), nullable=False)


class SqlPersistence(PersistenceGateway):
    """
    PersistenceGateway backed by an async SQLAlchemy engine.

    Args:
        database_url: Async database URL; defaults to settings.DATABASE_URL
        echo: Log SQL statements; defaults to settings.SQL_ECHO
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.engine = create_async_engine(
            self.database_url,
            **self._engine_kwargs(settings.SQL_ECHO if echo is None else echo)
        )
        self.session_factory = sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def _engine_kwargs(self, echo: bool) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"echo": echo}
        if self.database_url.startswith("postgresql"):
            kwargs.update({"pool_pre_ping": True, "pool_recycle": 300})
        return kwargs

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created")

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on error."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()

    async def enroll(self, course_id: str, user_id: str, role: str = "student") -> None:
        async with self.session() as session:
            await session.merge(EnrollmentRow(course_id=course_id, user_id=user_id, role=role))

    async def load_assessment(self, assessment_id: str) -> Optional[Assessment]:
        async with self.session() as session:
            row = await session.get(AssessmentRow, assessment_id)
            return Assessment.from_dict(row.payload) if row else None

    async def save_assessment(self, assessment: Assessment) -> Assessment:
        async with self.session() as session:
            await session.merge(AssessmentRow(
                id=assessment.id,
                course_id=assessment.course_id,
                status=assessment.status.value,
                payload=assessment.to_dict(),
            ))
        return assessment

    async def load_question_bank(self, assessment_id: str) -> List[Question]:
        assessment = await self.load_assessment(assessment_id)
        return assessment.questions if assessment else []

    async def load_attempt(self, attempt_id: str) -> Optional[Attempt]:
        async with self.session() as session:
            row = await session.get(AttemptRow, attempt_id)
            return Attempt.from_dict(row.payload) if row else None

    async def load_attempts(self, assessment_id: str, student_id: str) -> List[Attempt]:
        async with self.session() as session:
            result = await session.execute(
                select(AttemptRow)
                .where(AttemptRow.assessment_id == assessment_id, AttemptRow.student_id == student_id)
                .order_by(AttemptRow.attempt_number)
            )
            return [Attempt.from_dict(row.payload) for row in result.scalars()]

    async def save_attempt(self, attempt: Attempt, expected_version: Optional[int] = None) -> Attempt:
        async with self.session() as session:
            await self._write_attempt(session, attempt, expected_version)
        return attempt

    async def commit_attempt(
        self,
        attempt: Attempt,
        expected_version: int,
        grade: Optional[GradedItem] = None
    ) -> Attempt:
        # One transaction: the grade row never outlives a rejected attempt write.
        async with self.session() as session:
            await self._write_attempt(session, attempt, expected_version)
            if grade is not None:
                await session.merge(self._grade_row(grade))
        return attempt

    async def _write_attempt(
        self,
        session: AsyncSession,
        attempt: Attempt,
        expected_version: Optional[int]
    ) -> None:
        values = {
            "assessment_id": attempt.assessment_id,
            "student_id": attempt.student_id,
            "course_id": attempt.course_id,
            "attempt_number": attempt.attempt_number,
            "state": attempt.state.value,
            "version": attempt.version,
            "payload": attempt.to_dict(),
        }
        if expected_version is None:
            await session.merge(AttemptRow(id=attempt.id, **values))
            return

        if expected_version == 0:
            existing = await session.get(AttemptRow, attempt.id)
            if existing is not None:
                raise AttemptVersionConflict(attempt.id, expected_version, existing.version)
            session.add(AttemptRow(id=attempt.id, **values))
            try:
                await session.flush()
            except IntegrityError as e:
                raise AttemptVersionConflict(attempt.id, expected_version, None) from e
            return

        result = await session.execute(
            update(AttemptRow)
            .where(AttemptRow.id == attempt.id, AttemptRow.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            stored = await session.scalar(select(AttemptRow.version).where(AttemptRow.id == attempt.id))
            raise AttemptVersionConflict(attempt.id, expected_version, stored)

    def _grade_row(self, item: GradedItem) -> GradeRow:
        return GradeRow(
            item_id=item.item_id,
            student_id=item.student_id,
            course_id=item.course_id,
            category=item.category,
            points_possible=item.points_possible,
            score=item.score,
            released=item.released,
            title=item.title,
        )

    async def save_grade(self, item: GradedItem) -> GradedItem:
        async with self.session() as session:
            await session.merge(self._grade_row(item))
        return item

    async def load_grade(self, item_id: str, student_id: str) -> Optional[GradedItem]:
        async with self.session() as session:
            row = await session.get(GradeRow, (item_id, student_id))
            return row.to_item() if row else None

    async def delete_grade(self, item_id: str, student_id: str) -> None:
        async with self.session() as session:
            await session.execute(
                delete(GradeRow).where(GradeRow.item_id == item_id, GradeRow.student_id == student_id)
            )

    async def load_graded_items(self, student_id: str, course_id: str) -> List[GradedItem]:
        async with self.session() as session:
            result = await session.execute(
                select(GradeRow).where(GradeRow.student_id == student_id, GradeRow.course_id == course_id)
            )
            return [row.to_item() for row in result.scalars()]

    async def load_course_items(self, course_id: str) -> List[GradedItem]:
        async with self.session() as session:
            result = await session.execute(select(GradeRow).where(GradeRow.course_id == course_id))
            return [row.to_item() for row in result.scalars()]

    async def load_category_weights(self, course_id: str) -> List[CategoryWeight]:
        async with self.session() as session:
            result = await session.execute(
                select(CategoryWeightRow).where(CategoryWeightRow.course_id == course_id)
            )
            return [
                CategoryWeight(course_id=row.course_id, category=row.category, weight=row.weight)
                for row in result.scalars()
            ]

    async def save_category_weights(self, course_id: str, weights: List[CategoryWeight]) -> None:
        async with self.session() as session:
            await session.execute(delete(CategoryWeightRow).where(CategoryWeightRow.course_id == course_id))
            session.add_all([
                CategoryWeightRow(course_id=course_id, category=w.category, weight=w.weight)
                for w in weights
            ])

    async def load_enrolled_user_ids(self, course_id: str, role: Optional[str] = None) -> List[str]:
        async with self.session() as session:
            query = select(EnrollmentRow.user_id).where(EnrollmentRow.course_id == course_id)
            if role is not None:
                query = query.where(EnrollmentRow.role == role)
            result = await session.execute(query)
            return list(result.scalars())

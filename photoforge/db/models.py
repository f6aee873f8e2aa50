"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    ARRAY,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from photoforge.models.api import (
    DEMO_MODEL_REF,
    GenerationStatus,
    ModelStatus,
    PaymentActor,
    PaymentStatus,
    SubjectClass,
    TransactionType,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _enum_column(enum_cls: type, name: str, length: int = 20) -> SQLEnum:
    """String-backed enum column storing the enum values."""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=length,
        values_callable=lambda x: [e.value for e in x],
    )


class User(Base):
    """
    ORM model for users table.

    Identity comes from Google; ``credits`` is the crystal balance and is only
    mutated through the credit ledger.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Identity fields
    google_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    picture_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Balance
    credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=10)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
        Index("idx_users_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<User(id={self.id}, email={self.email}, credits={self.credits})>"


class Generation(Base):
    """
    ORM model for generations table.

    One row per produced image. A submission pre-creates a single placeholder
    row; the provider callback completes it and inserts one row per extra image.
    """

    __tablename__ = "generations"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    original_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)

    # Provider correlation id returned at dispatch time
    provider_prompt_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[GenerationStatus] = mapped_column(
        _enum_column(GenerationStatus, "generation_status"),
        nullable=False,
        default=GenerationStatus.PROCESSING,
    )
    aspect_ratio: Mapped[str] = mapped_column(String(10), nullable=False, default="2:3")
    model_ref: Mapped[str] = mapped_column(String(64), nullable=False, default=DEMO_MODEL_REF)
    model_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Demo")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_generations_user_created", "user_id", "created_at"),
        Index(
            "idx_generations_provider_prompt_id",
            "provider_prompt_id",
            postgresql_where=(provider_prompt_id.isnot(None)),
        ),
        Index("idx_generations_status", "status"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Generation(id={self.id}, user_id={self.user_id}, status={self.status})>"


class TrainedModel(Base):
    """
    ORM model for trained_models table.

    A user's fine-tuned model. Usable for generation only once ``ready`` and
    carrying a provider tune id.
    """

    __tablename__ = "trained_models"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_class: Mapped[SubjectClass] = mapped_column(
        _enum_column(SubjectClass, "subject_class", length=10),
        nullable=False,
        default=SubjectClass.PERSON,
    )
    training_images: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=list)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ModelStatus] = mapped_column(
        _enum_column(ModelStatus, "model_status"),
        nullable=False,
        default=ModelStatus.PROCESSING,
    )
    provider_tune_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_trained_models_user_created", "user_id", "created_at"),)

    @property
    def is_usable(self) -> bool:
        """Ready and addressable at the provider."""
        return self.status == ModelStatus.READY and bool(self.provider_tune_id)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<TrainedModel(id={self.id}, name={self.name}, status={self.status})>"


class PaymentRequest(Base):
    """
    ORM model for payment_requests table.

    Manual Kaspi transfer approved by an administrator. Credits are granted
    only on the paid -> confirmed transition.
    """

    __tablename__ = "payment_requests"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    crystals: Mapped[int] = mapped_column(Integer, nullable=False)
    payer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    payer_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    paid_marked_by: Mapped[PaymentActor | None] = mapped_column(
        _enum_column(PaymentActor, "payment_actor", length=10),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("crystals > 0", name="ck_payment_crystals_positive"),
        Index("idx_payment_requests_status_created", "status", "created_at"),
        Index("idx_payment_requests_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<PaymentRequest(id={self.id}, user_id={self.user_id}, "
            f"crystals={self.crystals}, status={self.status})>"
        )


class CreditTransaction(Base):
    """
    ORM model for credit_transactions table.

    Append-only log of every balance mutation with before/after snapshots.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        _enum_column(TransactionType, "transaction_type", length=20),
        nullable=False,
    )
    delta: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)

    # Generation / TrainedModel / PaymentRequest id that caused the mutation
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_credit_tx_delta_non_zero"),
        CheckConstraint(
            "balance_after = balance_before + delta",
            name="ck_credit_tx_balance_consistency",
        ),
        CheckConstraint("balance_after >= 0", name="ck_credit_tx_balance_non_negative"),
        Index("idx_credit_transactions_user_created", "user_id", "created_at"),
        Index(
            "idx_credit_transactions_reference_id",
            "reference_id",
            postgresql_where=(reference_id.isnot(None)),
        ),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<CreditTransaction(id={self.id}, user_id={self.user_id}, "
            f"type={self.transaction_type}, delta={self.delta})>"
        )


class AppSetting(Base):
    """
    ORM model for app_settings table.

    Runtime switches shared by every API instance.
    """

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<AppSetting(key={self.key}, value={self.value})>"

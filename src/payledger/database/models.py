"""SQLAlchemy models for payledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Numeric,
    Boolean,
    Table,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


transaction_tags = Table(
    "transaction_tags",
    Base.metadata,
    Column("transaction_id", Integer, ForeignKey("transactions.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id"), primary_key=True),
)


class Account(Base):
    """Ledger account model. The primary key is the full account path."""

    __tablename__ = "accounts"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    parent_id = Column(String, ForeignKey("accounts.id"), nullable=True)
    currency = Column(String, nullable=False, default="CNY")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Account", remote_side=[id], backref="children")
    postings = relationship("Posting", back_populates="account")


class ImportSource(Base):
    """Payment provider that records are imported from."""

    __tablename__ = "import_sources"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    rules = relationship("ImportRule", back_populates="source")


class ImportRule(Base):
    """Classification rule model."""

    __tablename__ = "import_rules"

    id = Column(Integer, primary_key=True)
    source_id = Column(String, ForeignKey("import_sources.id"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)
    type_pattern = Column(String, nullable=True)
    category_pattern = Column(String, nullable=True)
    peer_pattern = Column(String, nullable=True)
    desc_pattern = Column(String, nullable=True)
    status_pattern = Column(String, nullable=True)
    method_pattern = Column(String, nullable=True)
    amount_min = Column(Numeric(18, 2), nullable=True)
    amount_max = Column(Numeric(18, 2), nullable=True)
    time_pattern = Column(String, nullable=True)
    target_account = Column(String, ForeignKey("accounts.id"), nullable=True)
    method_account = Column(String, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (UniqueConstraint("source_id", "name", name="uq_rule_source_name"),)

    source = relationship("ImportSource", back_populates="rules")


class RawTransaction(Base):
    """Verbatim import payload, deduplicated on source + identifier."""

    __tablename__ = "raw_transactions"

    id = Column(Integer, primary_key=True)
    source = Column(String, nullable=False)
    identifier = Column(String, nullable=False)
    raw_data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)

    # The dedup key; concurrent importers rely on this constraint alone
    __table_args__ = (UniqueConstraint("source", "identifier", name="uq_raw_source_identifier"),)

    transaction = relationship("Transaction", back_populates="raw_records")


class Transaction(Base):
    """Double-entry transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    date = Column(DateTime, nullable=False)
    payee = Column(String, nullable=True)
    narration = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    postings = relationship("Posting", back_populates="transaction", order_by="Posting.id")
    raw_records = relationship("RawTransaction", back_populates="transaction", order_by="RawTransaction.id")
    tags = relationship("Tag", secondary=transaction_tags, back_populates="transactions", order_by="Tag.name")


class Posting(Base):
    """One signed leg of a transaction."""

    __tablename__ = "postings"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String, nullable=False, default="CNY")

    transaction = relationship("Transaction", back_populates="postings")
    account = relationship("Account", back_populates="postings")


class Tag(Base):
    """Free-form transaction label."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    transactions = relationship("Transaction", secondary=transaction_tags, back_populates="tags")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)

from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Date, Text, Numeric,
    Enum, ForeignKey, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, enum_values, GrantStatus, CategoryType, KeywordSource, LocationType


class Grant(Base):
    """
    Canonical grant record, one row per (source_id, source_native_id).

    Design:
    - The natural key pair is the only stable identity across sources
    - The surrogate id is assigned on first insert and never changes
    - Upsert by natural key is the only mutation path (see PostgresStore)
    - raw_data keeps the untouched upstream payload for debugging/reprocessing
    """
    __tablename__ = "grants"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    # Natural key
    source_id = Column(String(100), nullable=False, index=True)
    source_native_id = Column(String(255), nullable=False)

    # Core fields
    title = Column(Text, nullable=False)
    status = Column(
        Enum(GrantStatus, name="grant_status", values_callable=enum_values),
        default=GrantStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Funding organization
    funding_organization_name = Column(String(500), nullable=True)
    funding_organization_code = Column(String(100), nullable=True)

    # Money
    currency = Column(String(3), nullable=False, default="USD")
    funding_amount_min = Column(Numeric(18, 2), nullable=True)
    funding_amount_max = Column(Numeric(18, 2), nullable=True)
    total_funding_available = Column(Numeric(18, 2), nullable=True)
    expected_awards_count = Column(Integer, nullable=True)

    source_url = Column(String(2048), nullable=True)

    # Dates
    posted_date = Column(Date, nullable=True)
    application_deadline = Column(Date, nullable=True, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    last_updated_date = Column(Date, nullable=True)

    # Classification
    grant_type = Column(String(100), nullable=True)
    funding_instrument = Column(String(100), nullable=True)
    activity_code = Column(String(20), nullable=True, index=True)

    raw_data = Column(JSONB, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    details = relationship("GrantDetails", back_populates="grant", uselist=False, cascade="all, delete-orphan")
    categories = relationship("GrantCategory", back_populates="grant", cascade="all, delete-orphan")
    keywords = relationship("GrantKeyword", back_populates="grant", cascade="all, delete-orphan")
    eligibility = relationship("GrantEligibility", back_populates="grant", cascade="all, delete-orphan")
    locations = relationship("GrantLocation", back_populates="grant", cascade="all, delete-orphan")
    contacts = relationship("GrantContact", back_populates="grant", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        # Natural key: resolves racing inserts (the loser becomes an update)
        Index("idx_grant_natural_key", "source_id", "source_native_id", unique=True),
        Index("idx_grant_source_status", "source_id", "status"),
    )

    def __repr__(self):
        return f"<Grant(id={self.id}, source={self.source_id}, native_id={self.source_native_id})>"


# ============================================================================
# SUB-ENTITIES (owned by one Grant, replaced on every re-sync)
# ============================================================================

class GrantDetails(Base):
    """Long-form text for a grant. One row per grant."""
    __tablename__ = "grant_details"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, unique=True)

    description = Column(Text, nullable=True)
    abstract = Column(Text, nullable=True)
    purpose = Column(Text, nullable=True)
    additional_information = Column(Text, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    grant = relationship("Grant", back_populates="details")


class GrantCategory(Base):
    __tablename__ = "grant_categories"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    category_type = Column(
        Enum(CategoryType, name="category_type", values_callable=enum_values),
        nullable=False,
    )
    category_code = Column(String(100), nullable=True)
    category_name = Column(String(500), nullable=False)

    grant = relationship("Grant", back_populates="categories")


class GrantKeyword(Base):
    __tablename__ = "grant_keywords"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    keyword = Column(String(255), nullable=False, index=True)
    keyword_source = Column(
        Enum(KeywordSource, name="keyword_source", values_callable=enum_values),
        nullable=False,
    )

    grant = relationship("Grant", back_populates="keywords")


class GrantEligibility(Base):
    __tablename__ = "grant_eligibility"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    eligibility_type = Column(String(100), nullable=False)
    eligibility_value = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)

    grant = relationship("Grant", back_populates="eligibility")


class GrantLocation(Base):
    __tablename__ = "grant_locations"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    location_type = Column(
        Enum(LocationType, name="location_type", values_callable=enum_values),
        nullable=False,
    )
    country_code = Column(String(3), nullable=True)
    region = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)

    grant = relationship("Grant", back_populates="locations")


class GrantContact(Base):
    __tablename__ = "grant_contacts"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    grant_id = Column(BigInteger, ForeignKey("grants.id", ondelete="CASCADE"), nullable=False, index=True)

    contact_type = Column(String(50), nullable=False, default="general")
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    title = Column(String(255), nullable=True)

    grant = relationship("Grant", back_populates="contacts")

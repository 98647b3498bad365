import uuid

from sqlalchemy import Boolean, Column, String, Integer, DateTime, Enum, JSON, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import func

from policy_review.enums import AgreementStatus, AgreementType


class Base(DeclarativeBase):
    pass


class PolicyRule(Base):
    __tablename__ = "policy_rules"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    description = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


class Agreement(Base):
    __tablename__ = "agreements"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type = Column(Enum(AgreementType), nullable=False)
    counterparty = Column(String, nullable=False)
    status = Column(Enum(AgreementStatus), nullable=False)
    review_data = Column(JSON(none_as_null=True), nullable=True)
    review_generation = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    versions = relationship("AgreementVersion", back_populates="agreement", cascade="all, delete", order_by="AgreementVersion.version_number")


class AgreementVersion(Base):
    __tablename__ = "agreement_versions"
    __table_args__ = (UniqueConstraint("agreement_id", "version_number"),)
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agreement_id = Column(Uuid(as_uuid=True), ForeignKey(column="agreements.id", ondelete="CASCADE"), nullable=False)
    version_number = Column(Integer, nullable=False)
    content = Column(String, nullable=False)
    change_note = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    agreement = relationship("Agreement", back_populates="versions")

from sqlalchemy import Column, String, Integer, LargeBinary, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from cipherdocs.core.db import Base


class DocumentModel(Base):
    __tablename__ = "documents"

    # id выдает реестр, а не база данных
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    owner = Column(String(255), nullable=False, index=True)
    encrypted_key = Column(LargeBinary, nullable=False)
    encrypted_body = Column(LargeBinary, nullable=False, default=b"")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    access_entries = relationship(
        "AccessEntryModel",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="AccessEntryModel.position",
    )


class AccessEntryModel(Base):
    __tablename__ = "document_access"
    __table_args__ = (
        UniqueConstraint("document_id", "principal", name="uq_document_access_principal"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False, index=True)
    principal = Column(String(255), nullable=False, index=True)
    # порядок выдачи прав внутри документа
    position = Column(Integer, nullable=False)

    # Relationships
    document = relationship("DocumentModel", back_populates="access_entries")

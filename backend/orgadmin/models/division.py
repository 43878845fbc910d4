"""
division.py — Table Model for Divisions

A functional unit of a company, either directly under the company
(branch_code NULL) or nested under one of the same company's branches.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Unicode, func

from orgadmin.models.base import Base


class Division(Base):
    __tablename__ = "Divisions"

    division_code = Column(Unicode(20), primary_key=True)
    division_name = Column(Unicode(200), nullable=False)
    company_code = Column(Unicode(20), ForeignKey("Companies.company_code"), nullable=False)
    branch_code = Column(Unicode(20), ForeignKey("Branches.branch_code"), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    created_by = Column(Unicode(50), nullable=True)
    updated_date = Column(DateTime, nullable=True)
    updated_by = Column(Unicode(50), nullable=True)

    __table_args__ = (
        Index("idx_divisions_company", "company_code"),
        Index("idx_divisions_branch", "branch_code"),
    )

    def __repr__(self):
        return f"<Division {self.division_code} ({self.company_code}/{self.branch_code})>"

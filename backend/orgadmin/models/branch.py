"""
branch.py — Table Model for Branches

A physical/administrative site of a company. At most one branch per company
carries is_headquarters; BranchRepository keeps that true.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Unicode, func

from orgadmin.models.base import Base


class Branch(Base):
    __tablename__ = "Branches"

    branch_code = Column(Unicode(20), primary_key=True)
    branch_name = Column(Unicode(200), nullable=False)
    company_code = Column(Unicode(20), ForeignKey("Companies.company_code"), nullable=False)

    is_headquarters = Column(Boolean, nullable=False, default=False, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    created_by = Column(Unicode(50), nullable=True)
    updated_date = Column(DateTime, nullable=True)
    updated_by = Column(Unicode(50), nullable=True)

    __table_args__ = (
        Index("idx_branches_company", "company_code"),
    )

    def __repr__(self):
        return f"<Branch {self.branch_code} ({self.company_code})>"

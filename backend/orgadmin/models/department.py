"""
department.py — Table Model for Departments

Lowest level of the hierarchy. The owning company is reached through the
division; there is no direct company column.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Unicode, func

from orgadmin.models.base import Base


class Department(Base):
    __tablename__ = "Departments"

    department_code = Column(Unicode(20), primary_key=True)
    department_name = Column(Unicode(200), nullable=False)
    division_code = Column(Unicode(20), ForeignKey("Divisions.division_code"), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    created_by = Column(Unicode(50), nullable=True)
    updated_date = Column(DateTime, nullable=True)
    updated_by = Column(Unicode(50), nullable=True)

    __table_args__ = (
        Index("idx_departments_division", "division_code"),
    )

    def __repr__(self):
        return f"<Department {self.department_code} ({self.division_code})>"

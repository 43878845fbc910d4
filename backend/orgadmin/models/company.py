"""
company.py — Table Model for Companies (Organizations)

Purpose:
- Root of the hierarchy: Company → Branch → Division → Department.
- Keyed by a business code, not a surrogate id.

Important Design Rule:
- Rows are read and written with raw statements through the QueryExecutor;
  this model exists to declare the schema.
- Deleting a company removes its departments, divisions and branches first
  (see CompanyRepository.delete).
"""

from sqlalchemy import Boolean, Column, DateTime, Unicode, func

from orgadmin.models.base import Base


class Company(Base):
    __tablename__ = "Companies"

    company_code = Column(Unicode(20), primary_key=True)

    # Display Metadata
    company_name_th = Column(Unicode(200), nullable=False)
    company_name_en = Column(Unicode(200), nullable=True)
    tax_id = Column(Unicode(20), nullable=True)

    # Contact
    address = Column(Unicode(500), nullable=True)
    phone = Column(Unicode(50), nullable=True)
    email = Column(Unicode(100), nullable=True)
    website = Column(Unicode(200), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    # Audit
    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    created_by = Column(Unicode(50), nullable=True)
    updated_date = Column(DateTime, nullable=True)
    updated_by = Column(Unicode(50), nullable=True)

    def __repr__(self):
        return f"<Company {self.company_code}>"

"""Table models; importing this package registers every table on Base.metadata."""

from orgadmin.models.base import Base
from orgadmin.models.company import Company
from orgadmin.models.branch import Branch
from orgadmin.models.division import Division
from orgadmin.models.department import Department
from orgadmin.models.api_key import ApiKey, ApiLog

__all__ = ["Base", "Company", "Branch", "Division", "Department", "ApiKey", "ApiLog"]

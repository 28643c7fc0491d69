"""Database models — re-exports all models.

Import from here:  from tenderlink.models import Opportunity, Contact, ...
Or from submodules: from tenderlink.models.contacts import Contact
"""

from .base import Base  # noqa: F401

# Opportunities & provenance links
from .opportunities import Opportunity, OpportunityContact  # noqa: F401

# Contacts
from .contacts import Contact  # noqa: F401

# Department mapping rules
from .mappings import DepartmentMapping  # noqa: F401

# Integrations & sync jobs
from .sync import Integration, SyncJob  # noqa: F401

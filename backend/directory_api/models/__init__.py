# Import models here so Base.metadata sees every table.
from directory_api.models.user import User  # noqa: F401

# Tenancy: sites, places, memberships
from directory_api.models.site import Site  # noqa: F401
from directory_api.models.place import Place  # noqa: F401
from directory_api.models.site_membership import SiteMembership  # noqa: F401
from directory_api.models.place_membership import PlaceMembership  # noqa: F401

# Audit trail
from directory_api.models.admin_event_log import AdminEventLog  # noqa: F401

# directory_api/core/roles.py

import enum


class GlobalRole(str, enum.Enum):
    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"  # platform-wide, bypasses every scope check


class SiteRole(str, enum.Enum):
    EDITOR = "editor"
    SITEADMIN = "siteadmin"  # full authority over every place in the site


class PlaceRole(str, enum.Enum):
    EDITOR = "editor"
    MANAGER = "manager"
    OWNER = "owner"

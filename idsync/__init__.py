"""Identity group sync - reconcile external identity-governance groups with local access control.

This package keeps local groups, project roles and organization roles in line with
group membership held by an external identity provider, either through a full
membership diff or through single-user approve/revoke events.
"""

from idsync.version import __version__

__all__ = ["__version__"]

"""
Global Manager transport zone profiles (read-only).

API Endpoints:
    GET /global-manager/api/v1/global-infra/transport-zone-profiles/{id}
    GET /global-manager/api/v1/global-infra/transport-zone-profiles
"""

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from ..errors import NotFoundError, NsxApiError, ResourceError
from ..schema import Field, ResourceData
from .base import DataSource
from .common import revision_field, set_tags_in_schema, tags_field

logger = logging.getLogger(__name__)


class TransportZoneProfile(DataSource):

    type_name = "nsxt_transport_zone_profile"
    label = "PolicyTransportZoneProfile"
    schema = {
        "display_name": Field("string", "Display name of the profile to look up", optional=True, computed=True),
        "description": Field("string", "Description of the profile", computed=True),
        "path": Field("string", "Absolute path of the profile", computed=True),
        "resource_type": Field("string", "Profile resource type", computed=True),
        "revision": revision_field(),
        "tag": tags_field(),
    }

    endpoint = "/global-manager/api/v1/global-infra/transport-zone-profiles"

    def get(self, profile_id: str) -> dict:
        """Fetch one profile. Raises NotFoundError when it does not exist."""
        return self.client.get(f"{self.endpoint}/{profile_id}").json()

    def list(
        self,
        cursor: Optional[str] = None,
        include_mark_for_delete_objects: Optional[bool] = None,
        included_fields: Optional[str] = None,
        page_size: Optional[int] = None,
        sort_ascending: Optional[bool] = None,
        sort_by: Optional[str] = None,
    ) -> dict:
        """
        Fetch one page of profiles.

        Args:
            cursor:                          Opaque cursor from the previous page
            include_mark_for_delete_objects: Include objects marked for deletion
            included_fields:                 Comma separated list of fields to return
            page_size:                       Maximum number of results (server default 1000)
            sort_ascending:                  Sort direction
            sort_by:                         Field by which records are sorted

        Returns:
            The PolicyTransportZoneProfileListResult page (results, cursor, result_count)
        """
        params = {
            "cursor": cursor,
            "include_mark_for_delete_objects": include_mark_for_delete_objects,
            "included_fields": included_fields,
            "page_size": page_size,
            "sort_ascending": sort_ascending,
            "sort_by": sort_by,
        }
        params = {key: _query_value(value) for key, value in params.items() if value is not None}
        return self.client.get(self.endpoint, params).json()

    def list_all(self) -> List[dict]:
        return self.client.get_all_paginated(self.endpoint)

    def read(self, d: ResourceData) -> None:
        try:
            if d.id:
                profile = self.get(d.id)
            else:
                profile = self._find_by_name(d.get("display_name"))
        except NotFoundError as err:
            raise ResourceError(f"{self.label} {d.id} was not found") from err
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise ResourceError(f"Error during {self.label} read: {err}") from err

        d.set_id(profile["id"])
        d.set("display_name", profile.get("display_name", ""))
        d.set("description", profile.get("description", ""))
        d.set("path", profile.get("path", ""))
        d.set("resource_type", profile.get("resource_type", ""))
        d.set("revision", profile.get("_revision", 0))
        set_tags_in_schema(d, profile.get("tags"))

    def _find_by_name(self, display_name: str) -> dict:
        if not display_name:
            raise ResourceError(f"{self.label}: id or display_name must be specified")

        matches = [p for p in self.list_all() if p.get("display_name") == display_name]
        if not matches:
            raise ResourceError(f"{self.label} with name '{display_name}' was not found")
        if len(matches) > 1:
            raise ResourceError(
                f"Found {len(matches)} {self.label} objects with name '{display_name}'"
            )
        logger.debug("Resolved %s '%s' to %s", self.label, display_name, matches[0]["id"])
        return matches[0]


def _query_value(value):
    # NSX expects lowercase booleans in query strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return value

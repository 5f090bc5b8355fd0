"""
Base class for resource handlers.

Every handler has the same shape:

    create: gather fields -> add call -> check status -> store id -> read
    read:   get by id; 404 clears the local id instead of failing
    update: resubmit the full record with _revision; 404 is an error -> read
    delete: delete by id; 404 clears the local id instead of failing

Subclasses implement the four operations with the helpers below; the helpers
keep the error messages uniform across resource types.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..client import NsxClient
from ..errors import NotFoundError, NsxApiError, ResourceError
from ..schema import Field, ResourceData

logger = logging.getLogger(__name__)


class Resource:
    """A read/write NSX object type."""

    #: Name used in resource documents, e.g. "nsxt_nat_rule"
    type_name = ""
    #: NSX object name used in messages, e.g. "NatRule"
    label = ""
    #: Status code expected from the add call
    create_status = 201
    schema: Dict[str, Field] = {}

    def __init__(self, client: NsxClient):
        self.client = client

    def new_data(self, config: Optional[Dict[str, Any]] = None, resource_id: str = "") -> ResourceData:
        return ResourceData(self.schema, config, resource_id)

    # -------------------------------------------------------------------------
    # CRUD operations (implemented by subclasses)
    # -------------------------------------------------------------------------

    def create(self, d: ResourceData) -> None:
        raise NotImplementedError

    def read(self, d: ResourceData) -> None:
        raise NotImplementedError

    def update(self, d: ResourceData) -> None:
        raise NotImplementedError

    def delete(self, d: ResourceData) -> None:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def require_id(self, d: ResourceData) -> str:
        if not d.id:
            raise ResourceError("Error obtaining logical object id")
        return d.id

    def fail(self, operation: str, err: Exception, resource_id: str = "") -> ResourceError:
        where = f"{self.label} {resource_id}" if resource_id else self.label
        return ResourceError(f"Error during {where} {operation}: {err}")

    def call_create(self, method: str, endpoint: str, body: dict, params: Optional[dict] = None) -> dict:
        """Send the add call; anything but create_status is fatal."""
        try:
            response = self.client.request(method, endpoint, params=params, body=body)
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise self.fail("create", err) from err

        if response.status_code != self.create_status:
            raise ResourceError(
                f"Unexpected status returned during {self.label} create: {response.status_code}"
            )
        # Policy API PATCH calls answer with an empty body
        return response.json() if response.content else {}

    def call_read(self, d: ResourceData, endpoint: str, method: str = "GET",
                  params: Optional[dict] = None) -> Optional[dict]:
        """
        Fetch the object; on 404 clear the id and return None.

        Callers must return immediately when None comes back.
        """
        resource_id = d.id
        try:
            return self.client.request(method, endpoint, params=params).json()
        except NotFoundError:
            logger.debug("%s %s not found", self.label, resource_id)
            d.set_id("")
            return None
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise self.fail("read", err, resource_id) from err

    def call_update(self, d: ResourceData, method: str, endpoint: str, body: dict,
                    params: Optional[dict] = None) -> dict:
        """Send the update call. Unlike read, a 404 here is an error."""
        try:
            response = self.client.request(method, endpoint, params=params, body=body)
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise self.fail("update", err, d.id) from err
        return response.json() if response.content else {}

    def call_delete(self, d: ResourceData, endpoint: str, params: Optional[dict] = None) -> None:
        """Delete the object; a 404 means it is already gone."""
        resource_id = d.id
        try:
            self.client.delete(endpoint, params=params)
        except NotFoundError:
            logger.debug("%s %s not found", self.label, resource_id)
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise self.fail("delete", err, resource_id) from err
        d.set_id("")


class DataSource:
    """A read-only NSX object type, looked up by id or display name."""

    type_name = ""
    label = ""
    schema: Dict[str, Field] = {}

    def __init__(self, client: NsxClient):
        self.client = client

    def new_data(self, config: Optional[Dict[str, Any]] = None, resource_id: str = "") -> ResourceData:
        return ResourceData(self.schema, config, resource_id)

    def read(self, d: ResourceData) -> None:
        raise NotImplementedError

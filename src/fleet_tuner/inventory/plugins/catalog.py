"""
Catalog inventory plugin.

This is a minimal http client approach with no third party deps.

Design
Fact and catalog services vary. This plugin expects an endpoint that
returns a compatible JSON payload with the same schema as the static plugin,
typically nodes with resources plus discovered memberships.

That keeps normalization identical while still letting the tuner run against
a live fleet.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.error import URLError
from urllib.request import Request, urlopen

from fleet_tuner.core.errors import InventoryError
from fleet_tuner.inventory.plugins.base import InventoryLoadResult, InventoryPlugin
from fleet_tuner.inventory.plugins.static import parse_inventory


class HttpClient(Protocol):
    """Simple http client interface for testability."""

    def get_json(self, url: str, headers: dict[str, str]) -> Any:
        """Return parsed json for the given url."""


@dataclass
class UrllibHttpClient(HttpClient):
    """Default http client using urllib."""

    timeout_seconds: int = 10

    def get_json(self, url: str, headers: dict[str, str]) -> Any:
        req = Request(url, headers=headers, method="GET")
        with urlopen(req, timeout=self.timeout_seconds) as resp:
            body = resp.read().decode("utf-8")
        return json.loads(body)


@dataclass(frozen=True)
class CatalogInventoryPlugin(InventoryPlugin):
    """
    Load inventory from a catalog endpoint.

    inventory_url should return the schema used by StaticInventoryPlugin.
    token is optional. If provided, it is sent as an Authorization header.
    """

    inventory_url: str
    token: str | None = None
    http: HttpClient = field(default_factory=UrllibHttpClient)

    def load(self) -> InventoryLoadResult:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"

        try:
            data = self.http.get_json(self.inventory_url, headers=headers)
        except (URLError, OSError, ValueError) as exc:
            raise InventoryError(f"unable to query {self.inventory_url}: {exc}") from exc

        return parse_inventory(data, self.inventory_url)

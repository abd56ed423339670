# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import threading
from typing import Dict, Optional
import requests
from rich.console import Console
from .audit import AuditLogger
from .config import settings
from .models import Catalog, Icd11Module, TerminologyCode
from .store import TerminologyStore

console = Console(stderr=True)


class AccessTokenManager:
    """
    Holds the WHO ICD API bearer token.

    The token goes through initialize -> refresh (periodically) -> invalidate
    (when a request fails). Readers always see either a complete token or None.
    """

    def __init__(self, token_url: str, client_id: str, client_secret: str,
                 scope: str = "icdapi_access", timeout: int = 30):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.timeout = timeout
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _request_token(self) -> str:
        response = requests.post(
            self.token_url,
            data={"grant_type": "client_credentials", "scope": self.scope},
            auth=(self.client_id, self.client_secret),
            headers={"API-Version": "v2"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise ValueError("Token endpoint response did not contain an access_token.")
        return token

    def initialize(self) -> Optional[str]:
        if not self.configured:
            console.log("[yellow]ICD-11 API credentials are not configured. Token not requested.[/yellow]")
            return None
        return self.refresh()

    def refresh(self) -> Optional[str]:
        """Requests a new token. On failure the current token is invalidated and None is returned."""
        try:
            token = self._request_token()
        except (requests.RequestException, ValueError) as e:
            console.log(f"[bold red]Failed to obtain ICD-11 access token: {e}[/bold red]")
            self.invalidate()
            return None
        with self._lock:
            self._token = token
        console.log("[green]ICD-11 access token refreshed.[/green]")
        return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None


class Icd11Synchronizer:
    """
    Pulls the TM2 and Biomedicine hierarchies from the WHO ICD API into the
    terminology store. A failing endpoint or node is logged and skipped.
    """

    def __init__(self, store: TerminologyStore, token_manager: AccessTokenManager,
                 endpoints: Optional[Dict[Icd11Module, str]] = None,
                 audit: Optional[AuditLogger] = None, timeout: int = 30):
        self.store = store
        self.token_manager = token_manager
        self.endpoints = endpoints or {
            Icd11Module.TM2: settings.icd11_tm2_url,
            Icd11Module.BIOMEDICINE: settings.icd11_biomedicine_url,
        }
        self.audit = audit or AuditLogger()
        self.timeout = timeout

    @staticmethod
    def extract_code(entity_uri: str) -> str:
        """The code is the last path segment of an entity URI."""
        return entity_uri.rstrip("/").rsplit("/", 1)[-1]

    def _headers(self) -> Dict[str, str]:
        token = self.token_manager.token or self.token_manager.refresh()
        if not token:
            raise RuntimeError("No ICD-11 access token available.")
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Accept-Language": "en",
            "API-Version": "v2",
        }

    def _get(self, url: str) -> dict:
        response = requests.get(url, headers=self._headers(), timeout=self.timeout)
        if response.status_code == 401:
            self.token_manager.invalidate()
        response.raise_for_status()
        return response.json()

    def sync(self) -> Dict[str, int]:
        """Synchronizes every endpoint and returns the number of codes stored per module."""
        console.log("Starting ICD-11 data synchronization...")
        results = {}
        for module, url in self.endpoints.items():
            try:
                results[module.value] = self.sync_endpoint(url, module)
            except Exception as e:
                console.log(f"[bold red]Failed to sync ICD-11 {module.value} from {url}: {e}[/bold red]")
                self.audit.data_sync(f"ICD11_{module.value}", "FAILED", 0)
                results[module.value] = 0
        console.log(f"[green]ICD-11 synchronization finished: {results}[/green]")
        return results

    def sync_endpoint(self, url: str, module: Icd11Module) -> int:
        console.log(f"Syncing ICD-11 {module.value} from {url}...")
        root = self._get(url)
        count = 0
        for child_uri in root.get("child", []):
            count += self._process_node(child_uri, module, parent=None)
        self.audit.data_sync(f"ICD11_{module.value}", "SUCCESS", count)
        console.log(f"Stored {count} ICD-11 {module.value} codes.")
        return count

    def _process_node(self, entity_uri: str, module: Icd11Module, parent: Optional[str]) -> int:
        try:
            node = self._get(entity_uri)
            code = self._to_code(node, module, parent)
            self.store.save(code)
        except Exception as e:
            console.log(f"[yellow]Skipping ICD-11 entity {entity_uri}: {e}[/yellow]")
            return 0
        count = 1
        for child_uri in node.get("child", []):
            count += self._process_node(child_uri, module, parent=code.code)
        return count

    def _to_code(self, node: dict, module: Icd11Module, parent: Optional[str]) -> TerminologyCode:
        entity_uri = node["@id"]
        definition = node.get("definition") or {}
        return TerminologyCode(
            catalog=Catalog.ICD11,
            code=self.extract_code(entity_uri),
            display=node["title"]["@value"],
            definition=definition.get("@value"),
            tag=module,
            category=node.get("chapter"),
            parent=parent,
            linearization_uri=entity_uri,
            foundation_uri=node.get("foundationReference"),
        )


def build_synchronizer(store: TerminologyStore, audit: Optional[AuditLogger] = None) -> Icd11Synchronizer:
    """
    Entry point function to build a synchronizer from app settings.
    """
    token_manager = AccessTokenManager(
        token_url=settings.icd11_token_url,
        client_id=settings.icd11_client_id,
        client_secret=settings.icd11_client_secret,
        scope=settings.icd11_scope,
        timeout=settings.icd11_request_timeout,
    )
    return Icd11Synchronizer(store, token_manager, audit=audit, timeout=settings.icd11_request_timeout)

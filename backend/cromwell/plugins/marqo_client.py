"""
Marqo search plugin client

Indexes products into a Marqo vector search index and queries it.
Settings are stored by the plugin repository under MARQO_PLUGIN_NAME:
    marqo_url: Base URL of the Marqo server
    secret: Optional bearer token
    index_name: Index holding product documents

Every call is a no-op returning None while marqo_url or index_name are
not configured. HTTP failures and unreadable settings are logged and
behave the same way.
"""
import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel

from cromwell.domain.common import PagedParams
from cromwell.repositories.plugin_repository import PluginRepository
from cromwell.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

MARQO_PLUGIN_NAME = "@cromwell/plugin-marqo"
DOCUMENT_PREFIX = "product_"
TENSOR_FIELDS = ["title", "marqo_data", "attributesText"]
DEFAULT_SEARCH_LIMIT = 20

# Full sync reads the catalog in pages of SYNC_PAGE_SIZE, at most SYNC_MAX_PAGES
SYNC_PAGE_SIZE = 100
SYNC_MAX_PAGES = 99


def _field(product: Union[BaseModel, Dict[str, Any]], key: str) -> Any:
    if isinstance(product, dict):
        return product.get(key)
    return getattr(product, key, None)


def _attribute_values(attribute: Dict[str, Any]) -> str:
    return ", ".join(str(value.get("value")) for value in (attribute.get("values") or []))


def _attributes_text(attributes: List[Dict[str, Any]]) -> str:
    return "; ".join(f"{attr.get('key')}: {_attribute_values(attr)}" for attr in attributes)


def product_document_id(product_id: int) -> str:
    return f"{DOCUMENT_PREFIX}{product_id}"


def map_product(product: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Single-field document: name, marqo_data and attributes in `title`"""
    title = f"{_field(product, 'name') or ''}"

    marqo_data = (_field(product, "custom_meta") or {}).get("marqo_data")
    if marqo_data:
        title += f"; {marqo_data}"

    attributes = _field(product, "attributes") or []
    if attributes:
        title += f"; {_attributes_text(attributes)}"

    return {"_id": product_document_id(_field(product, "id")), "title": title}


def map_product_multi_field(product: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Document with one field per attribute and searchable text fields"""
    attributes = _field(product, "attributes") or []
    document = {
        "_id": product_document_id(_field(product, "id")),
        "title": _field(product, "name") or None,
        "description": _field(product, "description") or None,
        "marqo_data": (_field(product, "custom_meta") or {}).get("marqo_data") or None,
        "attributesText": _attributes_text(attributes) if attributes else None,
    }
    for attribute in attributes:
        document[attribute.get("key")] = _attribute_values(attribute)

    return {key: value for key, value in document.items() if value is not None}


class MarqoClient:
    def __init__(self, plugin_repository: Optional[PluginRepository] = None, timeout: float = 30.0):
        self.plugin_repository = plugin_repository or PluginRepository()
        self.timeout = timeout

    def get_settings(self) -> Dict[str, Any]:
        try:
            return self.plugin_repository.get_plugin_settings(MARQO_PLUGIN_NAME) or {}
        except Exception as e:
            logger.error(f"Marqo-plugin: failed to read settings: {e}")
            return {}

    async def _request(
        self,
        method: str = "GET",
        entity: str = "indexes",
        index: Optional[str] = None,
        path: Optional[str] = None,
        body: Any = None,
    ) -> Optional[Any]:
        settings = self.get_settings()
        marqo_url = settings.get("marqo_url")
        if not marqo_url:
            return None

        parts = [part.strip("/") for part in (entity, index, path) if part]
        url = f"{marqo_url.rstrip('/')}/{'/'.join(parts)}"

        headers = {"Content-Type": "application/json"}
        if settings.get("secret"):
            headers["Authorization"] = f"Bearer {settings['secret']}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method,
                    url,
                    json=body,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Marqo-plugin error: {e}")
            return None

    async def upsert_products(self, products: List[Any]) -> Optional[Any]:
        index_name = self.get_settings().get("index_name")
        if not index_name:
            return None

        documents = [map_product_multi_field(product) for product in products]
        logger.info(f"Marqo upsert documents: {[document['_id'] for document in documents]}")
        return await self._request(
            method="POST",
            index=index_name,
            path="documents",
            body={"documents": documents, "tensorFields": TENSOR_FIELDS},
        )

    async def delete_documents(self, ids: List[str]) -> Optional[Any]:
        index_name = self.get_settings().get("index_name")
        if not index_name:
            return None

        logger.info(f"Marqo delete documents: {ids}")
        return await self._request(method="POST", index=index_name, path="documents/delete-batch", body=ids)

    async def delete_products(self, product_ids: List[int]) -> Optional[Any]:
        return await self.delete_documents([product_document_id(product_id) for product_id in product_ids])

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Search products

        Returns:
            [{"id": product id, "score": relevance}, ...] or None
        """
        index_name = self.get_settings().get("index_name")
        if not index_name:
            return None

        body = {"q": query, "limit": limit or DEFAULT_SEARCH_LIMIT}
        if offset is not None:
            body["offset"] = offset

        result = await self._request(method="POST", index=index_name, path="search", body=body)
        if not result or "hits" not in result:
            logger.error(f"Marqo-plugin: Failed to search products: {result}")
            return None

        hits = []
        for hit in result["hits"]:
            raw_id = str(hit.get("_id", "")).replace(DOCUMENT_PREFIX, "")
            if not raw_id.isdigit():
                continue
            hits.append({"id": int(raw_id), "score": hit.get("_score")})
        return hits

    async def sync_all_products(self, product_repository: Optional[ProductRepository] = None) -> bool:
        """
        Upsert the whole catalog page by page

        Returns:
            True if at least one page was indexed
        """
        if not self.get_settings().get("index_name"):
            return False

        product_repository = product_repository or ProductRepository()
        success = False

        for page_number in range(1, SYNC_MAX_PAGES + 1):
            products = product_repository.get_products(
                PagedParams(page_number=page_number, page_size=SYNC_PAGE_SIZE, order_by="id", order="ASC")
            )
            if not products.elements:
                break

            result = await self.upsert_products(products.elements)
            if not result or not result.get("items"):
                logger.error(f"Marqo-plugin: Failed to create/update {len(products.elements)} products: {result}")
                continue

            statuses: Dict[str, int] = {}
            for item in result["items"]:
                statuses[item.get("result")] = statuses.get(item.get("result"), 0) + 1
            logger.info(f"Marqo-plugin: Sync completed. Results: {statuses}")
            success = True

        return success

    async def delete_index(self, index_name: str) -> Optional[Any]:
        logger.info(f"Marqo-plugin: deleting index {index_name}")
        return await self._request(method="DELETE", index=index_name)

    async def get_indexes(self) -> Optional[List[Dict[str, Any]]]:
        response = await self._request()
        return response.get("results") if response else None

    async def create_index(self, index_name: str) -> Optional[Any]:
        return await self._request(method="POST", index=index_name)

    async def ensure_index(self, index_name: str):
        """Create the index unless it already exists"""
        if not index_name:
            return

        indexes = await self.get_indexes() or []
        if any(index.get("index_name") == index_name for index in indexes):
            return
        await self.create_index(index_name)

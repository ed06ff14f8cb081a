# serviexpress/services/catalog_client.py
import logging
from decimal import Decimal, InvalidOperation

import requests

from serviexpress.core import config
from serviexpress.core.errors import DomainError
from serviexpress.db.models.service import Service, ServiceStatus

logger = logging.getLogger(__name__)


class CatalogUnavailableError(DomainError):
    """The external catalogue could not give us a usable service."""


class ServiceCatalogClient:
    """
    Reads service templates from the external catalogue.
    GET {base_url}/{tipo} must answer a JSON object with nombre, descripcion and precio.
    """

    def __init__(self, base_url: str = None, timeout: float = None, session: requests.Session = None):
        self.base_url = (base_url or config.SERVICES_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.SERVICES_API_TIMEOUT
        self.session = session or requests.Session()

    def fetch(self, tipo: str) -> Service:
        url = f"{self.base_url}/{tipo}"
        try:
            res = self.session.get(url, timeout=self.timeout)
            res.raise_for_status()
            data = res.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Catalogue request %s failed: %s", url, exc)
            raise CatalogUnavailableError(f"No se pudo consultar el catálogo externo para '{tipo}'.")

        if not isinstance(data, dict):
            raise CatalogUnavailableError("Respuesta inesperada del catálogo externo.")

        name = data.get("nombre")
        description = data.get("descripcion")
        price = data.get("precio")
        if not name or not description or price is None:
            raise CatalogUnavailableError("El catálogo externo no devolvió nombre, descripción y precio.")

        try:
            price = Decimal(str(price))
        except InvalidOperation:
            raise CatalogUnavailableError("El precio del catálogo externo no es válido.")
        if not price.is_finite() or price < 0:
            raise CatalogUnavailableError("El precio del catálogo externo no es válido.")

        return Service(
            name=str(name)[:200],
            description=str(description)[:200],
            price=price,
            status=ServiceStatus.DISPONIBLE,
        )


def get_catalog_client() -> ServiceCatalogClient:
    return ServiceCatalogClient()

"""
Adaptateur Pagar.me: centralise l'appel HTTPS de création de commande.
- Auth Basic avec la clé secrète: base64("<secret>:")
- Retourne le JSON de la passerelle tel quel + le statut HTTP
- Ne journalise jamais le token de carte ni le corps de la requête
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from cursoshub.errors import GatewayRejectedError, GatewayTransportError
from cursoshub.payments.order import Order, to_gateway_payload

logger = logging.getLogger(__name__)

GENERIC_GATEWAY_ERROR = "Erreur lors du traitement du paiement"


class GatewayResponse:
    def __init__(self, ok: bool, status_code: int, data: Dict[str, Any]):
        self.ok = ok
        self.status_code = status_code
        self.data = data

    @property
    def status(self) -> str:
        return str((self.data or {}).get("status") or "")


def extract_error_message(data: Any) -> str:
    """
    Message d'erreur le plus précis possible depuis le payload de la passerelle:
    'message', sinon 'errors' sérialisé, sinon message générique.
    """
    if isinstance(data, dict):
        if data.get("message"):
            return str(data["message"])
        if data.get("errors"):
            return json.dumps(data["errors"], ensure_ascii=False)
    return GENERIC_GATEWAY_ERROR


# module cursoshub.payments.gateway
class PagarmeGateway:
    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.pagar.me/core/v5",
        timeout: float = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            auth=httpx.BasicAuth(secret_key, ""),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def create_order(self, order: Order) -> GatewayResponse:
        """
        POST /orders. Lève GatewayTransportError si la passerelle est injoignable
        ou si la réponse n'est pas du JSON.
        """
        payload = to_gateway_payload(order)
        logger.info("pagarme.create_order items=%s amount=%s", len(order.line_items), order.amount)
        try:
            resp = self._client.post("/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error("pagarme.create_order transport error: %s", type(e).__name__)
            raise GatewayTransportError("Passerelle de paiement injoignable") from e
        try:
            data = resp.json() if resp.content else {}
        except ValueError as e:
            logger.error("pagarme.create_order invalid JSON status=%s", resp.status_code)
            raise GatewayTransportError("Réponse invalide de la passerelle de paiement") from e
        if not isinstance(data, dict):
            raise GatewayTransportError("Réponse invalide de la passerelle de paiement")
        return GatewayResponse(ok=resp.is_success, status_code=resp.status_code, data=data)

    def submit(self, order: Order) -> GatewayResponse:
        """
        create_order + échec uniforme: statut non-2xx -> GatewayRejectedError.
        """
        response = self.create_order(order)
        if not response.ok:
            message = extract_error_message(response.data)
            logger.error("pagarme.create_order rejected status=%s message=%s", response.status_code, message)
            raise GatewayRejectedError(message, status_code=response.status_code, payload=response.data)
        return response

    def close(self) -> None:
        self._client.close()

"""
Logique de commande pure (pas de HTTP, pas de DB).
- Montants en unités mineures (centavos), arrondi half-up
- Normalisation client (document/téléphone) et règle de split
- Sérialisation au format de la passerelle (Pagar.me v5, POST /orders)
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, SecretStr, model_validator

from cursoshub.cart.models import price_or_zero
from cursoshub.errors import ValidationError

DESCRIPTION_MAX_LENGTH = 250
_NON_DIGITS = re.compile(r"\D")


class LineItem(BaseModel):
    amount: int
    description: str
    quantity: int = 1
    code: str


class Phone(BaseModel):
    country_code: str
    area_code: str
    number: str


class Customer(BaseModel):
    name: str
    email: str
    document: str
    phone: Phone


class SplitRule(BaseModel):
    recipient_id: str
    percentage: int
    liable: bool = True
    charge_processing_fee: bool = True


class Payment(BaseModel):
    method: str = "credit_card"
    card_token: SecretStr
    installments: int = 1
    statement_descriptor: str = ""
    split_rules: List[SplitRule] = []

    @model_validator(mode="after")
    def _split_sums_to_100(self):
        if self.split_rules and sum(r.percentage for r in self.split_rules) != 100:
            raise ValueError("La somme des pourcentages du split doit être égale à 100")
        return self


class Order(BaseModel):
    line_items: List[LineItem]
    customer: Customer
    payment: Payment

    @property
    def amount(self) -> int:
        return sum(li.amount * li.quantity for li in self.line_items)


# module cursoshub.payments.order
def to_minor_units(price: Any) -> int:
    """
    Convertit un prix (str|float|int|None) en unités mineures.
    - None, illisible ou négatif -> 0
    - Arrondi half-up: 0.125 -> 13
    """
    value = price_or_zero(price) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_items(course_ids: List[str], courses_by_id: Dict[str, Dict[str, Any]]) -> List[LineItem]:
    """
    Construit les lignes de commande depuis les cours du catalogue serveur.
    Chaque id doit exister dans courses_by_id (sinon ValidationError).
    """
    items: List[LineItem] = []
    for course_id in course_ids:
        course = courses_by_id.get(course_id)
        if not course:
            raise ValidationError(f"Cours introuvable: {course_id}")
        title = str(course.get("title") or "Cours")
        items.append(LineItem(
            amount=to_minor_units(course.get("price")),
            description=title[:DESCRIPTION_MAX_LENGTH],
            quantity=1,
            code=str(course_id),
        ))
    return items


def only_digits(value: Optional[str]) -> str:
    return _NON_DIGITS.sub("", value or "")


def split_phone(phone: str, country_code: str) -> Phone:
    """
    '(11) 98765-4321' -> Phone(country_code, area_code='11', number='987654321').
    Exige au moins 10 chiffres (indicatif régional + numéro).
    """
    digits = only_digits(phone)
    if len(digits) < 10:
        raise ValidationError("Téléphone invalide")
    return Phone(country_code=country_code, area_code=digits[:2], number=digits[2:])


def build_customer(email: str, customer_data: Optional[Dict[str, Any]], country_code: str) -> Customer:
    """
    Bloc client: email issu de la session vérifiée, le reste fourni par l'utilisateur.
    """
    data = customer_data or {}
    name = str(data.get("name") or "").strip()
    document = only_digits(str(data.get("document") or ""))
    phone = str(data.get("phone") or "")
    missing = [k for k, v in (("name", name), ("document", document), ("phone", only_digits(phone))) if not v]
    if missing:
        raise ValidationError(f"Données client manquantes: {', '.join(missing)}")
    if not email:
        raise ValidationError("Email de l'utilisateur manquant")
    return Customer(name=name, email=email, document=document, phone=split_phone(phone, country_code))


def build_split_rules(recipient_id: Optional[str]) -> List[SplitRule]:
    """
    Un seul destinataire configuré: 100% du montant, responsable des litiges et des frais.
    Aucun destinataire: pas de split.
    """
    if not recipient_id:
        return []
    return [SplitRule(recipient_id=recipient_id, percentage=100, liable=True, charge_processing_fee=True)]


def to_gateway_payload(order: Order) -> Dict[str, Any]:
    """
    Format attendu par POST /orders. Seul le token de carte est transmis (jamais PAN/CVV).
    """
    credit_card = {
        "recurrence": False,
        "installments": order.payment.installments,
        "statement_descriptor": order.payment.statement_descriptor,
        "card_token": order.payment.card_token.get_secret_value(),
    }
    payment: Dict[str, Any] = {"payment_method": order.payment.method, "credit_card": credit_card}
    if order.payment.split_rules:
        payment["split"] = [
            {
                "recipient_id": r.recipient_id,
                "percentage": r.percentage,
                "liable": r.liable,
                "charge_processing_fee": r.charge_processing_fee,
            }
            for r in order.payment.split_rules
        ]
    return {
        "items": [li.model_dump() for li in order.line_items],
        "customer": {
            "name": order.customer.name,
            "email": order.customer.email,
            "type": "individual",
            "document": order.customer.document,
            "phones": {"mobile_phone": order.customer.phone.model_dump()},
        },
        "payments": [payment],
    }

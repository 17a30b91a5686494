"""
Promo code generation for completed sales.

One random code is issued per sale line. Codes are not unique: two sales can
receive the same code. There is no retry-on-collision and no unique
constraint on the history table.
"""
from __future__ import annotations

import secrets
import string
from typing import Protocol, Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..exceptions import NotFoundError, PersistenceError, ValidationError
from ..extensions import db
from ..models import Branch, PromoCodeGenerationHistory, Sale, SaleItem
from ..models.sales import PROMO_GENERATED, SALE_COMPLETED

CODE_LENGTH = 10
CODE_ALPHABET = string.digits + string.ascii_uppercase


class RandomSource(Protocol):
    def choice(self, seq: Sequence[str]) -> str: ...


class PromoCodeGenerator:
    """
    Draws fixed-length codes from [0-9A-Z].

    The random source is injected. Defaults to the OS CSPRNG; tests pass a
    seeded random.Random.
    """

    def __init__(self, rng: RandomSource | None = None, length: int = CODE_LENGTH):
        self.rng = rng or secrets.SystemRandom()
        self.length = length

    def generate(self) -> str:
        return "".join(self.rng.choice(CODE_ALPHABET) for _ in range(self.length))


def get_generator() -> PromoCodeGenerator:
    generator = current_app.extensions.get("promo_code_generator")
    if generator is None:
        generator = PromoCodeGenerator()
        current_app.extensions["promo_code_generator"] = generator
    return generator


def _duplicate_receipt_error() -> ValidationError:
    return ValidationError({"receipt_id": ["This receipt ID has already been processed"]})


def generate_promo_codes(data: dict, generator: PromoCodeGenerator | None = None) -> dict:
    """
    Record the sale and issue one code per line, all in one transaction.

    data is the normalized generate payload. Returns {receipt_id, codes}.

    Raises:
        NotFoundError: branch_id does not match an active branch
        ValidationError: receipt_id was taken by a concurrent request
        PersistenceError: any other write failure (rolled back)
    """
    generator = generator or get_generator()

    branch = db.session.query(Branch).filter_by(ext_id=data["branch_id"], is_active=True).first()
    if branch is None:
        raise NotFoundError("Branch not found for the provided branch_id")

    codes = []
    try:
        sale = Sale(
            receipt_id=data["receipt_id"],
            branch_id=branch.id,
            cashier_id=data["cashier_id"],
            total_amount=data["total_amount"],
            sold_at=data["sold_at"],
            status=SALE_COMPLETED,
        )
        db.session.add(sale)
        db.session.flush()

        for item in data["items"]:
            sale_item = SaleItem(
                sale_id=sale.id,
                product_id=item["product_id"],
                unit_price=item["amount"],
                is_cancelled=False,
            )
            db.session.add(sale_item)
            db.session.flush()

            code = generator.generate()
            db.session.add(
                PromoCodeGenerationHistory(
                    sale_id=sale.id,
                    sale_item_id=sale_item.id,
                    promo_code=code,
                    amount_spent=item["amount"],
                    discount_received=0,
                    status=PROMO_GENERATED,
                )
            )
            codes.append({"product_id": item["product_id"], "code": code})

        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_receipt_conflict(data["receipt_id"]):
            raise _duplicate_receipt_error() from exc
        current_app.logger.exception("Failed to generate promo codes for receipt %s", data["receipt_id"])
        raise PersistenceError("Failed to generate promo code") from exc
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to generate promo codes for receipt %s", data["receipt_id"])
        raise PersistenceError("Failed to generate promo code") from exc

    current_app.logger.info(
        "Generated %d promo code(s) for receipt %s at branch %s",
        len(codes), data["receipt_id"], branch.ext_id,
    )
    return {"receipt_id": data["receipt_id"], "codes": codes}


def _is_receipt_conflict(receipt_id: str) -> bool:
    return db.session.query(Sale.id).filter_by(receipt_id=receipt_id).first() is not None

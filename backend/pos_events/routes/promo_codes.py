# Overview: Flask API route for promo code generation; the only synchronous write path.

from flask import Blueprint, current_app, request

from ..decorators import require_signature
from ..exceptions import PosError
from ..responses import api_response, error_response
from ..services.event_schemas import PROMO_CODE_GENERATE
from ..services.promo_code_service import generate_promo_codes

promo_codes_bp = Blueprint("promo_codes", __name__, url_prefix="/api/v1/pos/promo-codes")


@promo_codes_bp.post("/generate")
@require_signature
def generate_route():
    """
    Record a sale and return one promo code per line.

    400 on invalid payload or an already processed receipt_id,
    404 when branch_id is unknown, 500 when the write fails.
    """
    payload = request.get_json(silent=True)

    try:
        PROMO_CODE_GENERATE.validate_or_raise(payload)
        result = generate_promo_codes(PROMO_CODE_GENERATE.normalize(payload))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate promo code")
        return api_response(False, 500, "Failed to generate promo code")

    return api_response(True, 201, "Promo code generated successfully", result)

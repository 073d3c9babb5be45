from django.http import Http404
from rest_framework.views import exception_handler


def api_exception_handler(exc, context):
    """Enveloppe uniforme {"error": {"code", "message"}} pour les exceptions DRF."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, Http404):
        response.data = {"error": {"code": "NOT_FOUND", "message": "Not found"}}
        return response

    detail = getattr(exc, "detail", None)
    if isinstance(detail, (dict, list)):
        message = _first_message(detail) or str(exc)
    else:
        message = str(detail) if detail is not None else str(exc)

    codes = exc.get_codes() if hasattr(exc, "get_codes") else None
    code = codes if isinstance(codes, str) else getattr(exc, "default_code", "error")
    response.data = {"error": {"code": str(code).upper(), "message": message}}
    return response


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
    if isinstance(detail, list):
        for value in detail:
            return _first_message(value)
    return str(detail) if detail else None

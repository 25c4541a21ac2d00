import azure.functions as func
from services.errors import NotFoundError, ValidationError
from utils.cors import json_response


def json_body(req: func.HttpRequest) -> dict:
    """Parsed JSON object body; an empty body is treated as {}."""
    if not req.get_body():
        return {}
    try:
        body = req.get_json()
    except ValueError:
        raise ValueError("Request body must be JSON")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def error_response(e: Exception) -> func.HttpResponse:
    if isinstance(e, NotFoundError):
        return json_response({"error": str(e)}, 404)
    if isinstance(e, ValidationError):
        return json_response({"error": str(e), "messages": e.messages}, 400)
    if isinstance(e, ValueError):
        return json_response({"error": str(e)}, 400)
    return json_response({"error": "Internal server error"}, 500)

"""
JSON response helpers.

Every body carries a "status" field: "ok" on success, the error message
otherwise.
"""

from django.http import JsonResponse


def send_ok(**fields) -> JsonResponse:
    return JsonResponse({"status": "ok", **fields})


def send_error(status: int, message: str) -> JsonResponse:
    return JsonResponse({"status": message}, status=status)


def send_bad_request(message: str) -> JsonResponse:
    return send_error(400, message)


def send_forbidden(message: str) -> JsonResponse:
    return send_error(403, message)


def send_not_found(message: str) -> JsonResponse:
    return send_error(404, message)

"""Helpers shared by the JSON API views."""

import json
import logging
from functools import wraps

from django.conf import settings
from django.core.exceptions import BadRequest, PermissionDenied, ValidationError
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404
from pydantic import ValidationError as PydanticValidationError

from rowkeeper.core.counters.store import StaleCounterError
from rowkeeper.core.models.project import Project

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def api_response(data=None, message=None, status=200) -> JsonResponse:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return JsonResponse(body, status=status)


def api_error(message, status, errors=None, exc=None) -> JsonResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if exc is not None and settings.DEBUG:
        body["detail"] = f"{type(exc).__name__}: {exc}"
    return JsonResponse(body, status=status)


def validation_errors(error: ValidationError) -> dict:
    if hasattr(error, "error_dict"):
        return error.message_dict
    return {"__all__": error.messages}


def form_errors(form) -> dict:
    return {name: list(messages) for name, messages in form.errors.items()}


def pydantic_errors(error: PydanticValidationError) -> dict:
    errors = {}
    for item in error.errors():
        key = ".".join(str(part) for part in item["loc"]) or "__all__"
        errors.setdefault(key, []).append(item["msg"])
    return errors


def parse_json_body(request):
    """
    The decoded request body.

    JSON bodies are decoded as such and an empty body is ``{}``. Form posts,
    including the empty multipart body of a bare POST, fall back to
    ``request.POST``.
    """
    if not request.body:
        return {}
    if request.content_type in ("multipart/form-data", FORM_CONTENT_TYPE):
        return request.POST.dict()
    try:
        return json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON format")


def get_project(request, project_id) -> Project:
    """A live project owned by the requesting user, or 404."""
    return get_object_or_404(Project.objects.owned_by(request.user), id=project_id)


def api_view(methods):
    """
    Decorate a JSON API view.

    Rejects other HTTP methods with 405 and anonymous users with 401, and
    turns the exceptions raised by handlers into JSON error responses:

    ``Http404``                  404
    ``PermissionDenied``         403
    ``ValidationError``          400, with ``errors``
    ``BadRequest``/``ValueError`` 400
    ``StaleCounterError``        409
    anything else                500, logged
    """

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                response = api_error("Method not allowed", 405)
                response["Allow"] = ", ".join(methods)
                return response

            if not request.user.is_authenticated:
                return api_error("Authentication required", 401)

            try:
                return view(request, *args, **kwargs)
            except Http404 as e:
                return api_error(str(e) or "Not found", 404)
            except PermissionDenied as e:
                return api_error(str(e) or "Forbidden", 403)
            except ValidationError as e:
                return api_error(
                    "Validation failed", 400, errors=validation_errors(e)
                )
            except PydanticValidationError as e:
                return api_error("Validation failed", 400, errors=pydantic_errors(e))
            except StaleCounterError as e:
                return api_error(
                    "Counter was changed by someone else",
                    409,
                    errors={"version": [f"Current version is {e.actual_version}."]},
                )
            except (BadRequest, ValueError) as e:
                return api_error(str(e), 400)
            except Exception as e:
                logger.exception(
                    "Unexpected error in %s %s", request.method, request.path
                )
                return api_error("An unexpected error occurred", 500, exc=e)

        return wrapper

    return decorator

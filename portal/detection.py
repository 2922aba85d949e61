"""
Operating-system captive-portal detection routes.

Phones and laptops fetch these URLs right after joining a network. Answering
with the expected "no portal" body would make them suppress the sign-in
browser, so every detection request is redirected to the portal root instead.
"""
from fastapi import APIRouter
from fastapi.responses import RedirectResponse

DETECTION_PATHS = (
    # Android
    "/generate_204",
    "/gen_204",
    # Apple
    "/hotspot-detect.html",
    "/library/test/success.html",
    "/library/test/success",
    # Windows
    "/connecttest.txt",
    "/ncsi.txt",
    "/ncsi",
    "/redirect",
    "/fwlink",
    # Firefox
    "/canonical.html",
    "/success.txt",
)


def _redirect_to_root() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=302)


def create_detection_router() -> APIRouter:
    router = APIRouter()
    for path in DETECTION_PATHS:
        router.add_api_route(path, _redirect_to_root, methods=["GET"], include_in_schema=False)
    return router

"""Relay router for Vertex Relay."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from services import ForwardingGateway

router = APIRouter(tags=["relay"])

# Every method is routed here so the gateway answers non-POST requests itself.
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_gateway(request: Request) -> ForwardingGateway:
    """Dependency to get the forwarding gateway from application state."""
    return request.app.state.gateway  # type: ignore[no-any-return]


@router.api_route("/", methods=ALL_METHODS, response_class=StreamingResponse)
async def forward_to_endpoint(
    request: Request,
    gateway: ForwardingGateway = Depends(get_gateway),
) -> StreamingResponse:
    """Check the caller's quota and stream the model's response back."""
    return await gateway.handle(request)

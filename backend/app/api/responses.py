from fastapi import status
from fastapi.responses import RedirectResponse, Response, StreamingResponse

from app.services.delivery import DeliveryDescriptor, RedirectDescriptor


def delivery_response(descriptor: DeliveryDescriptor) -> Response:
    """Turn a delivery descriptor into the matching HTTP response."""
    if isinstance(descriptor, RedirectDescriptor):
        # 303 so the client follows with a GET whatever method it used here
        return RedirectResponse(descriptor.url, status_code=status.HTTP_303_SEE_OTHER)
    return StreamingResponse(
        descriptor.iter_chunks(),
        media_type=descriptor.media_type,
        headers=descriptor.headers,
    )

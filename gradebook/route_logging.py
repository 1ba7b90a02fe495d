from __future__ import annotations

from fastapi.routing import APIRoute
from starlette.requests import Request

from gradebook.request_context import current_endpoint


class EndpointNameRoute(APIRoute):
    """Labels each request with ``METHOD /route/{template}``.

    The label is visible to the slow-query listener through ``current_endpoint`` and to
    the request middleware through ``request.state.endpoint``.
    """

    def get_route_handler(self):
        original_handler = super().get_route_handler()
        route_path = self.path

        async def labelled_handler(request: Request):
            endpoint_label = f'{request.method} {route_path}'
            request.state.endpoint = endpoint_label
            token = current_endpoint.set(endpoint_label)
            try:
                return await original_handler(request)
            finally:
                current_endpoint.reset(token)

        return labelled_handler

"""
The request gateway: single-shot HTTP requests used for bulk
fetches and outbound sends.
"""

import json
import logging
import typing

import attr
import httpx

from .errors import RequestError
from .options import Transport

JSON_TYPE = "application/json"


def is_json(content_type: typing.Optional[str]) -> bool:
    """
    Whether a Content-Type header value declares JSON.

        >>> is_json('application/json; charset=utf-8')
        True
        >>> is_json('text/html')
        False
    """
    if not content_type:
        return False

    return content_type.split(";")[0].strip().lower() == JSON_TYPE


@attr.s(auto_attribs=True)
class RequestGateway:
    """
    Performs exactly one request per call, buffers the full response
    and returns its parsed value.

    The transport capability (secure or not) is given at construction.
    An httpx transport may be passed for testing, e.g. an
    httpx.MockTransport.
    """

    transport: Transport = attr.Factory(Transport)
    http_transport: typing.Optional[httpx.AsyncBaseTransport] = None
    logger: logging.Logger = attr.Factory(
        lambda: logging.getLogger("termie.gateway")
    )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=self.transport.verify,
            timeout=None,
            transport=self.http_transport,
        )

    async def request(
        self,
        method: str,
        host: str,
        port: typing.Union[int, str],
        path: str,
        headers: typing.Optional[typing.Dict[str, str]] = None,
        body: typing.Any = None,
    ) -> typing.Any:
        """
        Performs a single request.

        Arguments:
            method {str} -- The HTTP method.
            host {str} -- The hostname, without the http prefix.
            port {Union[int, str]} -- The port.
            path {str} -- The request path.

        Keyword Arguments:
            headers {Optional[Dict[str, str]]} -- Request headers. (default: None)
            body {Any} -- The payload. Encoded as query parameters for GET,
                          serialized as JSON if the request declares a JSON
                          Content-Type, and sent as-is otherwise. (default: None)

        Raises:
            RequestError: The response status was not 2xx, or no response
                          was received at all.

        Returns:
            Any -- The decoded JSON value, or the response text.
        """

        method = method.upper()
        headers = dict(headers or {})
        url = self.transport.url(host, port, path)

        params = None
        content = None

        if body is not None:
            if method == "GET":
                params = {k: v for k, v in body.items() if v is not None}

            elif is_json(headers.get("Content-Type")):
                content = json.dumps(body)

            else:
                content = body

        self.logger.debug("%s %s", method, url)

        try:
            async with self._client() as client:
                response = await client.request(
                    method, url, headers=headers, params=params, content=content
                )

        except httpx.HTTPError as err:
            self.logger.warning("%s %s failed: %s", method, url, err)
            raise RequestError(None, str(err)) from err

        data = self._parse(response)

        if not response.is_success:
            self.logger.debug("%s %s returned %d", method, url, response.status_code)
            raise RequestError(response.status_code, data)

        return data

    def _parse(self, response: httpx.Response) -> typing.Any:
        if is_json(response.headers.get("content-type")):
            try:
                return response.json()

            except ValueError:
                self.logger.warning("Malformed JSON in response from %s", response.url)

        return response.text

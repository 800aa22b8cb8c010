"""Transfer client for the hawser object protocol.

Download:
    GET <endpoint>/objects/<oid> with ``Accept: application/vnd.git-media``.
    The body starts with a framing marker that is checked and skipped.

Upload:
    POST <endpoint>/objects with ``{"oid": ..., "size": ...}`` to negotiate.

    - 200: the server already has the object.
    - 302/405: a server without hypermedia support. Probe the object with
      OPTIONS and PUT it to the object URL unless the probe answers 200.
    - 202: the body holds ``_links``. PUT the object to the ``upload``
      relation, then POST ``{"oid", "size"}`` to ``verify`` if present.

Every request gets a User-Agent and, unless the caller already set one, an
Authorization header from the credential provider. The provider is told
whether the credential worked as soon as the response arrives.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping, Optional, Tuple

import requests
from pydantic import ValidationError

from .config import EndpointConfig
from .constants import MEDIA_TYPE, META_MEDIA_TYPE, UPLOAD_REL, USER_AGENT, VERIFY_REL
from .credentials import Credential, CredentialProvider, attach_credentials, settle_credentials
from .diagnostics import with_request_context, with_response_context
from .errors import (
    AuthError,
    ClientFaultError,
    CredentialError,
    DecodeError,
    NotFoundError,
    ObjectStoreError,
    ProtocolError,
    ServerError,
    ServerFaultError,
    TransferError,
    TransportError,
)
from .framing import validate_media_header
from .models import (
    AlreadyStored,
    ErrorBody,
    Hypermedia,
    LegacyFallback,
    LinkMetadata,
    NegotiationOutcome,
    ObjectRequest,
    TransferDescriptor,
    classify_negotiation,
)
from .objects import object_size, oid_from_path, open_object
from .progress import CallbackReader
from .transport import HttpExecutor, RedirectSignal, RequestsExecutor

logger = logging.getLogger(__name__)


def classify_response(response: requests.Response) -> Optional[TransferError]:
    """Turn an unsuccessful response into an error.

    Statuses below 400 and 405 are not errors. Anything else gets its JSON
    body decoded as a ServerError, which becomes the cause of the returned
    error. Errors for statuses below 500 are not fatal.
    """
    status = response.status_code
    if status < 400 or status == 405:
        return None

    err = _response_error(response)
    if status < 500:
        err = err.with_fatal(False)
    return err


def _response_error(response: requests.Response) -> TransferError:
    status = response.status_code
    url = response.request.url if response.request is not None else response.url

    try:
        body = ErrorBody.model_validate_json(response.content)
    except ValidationError as e:
        return DecodeError("Error decoding JSON from response", cause=e)

    cause = ServerError(body.message, body.request_id)
    if status in (401, 403):
        return AuthError(
            f"Authorization error: {url}\n"
            f"Check that you have proper access to the repository.",
            cause=cause,
        )
    if status == 404:
        return NotFoundError(
            f"Repository not found: {url}\n"
            f"Check that it exists and that you have proper access to it.",
            cause=cause,
        )

    error_cls = ServerFaultError if status >= 500 else ClientFaultError
    return error_cls(f"Invalid response: {status}", cause=cause)


@dataclass
class Download:
    """Object body positioned at the start of the payload.

    Attributes:
        oid: Object id
        stream: Readable body, past the framing marker
        size: Payload size in bytes, or None if the server sent no length
        response: Underlying response, closed by ``close()``
    """

    oid: str
    stream: BinaryIO
    size: Optional[int]
    response: requests.Response

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)

    def close(self) -> None:
        self.response.close()

    def __enter__(self) -> "Download":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class TransferClient:
    """Downloads and uploads objects against one endpoint."""

    def __init__(
        self,
        config: EndpointConfig,
        credentials: CredentialProvider,
        executor: Optional[HttpExecutor] = None,
        user_agent: str = USER_AGENT,
    ):
        """Initialize the client.

        Args:
            config: Endpoint configuration, read-only
            credentials: Provider consulted before and after every request
            executor: HTTP executor; defaults to a requests session
            user_agent: Value of the User-Agent header
        """
        self.config = config
        self.credentials = credentials
        self.executor = executor or RequestsExecutor()
        self.user_agent = user_agent

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    # ============= Download =============

    def download(self, oid_path: str) -> Download:
        """Fetch an object.

        Args:
            oid_path: Object id, or a local path whose file name is the id

        Returns:
            Download with the stream positioned after the framing marker

        Raises:
            TransferError: On any failure, with diagnostic context
        """
        oid = oid_from_path(oid_path)
        request, credential = self._object_request("GET", oid, headers={"Accept": MEDIA_TYPE})
        logger.debug(f"api_get: {oid}")
        response = self._do_request(request, credential, stream=True)
        logger.debug(f"api_get_status: {response.status_code}")

        content_type = response.headers.get("Content-Type", "")
        if not content_type:
            response.close()
            raise with_response_context(ProtocolError("Empty Content-Type"), self.endpoint, response)

        body = response.raw
        if hasattr(body, "decode_content"):
            body.decode_content = True

        try:
            header_size = validate_media_header(content_type, body)
        except TransferError as e:
            response.close()
            raise with_response_context(e, self.endpoint, response)

        size = None
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit():
            size = int(content_length) - header_size

        return Download(oid=oid, stream=body, size=size, response=response)

    # ============= Upload =============

    def upload(self, descriptor: TransferDescriptor) -> None:
        """Upload an object, negotiating how with the server.

        Stops at the first failing step; nothing is retried.

        Raises:
            TransferError: On any failure, with diagnostic context
        """
        try:
            self._upload(descriptor)
        except TransferError as e:
            raise e.with_context({"Object": descriptor.oid, "File": descriptor.name})

    def _upload(self, descriptor: TransferDescriptor) -> None:
        outcome, response = self._negotiate(descriptor)

        if isinstance(outcome, AlreadyStored):
            logger.debug(f"object exists: {descriptor.oid}")
            return

        if isinstance(outcome, LegacyFallback):
            logger.debug(f"legacy server ({outcome.status}): {descriptor.oid}")
            status = self._options(descriptor)
            if status != 200:
                self._put(descriptor)
            return

        if isinstance(outcome, Hypermedia):
            self._external_put(descriptor, outcome.links, response)
            return

        raise with_response_context(
            ProtocolError(f"Unexpected HTTP response: {outcome.status}"),
            self.endpoint,
            response,
        )

    def _negotiate(self, descriptor: TransferDescriptor) -> Tuple[NegotiationOutcome, requests.Response]:
        """POST the object's id and size and classify the answer."""
        oid = descriptor.oid
        size = self._local_size(descriptor, f"Error attempting to POST {descriptor.name}")

        request, credential = self._object_request(
            "POST",
            "",
            headers={"Accept": META_MEDIA_TYPE},
            data=ObjectRequest(oid=oid, size=size).model_dump_json(),
        )
        logger.debug(f"api_post: {oid} {descriptor.name}")
        response = self._do_request(request, credential)
        logger.debug(f"api_post_status: {response.status_code}")

        links = None
        if response.status_code == 202:
            try:
                links = LinkMetadata.model_validate_json(response.content)
            except ValidationError as e:
                err = DecodeError(f"Error decoding JSON from {request.method} {request.url}.", cause=e)
                raise with_response_context(err, self.endpoint, response) from e

        return classify_negotiation(response.status_code, links), response

    def _options(self, descriptor: TransferDescriptor) -> int:
        """Ask a legacy server whether it already has the object."""
        oid = descriptor.oid
        self._local_size(descriptor, f"Internal object does not exist: {descriptor.local_path}")

        request, credential = self._object_request("OPTIONS", oid)
        logger.debug(f"api_options: {oid}")
        response = self._do_request(request, credential)
        logger.debug(f"api_options_status: {response.status_code}")
        return response.status_code

    def _put(self, descriptor: TransferDescriptor) -> None:
        """Stream the object straight to the legacy object URL."""
        oid = descriptor.oid
        reader, size = self._open_local(descriptor, f"Error uploading file {descriptor.name} ({oid})")

        with CallbackReader(reader, size, descriptor.progress_callback) as body:
            request, credential = self._object_request(
                "PUT",
                oid,
                headers={
                    "Content-Type": MEDIA_TYPE,
                    "Accept": META_MEDIA_TYPE,
                    "Content-Length": str(size),
                },
                data=body if size else b"",
            )
            logger.debug(f"api_put: {oid} {descriptor.name}")
            response = self._do_request(request, credential)
            logger.debug(f"api_put_status: {response.status_code}")
            self._require_success(response)

    def _external_put(
        self,
        descriptor: TransferDescriptor,
        links: Optional[LinkMetadata],
        negotiation: requests.Response,
    ) -> None:
        """Upload to the storage backend named by the links, then verify."""
        oid = descriptor.oid
        if links is None:
            err = ProtocolError(
                f"Error attempting to PUT {descriptor.name}",
                cause=ValueError("No hypermedia links provided"),
            )
            raise with_response_context(err, self.endpoint, negotiation)

        upload = links.rel(UPLOAD_REL)
        if upload is None:
            err = ProtocolError(
                f"Error attempting to PUT {descriptor.name}",
                cause=ValueError("No upload link provided"),
            )
            raise with_response_context(err, self.endpoint, negotiation)

        reader, size = self._open_local(descriptor, f"Error attempting to PUT {descriptor.name}")
        with CallbackReader(reader, size, descriptor.progress_callback) as body:
            request = self._link_request("PUT", upload.href, upload.headers, data=body if size else b"")
            request.headers["Content-Length"] = str(size)
            credential = self._set_request_headers(request)

            logger.debug(f"external_put: {oid} {upload.href}")
            response = self._do_request(request, credential)
            logger.debug(f"external_put_status: {response.status_code}")
            self._require_success(response)

        verify = links.rel(VERIFY_REL)
        if verify is None:
            return

        request = self._link_request(
            "POST",
            verify.href,
            verify.headers,
            data=ObjectRequest(oid=oid, size=size).model_dump_json(),
        )
        credential = self._set_request_headers(request)

        logger.debug(f"verify: {oid} {verify.href}")
        response = self._do_request(request, credential)
        logger.debug(f"verify_status: {response.status_code}")
        self._require_success(response)

    # ============= Requests =============

    def _object_request(
        self,
        method: str,
        oid: str,
        headers: Optional[Mapping[str, str]] = None,
        data=None,
    ) -> Tuple[requests.Request, Optional[Credential]]:
        """Build a request for an object URL with identity and auth set."""
        request = requests.Request(method, self.config.object_url(oid), headers=dict(headers or {}), data=data)
        credential = self._set_request_headers(request)
        return request, credential

    def _link_request(self, method: str, href: str, headers: Mapping[str, str], data=None) -> requests.Request:
        return requests.Request(method, href, headers=dict(headers), data=data)

    def _set_request_headers(self, request: requests.Request) -> Optional[Credential]:
        """Set User-Agent and, when missing, Authorization."""
        request.headers["User-Agent"] = self.user_agent
        try:
            return attach_credentials(request, self.credentials)
        except CredentialError as e:
            err = TransferError(f"Unable to get credentials for {request.url}", cause=e)
            raise with_request_context(err, self.endpoint, request) from e

    def _do_request(
        self,
        request: requests.Request,
        credential: Optional[Credential],
        stream: bool = False,
    ) -> requests.Response:
        """Send a request, settle its credential and check the status.

        Raises:
            TransferError: On transport failure or an error status
        """
        try:
            response = self.executor.send(request, stream=stream)
        except RedirectSignal as signal:
            response = signal.response
        except requests.RequestException as e:
            err = TransportError(f"Error sending HTTP request to {request.url}", cause=e)
            raise with_request_context(err, self.endpoint, request) from e

        settle_credentials(self.credentials, credential, response.status_code)

        err = classify_response(response)
        if err is not None:
            response.close()
            raise with_response_context(err, self.endpoint, response)
        return response

    def _require_success(self, response: requests.Response) -> None:
        """Fail on anything but a 2xx status."""
        status = response.status_code
        if 200 <= status < 300:
            return

        fatal = status >= 500
        error_cls = ServerFaultError if fatal else ClientFaultError
        err = error_cls(f"Invalid response: {status}", fatal=fatal)
        raise with_response_context(err, self.endpoint, response)

    # ============= Local objects =============

    def _local_size(self, descriptor: TransferDescriptor, message: str) -> int:
        try:
            return object_size(descriptor.local_path)
        except (ObjectStoreError, OSError) as e:
            raise TransferError(message, cause=e) from e

    def _open_local(self, descriptor: TransferDescriptor, message: str) -> Tuple[BinaryIO, int]:
        try:
            return open_object(Path(descriptor.local_path))
        except (ObjectStoreError, OSError) as e:
            raise TransferError(message, cause=e) from e


__all__ = ["TransferClient", "Download", "classify_response"]

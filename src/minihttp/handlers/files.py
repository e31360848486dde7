"""
=============================================================================
FILE HANDLERS
=============================================================================

    GET  /files/<name>   → 200 + file bytes (application/octet-stream)
                           404 if missing, a directory, or outside the root
    POST /files/<name>   → write body (create or truncate), 201 echoing it
                           404 if the name escapes the root

<name> is the rest of the path after "/files/", nested segments included.
Confinement is enforced by FileStorage.resolve().

Storage failures other than "not found" / "unsafe path" are not caught
here. They propagate to Router.handle(), which answers 500.

=============================================================================
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ContentType, ok, created, not_found
from ..storage import FileStorage, StoredFileNotFound, UnsafePath

logger = logging.getLogger(__name__)


class FileHandler:
    """
    Serves /files/* from a FileStorage.

        files = FileHandler(FileStorage("/tmp/data"))
        router.get("/files/*name")(files.read)
        router.post("/files/*name")(files.write)
    """

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def read(self, request: HTTPRequest) -> HTTPResponse:
        name = request.path_params.get("name", "")

        try:
            content = self.storage.read(name)
        except (StoredFileNotFound, UnsafePath) as e:
            logger.debug(f"GET /files/{name}: {e}")
            return not_found()

        return ok(content, content_type=ContentType.OCTET_STREAM)

    def write(self, request: HTTPRequest) -> HTTPResponse:
        name = request.path_params.get("name", "")

        try:
            self.storage.write(name, request.body)
        except UnsafePath as e:
            logger.debug(f"POST /files/{name}: {e}")
            return not_found()

        return created(request.body)

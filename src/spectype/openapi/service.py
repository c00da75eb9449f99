from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from spectype.dispatch.pipeline import JSON_CONTENT_TYPE, Response
from spectype.errors import DocumentGenerationError
from spectype.openapi.document import Info
from spectype.openapi.projector import generate_openapi
from spectype.routing.table import Endpoint
from spectype.store.doc_cache import DocumentCache
from spectype.types.introspect import SignatureSource

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

_SWAGGER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>Swagger UI</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist/swagger-ui.css" />
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="https://unpkg.com/swagger-ui-dist/swagger-ui-bundle.js"></script>
  <script>
    SwaggerUIBundle({
      url: __OPENAPI_URL__,
      dom_id: "#swagger-ui",
      presets: [SwaggerUIBundle.presets.apis, SwaggerUIBundle.SwaggerUIStandalonePreset],
      layout: "BaseLayout",
      deepLinking: true
    });
  </script>
</body>
</html>
"""


def swagger_html(openapi_url: str) -> str:
    return _SWAGGER_TEMPLATE.replace("__OPENAPI_URL__", json.dumps(openapi_url))


class OpenAPIService:
    """
    Serves the generated document and a Swagger UI page for one route table.

    With a cache, the serialized document is produced on first request and
    reused until `invalidate()`.
    """

    def __init__(
        self,
        routes: Iterable[Endpoint],
        source: SignatureSource,
        title: str,
        version: str,
        openapi_url: str = "/openapi",
        cache: Optional[DocumentCache] = None,
        cache_key: Optional[str] = None,
    ):
        self.routes = routes
        self.source = source
        self.info = Info(title=title, version=version)
        self.openapi_url = openapi_url
        self.cache = cache
        self.cache_key = cache_key or f"{type(self).__module__}.{type(self).__qualname__}:{title}:{version}"

    def build_json(self) -> bytes:
        result = generate_openapi(list(self.routes), self.source, self.info)
        if not result.ok:
            raise DocumentGenerationError(list(result.errors))
        return json.dumps(result.document, separators=(",", ":")).encode("utf-8")

    def document_json(self) -> bytes:
        if self.cache is None:
            return self.build_json()
        cached = self.cache.get(self.cache_key)
        if cached is not None:
            return cached
        logger.info("generating OpenAPI document for %s", self.cache_key)
        return self.cache.put_if_first(self.cache_key, self.build_json())

    def invalidate(self) -> None:
        if self.cache is not None:
            self.cache.erase(self.cache_key)

    def show(self) -> Response:
        return Response(status=200, headers={"content-type": JSON_CONTENT_TYPE}, body=self.document_json())

    def swagger(self) -> Response:
        html = swagger_html(self.openapi_url)
        return Response(status=200, headers={"content-type": HTML_CONTENT_TYPE}, body=html.encode("utf-8"))

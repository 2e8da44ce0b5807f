"""Creates the search fields in a Solr collection through the Schema API."""

import httpx

from shared.clients.engine.solr.EngineClientSolr import EngineClientSolr
from shared.clients.engine.solr.SolrDocument import SolrDocument
from shared.models.errors import SchemaSetupError
from shared.search.document.Document import FieldDefinition


class SolrSchema:
    def __init__(self, client: EngineClientSolr):
        if not client.is_installed():
            raise SchemaSetupError("No Solr configuration found, ENGINE_SOLR_BASE_URL and ENGINE_SOLR_COLLECTION must be set.")
        self._client = client
        self.logging = client.logging

    async def setup(self, check_existing: bool = True) -> None:
        """Adds every document field except id, which Solr already defines.

        Args:
            check_existing (bool): Fail if any field already exists and validate every response.

        Raises:
            SchemaSetupError: If the collection is unreachable, a field exists or Solr rejects a field.
        """
        fields = SolrDocument.get_default_fields_definition()
        fields.pop("id", None)
        await self.add_fields(fields, check_existing=check_existing)

    async def add_fields(self, fields: dict[str, FieldDefinition], check_existing: bool = True) -> None:
        schema_endpoint = self._client.get_endpoint_schema()

        # the server is available and the collection exists
        try:
            resp = await self._client.do_request(method="GET", endpoint=self._client.get_endpoint_select(), params={"wt": "json"})
        except httpx.HTTPError as e:
            raise SchemaSetupError(f"Connection error: {e}") from e
        if resp.status_code == 404:
            raise SchemaSetupError("Connection error: the collection does not exist.")

        if check_existing:
            for fieldname in fields:
                try:
                    resp = await self._client.do_request(method="GET", endpoint=f"{schema_endpoint}/fields/{fieldname}", params={"wt": "json"})
                except httpx.HTTPError as e:
                    raise SchemaSetupError(f"Error creating the schema: {e}") from e
                results = self._decode(resp)
                error = results.get("error")
                # the field must not exist yet, only 404 is fine
                if not error or error.get("code") != 404:
                    message = error.get("msg") if error else f"Field '{fieldname}' already exists."
                    raise SchemaSetupError(f"Error creating the schema: {message}")

        for fieldname, definition in fields.items():
            # multiValued=false so results can be matched against a single value
            payload = {
                "add-field": {
                    "name": fieldname,
                    "type": definition.type,
                    "stored": definition.stored,
                    "multiValued": False,
                    "indexed": definition.indexed,
                }
            }
            try:
                resp = await self._client.do_request(method="POST", endpoint=schema_endpoint, json=payload)
            except httpx.HTTPError as e:
                if check_existing:
                    raise SchemaSetupError(f"Error creating the schema: {e}") from e
                self.logging.warning("Could not add field '%s': %s", fieldname, e)
                continue
            if check_existing:
                self.check_results(resp)
            self.logging.info("Added Solr field '%s' (%s).", fieldname, definition.type)

    def _decode(self, resp: httpx.Response) -> dict:
        if not resp.content:
            raise SchemaSetupError("Error creating the schema: no data returned from the server.")
        try:
            results = resp.json()
        except ValueError:
            raise SchemaSetupError(f"Error creating the schema: {resp.text}")
        if not isinstance(results, dict):
            raise SchemaSetupError(f"Error creating the schema: {resp.text}")
        return results

    def check_results(self, resp: httpx.Response) -> None:
        """Validates a Schema API response.

        Raises:
            SchemaSetupError: If the response is empty, not JSON or reports errors.
        """
        results = self._decode(resp)
        if results.get("error"):
            raise SchemaSetupError(f"Error creating the schema: {results['error']}")
        if results.get("errors"):
            messages = []
            for error in results["errors"]:
                messages.extend(error.get("errorMessages", []))
            raise SchemaSetupError(f"Error creating the schema: {', '.join(messages)}")

"""Exception hierarchy for the global search subsystem.

Configuration and engine errors are fatal and surface to the caller before any
indexing or query work starts. Document errors point at a defect in a search
source implementation. Access decisions (denied / deleted) are not errors, see
shared.models.search.AccessResult.
"""


class SearchError(Exception):
    """Base class for all global search errors."""


##########################################
########### CONFIG / ENGINE ##############
##########################################

class ConfigurationError(SearchError):
    """Global search is disabled, or the engine is unset or misconfigured."""


class EngineNotFoundError(ConfigurationError):
    """The configured engine name does not resolve to a registered engine client."""


class EngineNotInstalledError(ConfigurationError):
    """The engine client exists but is not installed / configured."""


class EngineUnavailableError(SearchError):
    """The search backend is unreachable or not ready."""


class EngineServerStatusError(EngineUnavailableError):
    """The search backend did not answer the readiness check."""


class SchemaSetupError(SearchError):
    """The backend schema could not be created or validated."""


##########################################
############### INDEXING #################
##########################################

class UnsupportedDocumentTypeError(SearchError):
    """A source produced a document type the backend schema can not represent."""


class SchemaViolationError(SearchError):
    """The backend returned a multi-valued field where a scalar was expected."""

    def __init__(self, field: str):
        super().__init__(
            f"Field '{field}' is multi-valued in the search backend. "
            "It must be defined with multiValued=false in the backend schema."
        )
        self.field = field


class SourceNotAvailableError(SearchError):
    """The requested search source does not exist or does not support search."""

    def __init__(self, component: str):
        super().__init__(f"{component} search component is not available.")
        self.component = component


class IndexingInProgressError(SearchError):
    """Another indexing run is already active in this process."""


##########################################
############### DOCUMENT #################
##########################################

class DocumentError(SearchError):
    """Base class for document contract violations."""


class InvalidArgumentError(DocumentError):
    """A document was constructed with invalid arguments."""


class UnknownFieldError(DocumentError):
    """The field is neither a required nor an optional document field."""


class InvalidTypeError(DocumentError):
    """The value can not be coerced to the field type."""


class MissingRequiredFieldError(DocumentError):
    """A required field is missing at export time."""


class DocumentWithoutLinkError(DocumentError):
    """The document has no url attached."""

"""
Exception taxonomy for OSM fetching and export

All of these are caught at the pipeline boundary and turned into
user-visible notifications; none of them is fatal to the process.
"""

from typing import Optional


class ExplorerError(Exception):
    """Base class for errors surfaced to the user as notifications"""


class NetworkError(ExplorerError):
    """Overpass request failed or returned a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(ExplorerError, ValueError):
    """Response body is not JSON or lacks the `elements` array"""


class EmptySelectionError(ExplorerError):
    """No category or filter was chosen before a fetch"""


class InvalidInputError(ExplorerError, ValueError):
    """User-supplied area, filter, operator, mode or format cannot be parsed"""


class UnknownCategoryError(ExplorerError, KeyError):
    """Category id not present in the catalog"""


class ExportError(ExplorerError):
    """Serialization or archive writing failed"""


class NothingToExportError(ExportError):
    """The selected layers hold no features"""



class NoResultsWarning(UserWarning):
    """A valid query matched zero elements; reported as info, never raised"""

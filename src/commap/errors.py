"""Error taxonomy for ingestion, rendering and gated exports.

Every error here is recovered at the boundary of the operation that raised
it (MapSession or the HTTP routers) and turned into a user notice.
"""

from __future__ import annotations


class CommapError(Exception):
    """Base class for all recoverable community-map errors."""


class IngestError(CommapError):
    """An uploaded file could not be ingested. No data is changed."""


class UnsupportedFormat(IngestError):
    """The upload's file extension is not .csv, .geojson or .json."""

    def __init__(self, file_name: str) -> None:
        super().__init__(f"Unsupported file: {file_name}")
        self.file_name = file_name


class MalformedJson(IngestError):
    """A GeoJSON upload did not parse (or had no usable feature list)."""


class RowRejected(CommapError):
    """A CSV row without finite coordinates. Logged, never propagated."""

    def __init__(self, row_number: int) -> None:
        super().__init__(f"Row {row_number} has no finite lat/lng")
        self.row_number = row_number


class RenderFailure(CommapError):
    """The rendering backend failed while rasterizing a region."""


class RenderBusy(CommapError):
    """A render for the same region is already in flight."""

    def __init__(self, region_key: str) -> None:
        super().__init__(f"Render already in progress for {region_key}")
        self.region_key = region_key


class AuthorizationDenied(CommapError):
    """A non-pro tier attempted a gated export."""

    def __init__(self, tier: str, prompt: str) -> None:
        super().__init__(prompt)
        self.tier = tier
        self.prompt = prompt

"""Error types raised by the export pipeline."""

from __future__ import annotations


class DesignExportError(Exception):
    """Base class for every error the export pipeline reports."""


class InvalidInput(DesignExportError):
    """The scene document is missing or structurally invalid."""


class PackagingFailure(DesignExportError):
    """The archive could not be built."""


class AssetResolutionFailure(DesignExportError):
    """A single image asset could not be fetched or decoded.

    Returned as a value by the resolver rather than raised, so one bad
    asset never aborts the export.
    """

    def __init__(self, asset_id: str, src: str, reason: str) -> None:
        super().__init__(f"{asset_id}: {reason}")
        self.asset_id = asset_id
        self.src = src
        self.reason = reason

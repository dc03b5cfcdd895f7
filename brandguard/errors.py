"""Error taxonomy for the compliance pipeline.

``StageError`` subclasses are caught by the pipeline and turned into default check
results. ``JobFatalError`` subclasses end the job; their message is stored verbatim on
the job and asset rows.
"""


class StageError(RuntimeError):
    """A single analysis stage failed permanently; the job continues without it."""


class JobFatalError(RuntimeError):
    """The job cannot produce a trustworthy report."""


class AssetNotFoundError(JobFatalError):
    pass


class AssetDownloadError(JobFatalError):
    pass


class BrandLinkageError(JobFatalError):
    """The asset's campaign or the campaign's brand is missing."""


class MediaValidationError(JobFatalError):
    """The media cannot be analysed as uploaded; the message tells the user what to fix."""


class AssetStateConflictError(JobFatalError):
    """The asset or its job left the expected status while the job was running."""

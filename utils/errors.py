# utils/errors.py


class PenaltyServiceError(Exception):
    """Base class for errors raised by the penalty ingestion service."""


class StorageUnavailableError(PenaltyServiceError):
    """The blob store could not be reached or authenticated. Retry later."""


class BlobNotFoundError(PenaltyServiceError):
    def __init__(self, file_name: str):
        super().__init__(f"File '{file_name}' does not exist in blob storage")
        self.file_name = file_name


class SpreadsheetDecodeError(PenaltyServiceError):
    """The bytes fetched from the blob store are not a readable workbook."""


class PenaltyNotFoundError(PenaltyServiceError, ValueError):
    def __init__(self, penalty_id: str):
        super().__init__(f"Penalty not found: {penalty_id}")
        self.penalty_id = penalty_id

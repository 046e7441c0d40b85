"""
Exception types for the record store core.
"""


class RecordStoreError(Exception):
    """Base class for every error raised by the core."""
    pass


class CodecError(RecordStoreError):
    """Raised when a log line cannot be decoded back into a Record."""
    kind = "codec_error"


class CorruptEntry(CodecError):
    """Raised when the base64 layer rejects the input."""
    kind = "corrupt_entry"


class DecompressionFailed(CodecError):
    """Raised when the gzip layer is invalid or truncated."""
    kind = "decompression_failed"


class MalformedRecord(CodecError):
    """Raised when the decompressed JSON is not a valid record."""
    kind = "malformed_record"


class WriteFailure(RecordStoreError):
    """Raised when the append log cannot write a line."""
    pass


class ReplayAborted(RecordStoreError):
    """Raised when the append log cannot be opened or read during replay."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class StoreWriteFailure(RecordStoreError):
    """Raised when the primary store rejects a write. Nothing was indexed."""
    pass


class IndexWriteFailure(RecordStoreError):
    """Raised when indexing fails after the store write already committed."""

    def __init__(self, message: str, record=None, result=None):
        super().__init__(message)
        self.record = record
        self.result = result


class NotFound(RecordStoreError):
    """Raised when a record lookup by composite key finds nothing."""
    pass

class TransferError(Exception):
    """
        Base class for errors that end a transfer. `stage` says which part of the transfer failed
        ('listing', 'producer' or 'uploader'); `key` is the object key involved, if any.
        The underlying exception, if any, is available as __cause__.
    """
    stage = None

    def __init__(self, message, key=None):
        super().__init__(message)
        self.key = key


class ListingFailed(TransferError):
    """ Source objects couldn't be listed. """
    stage = 'listing'


class NoObjectsFound(TransferError):
    """ Listing succeeded but matched nothing -- usually a wrong bucket or prefix. """
    stage = 'listing'


class SourceReadFailed(TransferError):
    """ A source object couldn't be opened or read. `kind` is 'not_found', 'access_denied' or 'transient'. """
    stage = 'producer'

    def __init__(self, message, key=None, kind='transient'):
        super().__init__(message, key)
        self.kind = kind


class ArchiveWriteFailed(TransferError):
    """ Writing an entry to the archive, or finalizing it, failed. """
    stage = 'producer'


class UploadFailed(TransferError):
    """ Writing the archive to the destination failed. """
    stage = 'uploader'


class PipeTimeout(TimeoutError):
    """ A pipe read or write waited longer than the pipe's timeout without the other end making progress. """

import concurrent.futures
import logging
from collections import namedtuple
from shutil import copyfileobj
from zipfile import ZIP_DEFLATED

from tqdm import tqdm

from s3zipper.errors import ArchiveWriteFailed, ListingFailed, NoObjectsFound, SourceReadFailed, UploadFailed
from s3zipper.helpers import Pipe, SourceFile, StreamingZipFile, archive_name
from s3zipper.settings import COMPRESS_LEVEL, COPY_CHUNK_SIZE, PIPE_BUFFER_SIZE

logger = logging.getLogger(__name__)

TransferResult = namedtuple('TransferResult', ['object_count', 'source_bytes', 'archive_bytes'])


def write_zip(out, store, bucket, objects, source_prefix='', progress_bar=False):
    """
        Write each of `objects` from `bucket` to `out` as a zip archive, in order. Entry names have
        `source_prefix` stripped.
        Any failure stops the archive immediately; the central directory is only written if every
        entry was written.
    """
    archive = StreamingZipFile(out, 'w', compression=ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL)
    try:
        for obj in tqdm(objects, disable=not progress_bar, unit='obj'):
            add_object(archive, store, bucket, obj, source_prefix)
    except BaseException:
        archive.discard()
        raise
    try:
        archive.close()
    except Exception as e:
        raise ArchiveWriteFailed("failed to finalize archive: %s" % e) from e


def add_object(archive, store, bucket, obj, source_prefix=''):
    """ Copy one object into a new entry of `archive`. """
    try:
        body = store.open_object(bucket, obj.key)
    except SourceReadFailed:
        raise
    except Exception as e:
        raise SourceReadFailed("failed to get object %s: %s" % (obj.key, e), key=obj.key) from e
    try:
        name = archive_name(obj.key, source_prefix)
        logger.debug("adding s3://%s/%s as %s", bucket, obj.key, name)
        source = SourceFile(body, obj.key)
        try:
            with archive.open_entry(name, obj.size) as dest:
                try:
                    copyfileobj(source, dest, COPY_CHUNK_SIZE)
                except BaseException:
                    # a partly copied entry must not get a data descriptor that makes it look complete
                    archive.discard()
                    raise
        except SourceReadFailed:
            raise
        except Exception as e:
            raise ArchiveWriteFailed("failed to write %s to archive: %s" % (obj.key, e), key=obj.key) from e
        if source.length != obj.size:
            raise SourceReadFailed(
                "object size mismatch: %s listed as %s bytes, read %s" % (obj.key, obj.size, source.length),
                key=obj.key)
    finally:
        body.close()


def produce_archive(writer, store, bucket, objects, source_prefix='', progress_bar=False):
    """ Run write_zip into a pipe writer, then close the writer: with the error on failure, cleanly otherwise. """
    try:
        write_zip(writer, store, bucket, objects, source_prefix, progress_bar)
    except BaseException as e:
        logger.debug("producer failed: %s", e)
        writer.close(e)
        raise
    writer.close()


def upload_archive(reader, store, bucket, key):
    """
        Upload everything from a pipe reader to `key`. On failure the reader is closed with the error so a
        blocked producer is released. A producer error that arrived through the pipe is raised unchanged.
    """
    try:
        store.write_stream(bucket, key, reader)
    except Exception as e:
        logger.debug("uploader failed: %s", e)
        reader.close(e)
        if reader.error_received is not None:
            raise reader.error_received
        raise UploadFailed("failed to upload archive to s3://%s/%s: %s" % (bucket, key, e), key=key) from e


def transfer(store, source_bucket, source_prefix, dest_bucket, dest_key, progress_bar=False, stall_timeout=None,
             on_listed=None):
    """
        Zip every object under `source_prefix` in `source_bucket` and upload the archive to `dest_key` in
        `dest_bucket`, streaming through an in-memory pipe. Returns a TransferResult; raises the first
        TransferError encountered.
        `on_listed`, if given, is called with the list of objects before archiving starts.
    """
    try:
        objects = store.list_objects(source_bucket, source_prefix)
    except Exception as e:
        raise ListingFailed("failed to list objects in s3://%s/%s: %s" % (source_bucket, source_prefix, e)) from e
    if not objects:
        raise NoObjectsFound("no objects found with prefix %r in bucket %s" % (source_prefix, source_bucket))
    logger.debug("found %d objects in s3://%s/%s", len(objects), source_bucket, source_prefix)
    if on_listed:
        on_listed(objects)

    pipe = Pipe(PIPE_BUFFER_SIZE, timeout=stall_timeout)
    with concurrent.futures.ThreadPoolExecutor(max_workers=2, thread_name_prefix='s3zipper') as executor:
        upload = executor.submit(upload_archive, pipe.reader, store, dest_bucket, dest_key)
        produce = executor.submit(produce_archive, pipe.writer, store, source_bucket, objects, source_prefix, progress_bar)
        try:
            upload.result()
        finally:
            # no-op if the uploader already closed it; otherwise a producer still writing gets BrokenPipeError
            pipe.reader.close()

    # the upload finished without error, but if it stopped reading early the producer was cut off
    if produce.exception() is not None:
        raise UploadFailed("upload to s3://%s/%s ended before the end of the archive" % (dest_bucket, dest_key),
                           key=dest_key) from produce.exception()

    return TransferResult(len(objects), sum(obj.size for obj in objects), pipe.reader.bytes_read)

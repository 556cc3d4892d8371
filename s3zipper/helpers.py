import threading
import time
import zipfile
from collections import deque, namedtuple

from s3zipper.errors import PipeTimeout, SourceReadFailed
from s3zipper.settings import COPY_CHUNK_SIZE, PIPE_BUFFER_SIZE


ObjectDescriptor = namedtuple('ObjectDescriptor', ['key', 'size'])


class SourceFile:
    """ File wrapper for a source object body that counts bytes read and reports read errors as SourceReadFailed. """
    def __init__(self, source, key):
        self._source = source
        self.key = key
        self.length = 0

    def read(self, *args, **kwargs):
        try:
            result = self._source.read(*args, **kwargs)
        except Exception as e:
            raise SourceReadFailed("failed to read object %s: %s" % (self.key, e), key=self.key) from e
        self.length += len(result)
        return result

    def __getattr__(self, attr):
        return getattr(self._source, attr)


class DiscardableFile:
    """ Write-only file wrapper that silently drops writes once `discarded` is set. """
    def __init__(self, target):
        self._target = target
        self.discarded = False

    def write(self, data):
        if self.discarded:
            return len(data)
        return self._target.write(data)

    def flush(self):
        if not self.discarded:
            self._target.flush()


class StreamingZipFile(zipfile.ZipFile):
    """
        ZipFile subclass for writing to a non-seekable stream one entry at a time.
        Entries are stamped with the time they are written and use the archive's compression settings.
    """
    def __init__(self, file, mode='w', **kwargs):
        self._output = DiscardableFile(file)
        super().__init__(self._output, mode, **kwargs)

    def open_entry(self, name, size=0):
        """
            Open a writable entry. `size` is the expected uncompressed size; zipfile uses it to decide
            whether the entry needs zip64 fields, since it can't go back and patch the header later.
        """
        zinfo = zipfile.ZipInfo(name, date_time=time.localtime(time.time())[:6])
        zinfo.compress_type = self.compression
        zinfo._compresslevel = self.compresslevel
        zinfo.external_attr = 0o644 << 16
        zinfo.file_size = size
        return self.open(zinfo, 'w')

    def discard(self):
        """
            Stop writing to the output for good: nothing more is written, including the rest of an entry
            that is still open and the central directory.
        """
        self._output.discarded = True
        self.fp = None


def archive_name(key, source_prefix):
    """
        Path of `key` inside the archive, relative to `source_prefix`.

        >>> assert archive_name('a/b/c/file.txt', 'a/b/') == 'c/file.txt'
        >>> assert archive_name('a/b/c/file.txt', 'a/b') == 'c/file.txt'
        >>> assert archive_name('x/file.txt', 'a/b/') == 'x/file.txt'
        >>> assert archive_name('/file.txt', '') == '/file.txt'
        >>> assert archive_name('a/b/', 'a/b/') == 'a/b/'
    """
    if source_prefix and key.startswith(source_prefix):
        name = key[len(source_prefix):]
        if name.startswith('/'):
            name = name[1:]
        if name:
            return name
    return key


class Pipe:
    """
        Bounded in-memory byte pipe between one writer thread and one reader thread.

        Writes block while `max_buffered` bytes are waiting to be read; reads block while nothing is
        waiting and the writer is still open. Either end can be closed with an exception: a reader sees
        the writer's exception once the buffer is drained, and a writer gets BrokenPipeError as soon as
        the reader is gone. Only the first close of each end counts.
        If `timeout` is set, a read or write that waits that many seconds raises PipeTimeout.

        >>> pipe = Pipe()
        >>> pipe.writer.write(b'1234')
        4
        >>> pipe.writer.close()
        >>> assert pipe.reader.read(2) == b'12'
        >>> assert pipe.reader.read() == b'34'
        >>> assert pipe.reader.read() == b''
    """
    def __init__(self, max_buffered=PIPE_BUFFER_SIZE, timeout=None):
        if max_buffered < 1:
            raise ValueError("max_buffered must be at least 1")
        self.max_buffered = max_buffered
        self.timeout = timeout
        self._cond = threading.Condition()
        self._chunks = deque()
        self._buffered = 0
        self._writer_closed = False
        self._writer_error = None
        self._reader_closed = False
        self._reader_error = None
        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    def _wait(self, ready, operation):
        # caller holds self._cond
        if not self._cond.wait_for(ready, self.timeout):
            raise PipeTimeout("pipe %s stalled for %s seconds" % (operation, self.timeout))


class PipeReader:
    """ Read end of a Pipe. """
    def __init__(self, pipe):
        self._pipe = pipe
        self.bytes_read = 0
        # the writer's exception, once a read has raised it
        self.error_received = None

    @property
    def closed(self):
        return self._pipe._reader_closed

    def readable(self):
        return True

    def read(self, size=-1):
        if size is None or size < 0:
            return b''.join(iter(lambda: self.read(COPY_CHUNK_SIZE), b''))
        if size == 0:
            return b''
        pipe = self._pipe
        with pipe._cond:
            pipe._wait(lambda: pipe._chunks or pipe._writer_closed or pipe._reader_closed, 'read')
            if pipe._reader_closed:
                raise ValueError("read from closed pipe")
            if not pipe._chunks:
                if pipe._writer_error is not None:
                    self.error_received = pipe._writer_error
                    raise pipe._writer_error
                return b''
            out = []
            while pipe._chunks and size:
                chunk = pipe._chunks.popleft()
                if len(chunk) > size:
                    chunk, rest = chunk[:size], chunk[size:]
                    pipe._chunks.appendleft(rest)
                out.append(chunk)
                size -= len(chunk)
            out = b''.join(out)
            pipe._buffered -= len(out)
            self.bytes_read += len(out)
            pipe._cond.notify_all()
            return out

    def close(self, error=None):
        """ Stop reading. Buffered bytes are dropped and pending or future writes fail. """
        pipe = self._pipe
        with pipe._cond:
            if pipe._reader_closed:
                return
            pipe._reader_closed = True
            pipe._reader_error = error
            pipe._chunks.clear()
            pipe._buffered = 0
            pipe._cond.notify_all()


class PipeWriter:
    """ Write end of a Pipe. Has no tell() or seek(), so zipfile treats it as a stream. """
    def __init__(self, pipe):
        self._pipe = pipe
        self.bytes_written = 0

    @property
    def closed(self):
        return self._pipe._writer_closed

    def writable(self):
        return True

    def write(self, data):
        data = memoryview(data).cast('B')
        total = len(data)
        pipe = self._pipe
        with pipe._cond:
            while data:
                pipe._wait(lambda: pipe._reader_closed or pipe._writer_closed or pipe._buffered < pipe.max_buffered, 'write')
                if pipe._writer_closed:
                    raise ValueError("write to closed pipe")
                if pipe._reader_closed:
                    raise BrokenPipeError("pipe reader closed") from pipe._reader_error
                n = min(len(data), pipe.max_buffered - pipe._buffered)
                pipe._chunks.append(bytes(data[:n]))
                pipe._buffered += n
                self.bytes_written += n
                data = data[n:]
                pipe._cond.notify_all()
        return total

    def flush(self):
        pass

    def close(self, error=None):
        """ Signal end of stream, or pass `error` to the reader if given. """
        pipe = self._pipe
        with pipe._cond:
            if pipe._writer_closed:
                return
            pipe._writer_closed = True
            pipe._writer_error = error
            pipe._cond.notify_all()

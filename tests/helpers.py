import threading
from io import BytesIO

from s3zipper.helpers import ObjectDescriptor


def write_file(s3, bucket, key, contents):
    s3.put_object(Bucket=bucket, Key=key, Body=contents)
    return {
        'bucket': bucket,
        'key': key,
        'contents': contents.encode('utf8'),
    }


def run_in_thread(func, *args, timeout=10, **kwargs):
    """ Call func in a daemon thread and fail instead of hanging if it doesn't return within `timeout`. """
    result = {}

    def target():
        try:
            result['value'] = func(*args, **kwargs)
        except BaseException as e:
            result['error'] = e

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join(timeout)
    assert not thread.is_alive(), "%s hung" % func.__name__
    if 'error' in result:
        raise result['error']
    return result['value']


class StreamOutput:
    """ Write-only, non-seekable output that keeps what was written. Raises OSError on writes once `broken` is set. """
    def __init__(self):
        self.buffer = BytesIO()
        self.broken = False

    def write(self, data):
        if self.broken:
            raise OSError("output broken")
        return self.buffer.write(data)

    def flush(self):
        pass

    def getvalue(self):
        return self.buffer.getvalue()


class FakeBody(BytesIO):
    def __init__(self, store, key, data, read_error=None, read_error_after=0):
        super().__init__(data)
        self.store = store
        self.key = key
        self.read_error = read_error
        self.read_error_after = read_error_after

    def read(self, *args):
        if self.read_error and self.tell() >= self.read_error_after:
            raise self.read_error
        return super().read(*args)

    def close(self):
        self.store.closed.append(self.key)
        super().close()


class FakeStore:
    """
        In-memory stand-in for ObjectStore. `objects` maps keys to contents, in listing order.
        Failures can be injected per key on open or read (after `read_error_after` bytes), and on upload after
        some number of bytes.
    """
    def __init__(self, objects=None, open_errors=None, read_errors=None, read_error_after=0, upload_error=None,
                 upload_fail_after=0, upload_read_size=1024):
        self.objects = dict(objects or {})
        self.open_errors = open_errors or {}
        self.read_errors = read_errors or {}
        self.read_error_after = read_error_after
        self.upload_error = upload_error
        self.upload_fail_after = upload_fail_after
        self.upload_read_size = upload_read_size
        self.opened = []
        self.closed = []
        self.uploads = {}
        self.upload_calls = 0
        self.upload_received = b''

    def list_objects(self, bucket, prefix=''):
        return [ObjectDescriptor(k, len(v)) for k, v in self.objects.items() if k.startswith(prefix)]

    def open_object(self, bucket, key):
        self.opened.append(key)
        if key in self.open_errors:
            raise self.open_errors[key]
        return FakeBody(self, key, self.objects[key], self.read_errors.get(key), self.read_error_after)

    def write_stream(self, bucket, key, stream):
        self.upload_calls += 1
        out = BytesIO()
        while True:
            if self.upload_error and out.tell() >= self.upload_fail_after:
                raise self.upload_error
            chunk = stream.read(self.upload_read_size)
            if not chunk:
                break
            out.write(chunk)
            self.upload_received = out.getvalue()
        self.uploads[(bucket, key)] = out.getvalue()

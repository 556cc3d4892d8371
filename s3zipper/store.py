from shutil import copyfileobj

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from smart_open import open

from s3zipper.errors import SourceReadFailed
from s3zipper.helpers import ObjectDescriptor
from s3zipper.settings import COPY_CHUNK_SIZE, MULTIPART_PART_SIZE


# S3 error codes mapped to SourceReadFailed.kind; anything else is treated as transient
ERROR_KINDS = {
    'NoSuchKey': 'not_found',
    'NoSuchBucket': 'not_found',
    'NotFound': 'not_found',
    '404': 'not_found',
    'AccessDenied': 'access_denied',
    'Forbidden': 'access_denied',
    '403': 'access_denied',
}


class ObjectStore:
    """
        The S3 calls a transfer needs: list a prefix, read an object, and write a stream to a key.
        Credentials are whatever the boto3 client or session was set up with.
    """
    def __init__(self, client=None, session=None):
        if client is None:
            client = (session or boto3.Session()).client('s3')
        self.client = client

    def list_objects(self, bucket, prefix=''):
        """ Return an ObjectDescriptor for every object under `prefix`, in listing order. """
        objects = []
        paginator = self.client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                objects.append(ObjectDescriptor(obj['Key'], obj['Size']))
        return objects

    def open_object(self, bucket, key):
        """ Return a streaming body for `key`. Caller must close it. """
        try:
            return self.client.get_object(Bucket=bucket, Key=key)['Body']
        except ClientError as e:
            kind = ERROR_KINDS.get(e.response.get('Error', {}).get('Code'), 'transient')
            raise SourceReadFailed("failed to get object s3://%s/%s: %s" % (bucket, key, e), key=key, kind=kind) from e
        except BotoCoreError as e:
            raise SourceReadFailed("failed to get object s3://%s/%s: %s" % (bucket, key, e), key=key) from e

    def write_stream(self, bucket, key, stream):
        """
            Upload everything readable from `stream` to `key` as a multipart upload, one part at a time.
            If reading or uploading fails, the multipart upload is aborted and the error propagates.
        """
        transport_params = {'client': self.client, 'min_part_size': MULTIPART_PART_SIZE}
        with open('s3://%s/%s' % (bucket, key), 'wb', compression='disable', transport_params=transport_params) as out:
            copyfileobj(stream, out, COPY_CHUNK_SIZE)

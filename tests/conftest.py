import os
from collections import defaultdict

import boto3
from botocore.endpoint import Endpoint
import pytest
from moto import mock_aws

from tests.helpers import write_file


@pytest.fixture
def aws_credentials(monkeypatch):
    # via https://docs.getmoto.org/en/latest/docs/getting_started.html
    monkeypatch.setitem(os.environ, 'AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setitem(os.environ, 'AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setitem(os.environ, 'AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setitem(os.environ, 'AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setitem(os.environ, 'AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.delenv('AWS_PROFILE', raising=False)


@pytest.fixture
def s3(aws_credentials):
    with mock_aws():
        yield boto3.client('s3', region_name='us-east-1')


@pytest.fixture
def store(s3):
    from s3zipper.store import ObjectStore
    return ObjectStore(client=s3)


@pytest.fixture
def source_bucket(s3):
    source_bucket = 'source'
    s3.create_bucket(Bucket=source_bucket)
    return source_bucket


@pytest.fixture
def dest_bucket(s3):
    dest_bucket = 'attic'
    s3.create_bucket(Bucket=dest_bucket)
    return dest_bucket


@pytest.fixture
def source_prefix():
    return 'folders/some_folder/'


@pytest.fixture
def dest_key():
    return 'zips/folders/some_folder.zip'


@pytest.fixture
def files(s3, source_bucket):
    files = [
        ['folders/some_folder/file.txt', 'contents1'],
        ['folders/some_folder/file2.txt', 'contents2'],
        ['folders/some_folder/empty.txt', ''],
        ['folders/some_folder/sub/file3.txt', 'contents3' * 1000],
    ]
    return [write_file(s3, source_bucket, entry[0], entry[1]) for entry in files]


@pytest.fixture
def boto_calls(monkeypatch):
    boto_calls = defaultdict(int)
    real_make_request = Endpoint.make_request
    def mock_make_request(self, operation_model, *args, **kwargs):
        boto_calls[operation_model.name] += 1
        return real_make_request(self, operation_model, *args, **kwargs)
    monkeypatch.setattr(Endpoint, "make_request", mock_make_request)
    yield boto_calls

import argparse
import logging
import sys

import boto3
from botocore.exceptions import ProfileNotFound

from s3zipper.errors import TransferError
from s3zipper.s3zipper import transfer
from s3zipper.store import ObjectStore


def make_store(args):
    session = boto3.Session(profile_name=args.profile) if args.profile else boto3.Session()
    return ObjectStore(session=session)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Zip objects under an S3 prefix and upload the archive to S3, without staging it on disk.')
    parser.add_argument('--profile', help='AWS profile to use', default='')
    parser.add_argument('--source-bucket', required=True, help='Source S3 bucket name')
    parser.add_argument('--source-prefix', default='', help='Prefix for objects in source bucket; stripped from names in the archive')
    parser.add_argument('--dest-bucket', required=True, help='Destination S3 bucket name')
    parser.add_argument('--dest-key', required=True, help='Destination key (path and filename) in destination bucket')
    parser.add_argument('--no-progress', dest='progress_bar', action='store_false', help="Don't show progress bar while archiving")
    parser.add_argument('--stall-timeout', type=float, help='give up if the archiver or uploader makes no progress for this many seconds')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log each object as it is archived')
    parser.set_defaults(progress_bar=True)
    args = parser.parse_args(argv)

    logging.basicConfig(stream=sys.stdout, format='%(message)s', level=logging.WARNING)
    if args.verbose:
        logging.getLogger('s3zipper').setLevel(logging.DEBUG)

    try:
        store = make_store(args)
    except ProfileNotFound as e:
        parser.exit(1, "Transfer failed: %s\n" % e)

    try:
        result = transfer(store, args.source_bucket, args.source_prefix, args.dest_bucket, args.dest_key,
                          progress_bar=args.progress_bar, stall_timeout=args.stall_timeout,
                          on_listed=lambda objects: print("Found %d objects to archive" % len(objects)))
    except TransferError as e:
        parser.exit(1, "Transfer failed: %s: %s\n" % (e.stage, e))
    print("Transfer completed successfully: %s objects, %s bytes written to s3://%s/%s" % (
        result.object_count, result.archive_bytes, args.dest_bucket, args.dest_key))

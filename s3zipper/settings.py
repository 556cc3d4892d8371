# how many bytes of archive output may sit in the pipe waiting for the uploader?
# the producer blocks once this much is buffered
PIPE_BUFFER_SIZE = 8 * 2 ** 20

# chunk size for copying each source object into its zip entry
COPY_CHUNK_SIZE = 2 ** 20

# zlib level for deflated entries. 1 is the fastest; the uploader can't send bytes
# until they're compressed, so throughput beats ratio here
COMPRESS_LEVEL = 1

# size of each multipart upload part sent to the destination.
# ram usage on the upload side is about one part
MULTIPART_PART_SIZE = 50 * 2 ** 20

import io

import zstandard as zstd

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
CHUNK_SIZE = 32768


class CaptureReader:
    """
    Reads a recorded capture line by line. Captures are newline-delimited
    text and may be zstd-compressed, which is picked up from the frame magic
    at the start of the stream unless `compressed` says otherwise.

    `reader` is anything with a `read(n)` coroutine.
    """
    def __init__(self, reader, compressed=None, encoding="utf-8"):
        self.outputbuffer = NonSeekableMemoryStream()
        self.decompressor = None
        self.raw_reader = reader
        self.compressed = compressed
        self.encoding = encoding
        self._eof = False

    def enable_zstd(self):
        self.compressed = True
        self.decompressor = zstd.ZstdDecompressor().stream_writer(
            self.outputbuffer)

    async def readline(self):
        """
        Hand back the next line without its line ending, or None once the
        capture is exhausted.
        """
        while True:
            line = self.outputbuffer.readline()
            if line is not None:
                return line.rstrip(b"\r").decode(self.encoding,
                                                 errors="replace")
            if self._eof:
                rest = self.outputbuffer.read()
                if not rest:
                    return None
                return rest.rstrip(b"\r").decode(self.encoding,
                                                 errors="replace")
            await self.read_from_source()

    async def read_from_source(self):
        chunk = await self.raw_reader.read(CHUNK_SIZE)
        if not chunk:
            self._eof = True
            return
        if self.compressed is None:
            if chunk.startswith(ZSTD_MAGIC):
                self.enable_zstd()
            else:
                self.compressed = False
        elif self.compressed and self.decompressor is None:
            self.enable_zstd()
        if not self.compressed:
            self.outputbuffer.write(chunk)
        else:
            try:
                self.decompressor.write(chunk)
            except zstd.ZstdError as e:
                raise ValueError("Error in compressed capture stream: "
                                 "{}".format(e)) from e

    def __aiter__(self):
        return self

    async def __anext__(self):
        line = await self.readline()
        if line is None:
            raise StopAsyncIteration
        return line


class NonSeekableMemoryStream(io.RawIOBase):
    def __init__(self):
        self.buffer = bytearray()
        self.read_pos = 0
        self.write_pos = 0

    def write(self, b):
        self.buffer.extend(b)
        self.write_pos += len(b)
        return len(b)

    def read(self, size=-1):
        if size == -1 or size > self.write_pos - self.read_pos:
            size = self.write_pos - self.read_pos
        if size == 0:
            return b''
        data = self.buffer[self.read_pos:self.read_pos + size]
        self.read_pos += size
        if self.read_pos == self.write_pos:
            self.buffer = bytearray()
            self.read_pos = 0
            self.write_pos = 0
        return bytes(data)

    def readline(self):
        """
        Return the next complete line (without the newline), or None if no
        full line is buffered yet.
        """
        end = self.buffer.find(b"\n", self.read_pos, self.write_pos)
        if end == -1:
            return None
        line = self.read(end - self.read_pos + 1)
        return line[:-1]

    def remaining(self):
        return self.write_pos - self.read_pos

    def readable(self):
        return True

    def writable(self):
        return True

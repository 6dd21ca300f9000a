import asyncio
import logging
from pathlib import Path

logger = logging.getLogger("buddylog.file_writer")


class AppendFileWriter:
    """
    Appends text to a single file from one writer task. Callers enqueue and
    move on; lines land in the file in the order they were queued. When the
    queue is full or the file system refuses a write, the text is dropped and
    on_error is told why.
    """
    def __init__(self, path, *, max_queue=1000, on_error=None):
        self.path = Path(path)
        self._queue = asyncio.Queue(maxsize=max_queue)
        self._on_error = on_error
        self._task = None
        self._closed = False

    def write(self, text):
        """
        Queue text for appending. Never blocks.

        :param text: Text to append, newline included.
        :return: Boolean; False if the text was dropped.
        """
        if self._closed:
            self._report("Writer for {} is closed.".format(self.path))
            return False
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            self._report("Write queue for {} is full, dropping entry."
                         .format(self.path))
            return False
        if self._task is None:
            self._task = asyncio.ensure_future(self._writer_loop())
        return True

    async def join(self):
        """
        Wait until everything queued so far has been written (or dropped).
        """
        if self._task is not None:
            await self._queue.join()

    async def close(self):
        self._closed = True
        await self.join()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def _append(self, text):
        with self.path.open("a", encoding="utf-8") as f:
            f.write(text)

    async def _writer_loop(self):
        loop = asyncio.get_running_loop()
        while True:
            text = await self._queue.get()
            try:
                await loop.run_in_executor(None, self._append, text)
            except Exception as e:
                self._report("Error writing to {}: {}".format(self.path, e))
            finally:
                self._queue.task_done()

    def _report(self, message):
        logger.error(message)
        if self._on_error is not None:
            self._on_error(message)


class AppendWriterPool:
    """
    Hands out one AppendFileWriter per file, so each file only ever has a
    single writer.
    """
    def __init__(self, *, max_queue=1000, on_error=None):
        self.max_queue = max_queue
        self.on_error = on_error
        self._writers = {}

    def get(self, path):
        key = Path(path).resolve()
        if key not in self._writers:
            self._writers[key] = AppendFileWriter(key,
                                                  max_queue=self.max_queue,
                                                  on_error=self.on_error)
        return self._writers[key]

    def write(self, path, text):
        return self.get(path).write(text)

    async def join(self):
        for writer in list(self._writers.values()):
            await writer.join()

    async def close(self):
        for writer in list(self._writers.values()):
            await writer.close()
        self._writers = {}

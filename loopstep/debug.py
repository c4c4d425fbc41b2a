from typing import Optional, TextIO


class DebugLog:
    """Verbosity-levelled debug output.

    Nothing is opened or written while `level` is zero. With a positive
    level, lines go to `path` (default `debug.txt` in the current
    directory), or to the given stream.
    """
    def __init__(self, level: int = 0, path: str = 'debug.txt', stream: Optional[TextIO] = None):
        self.level = level
        self.path = path
        self.fp: Optional[TextIO] = stream
        self._owns_fp = False

    def write(self, msg: str, level: int = 1):
        if self.level < level:
            return
        if self.fp is None:
            self.fp = open(self.path, 'w', encoding='utf-8')
            self._owns_fp = True
        self.fp.write(msg + '\n')
        self.fp.flush()

    def close(self):
        if self.fp is not None and self._owns_fp:
            self.fp.close()
            self.fp = None
            self._owns_fp = False

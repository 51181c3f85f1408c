import io
import os
import gzip

from typing import Optional, Union

DEFAULT_BUFFER_SIZE = int(2e6)
GZIP_MAGIC = b'\037\213'


def test_gzipped(f) -> bool:
    """
    Checks the first two bytes of the
    passed file for gzip magic numbers

    Parameters
    ----------
    f : file-like
        The file to test

    Returns
    -------
    bool
    """
    try:
        current = f.tell()
    except OSError:
        return False
    magic = f.peek(2)[:2] if hasattr(f, 'peek') else f.read(2)
    if not hasattr(f, 'peek'):
        f.seek(current)
    return magic == GZIP_MAGIC


def open_stream(f: Union[io.IOBase, os.PathLike, str], mode: str='rt', buffer_size: Optional[int]=None,
                encoding: Optional[str]='utf8', newline: Optional[str]=None):
    '''Open a path or binary stream for reading, transparently decompressing
    gzip-encoded data.
    '''
    if 'r' not in mode:
        raise NotImplementedError("Only reading streams are supported")
    if buffer_size is None:
        buffer_size = DEFAULT_BUFFER_SIZE
    owns_stream = not hasattr(f, 'read')
    if owns_stream:
        f = io.open(f, 'rb')
    if isinstance(f, io.TextIOBase):
        return f
    if not isinstance(f, io.BufferedReader):
        f = io.BufferedReader(f, buffer_size)
    if test_gzipped(f):
        handle = gzip.GzipFile(fileobj=f, mode='rb')
        if owns_stream:
            # GzipFile only closes the file object it opened itself
            handle.myfileobj = f
    else:
        handle = f
    if "b" not in mode:
        handle = io.TextIOWrapper(handle, encoding=encoding, newline=newline)
    return handle


from typing import NamedTuple


class ZpoolError(Exception):
    pass


class ParseError(ZpoolError):
    pass


class MalformedIndentation(ParseError):
    def __init__(self, line: str):
        super().__init__(f'indentation does not match any open level: {line!r}')
        self.line = line


class UnknownHealthState(ParseError):
    def __init__(self, token: str):
        super().__init__(f'unknown health state {token!r}')
        self.token = token


class InvalidCounter(ParseError):
    def __init__(self, token: str):
        super().__init__(f'invalid error counter {token!r}')
        self.token = token


class InvalidSize(ParseError):
    def __init__(self, token: str):
        super().__init__(f'invalid size {token!r}')
        self.token = token


class CommandError(ZpoolError):
    pass


class CommandFailed(CommandError):
    def __init__(self, cmd: tuple[str, ...], returncode: int | None, stderr: str = ''):
        message = f'{" ".join(cmd)} failed with exit code {returncode}'
        if stderr:
            message += f': {stderr.strip()}'
        super().__init__(message)
        self.cmd = cmd
        self.returncode = returncode


class CommandTimeout(CommandError):
    def __init__(self, cmd: tuple[str, ...], timeout: float):
        super().__init__(f'{" ".join(cmd)} did not finish within {timeout} seconds')
        self.cmd = cmd
        self.timeout = timeout


class OrphanSizeRow(NamedTuple):
    """A size report row that names no device of the parsed topology."""
    pool: str | None
    device: str

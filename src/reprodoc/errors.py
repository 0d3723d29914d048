"""Error kinds raised or collected while compiling a document."""

from __future__ import annotations


class ReprodocError(Exception):
    """Base class for every compilation error."""

    fatal = True


class MalformedMetadata(ReprodocError):
    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        where = f"line {line}: " if line is not None else ""
        super().__init__(f"malformed metadata: {where}{message}")


class UnterminatedFragment(ReprodocError):
    def __init__(self, line: int, kind: str = "block") -> None:
        self.line = line
        self.kind = kind
        super().__init__(f"unterminated {kind} fragment opened on line {line}")


class InvalidFragmentOptions(ReprodocError):
    def __init__(self, line: int, message: str) -> None:
        self.line = line
        super().__init__(f"invalid fragment options on line {line}: {message}")


class FragmentEvaluationError(ReprodocError):
    """A fragment's code failed; carries where it came from and why."""

    def __init__(self, label: str | None, line: int, cause: str) -> None:
        self.label = label
        self.line = line
        self.cause = cause
        name = f"'{label}'" if label else "(unlabeled)"
        super().__init__(f"fragment {name} at line {line} failed: {cause}")


class UnresolvedReference(ReprodocError):
    fatal = False

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"unresolved reference: {token}")


class UnknownCitationKey(ReprodocError):
    fatal = False

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"unknown citation key: {key}")


class UnsupportedFormat(ReprodocError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unsupported output format: {name}")

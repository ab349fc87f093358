from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Files2XmlError(Exception):
    """Base exception for errors in the files2xml package."""


@dataclass(frozen=True)
class GitCommandError(Files2XmlError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class GitDirNotFoundError(Files2XmlError):
    """Raised when a `--gitdir` path does not exist."""

    folder: Path
    message: str = "The specified git directory does not exist."


@dataclass(frozen=True)
class NotAGitRepositoryError(Files2XmlError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class WalkRootError(Files2XmlError):
    """Raised when a directory walk is asked to start from something that is not a directory."""

    root: Path
    message: str = "The specified path is not a directory."


@dataclass(frozen=True)
class NoFilesError(Files2XmlError):
    """Raised when collection leaves nothing to process."""

    message: str = "No files to process."


@dataclass(frozen=True)
class MissingToolError(Files2XmlError):
    """Raised when a required external program is not on PATH."""

    tool: str
    message: str = "A required external tool is not installed."


@dataclass(frozen=True)
class ClassificationError(Files2XmlError):
    """Raised when the type, encoding, size or modification time of a file cannot be obtained."""

    path: Path
    operation: str
    reason: str


@dataclass(frozen=True)
class WriterStateError(Files2XmlError):
    """Raised when the XML writer is driven out of order."""

    state: str
    operation: str

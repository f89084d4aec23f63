"""Content fingerprints used to tell apart files of equal size."""

import hashlib
import logging
import os

from .. import __util__

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "md5"
DEFAULT_CHUNK_SIZE = 65536


class ContentComparator:
    """Compare two files by a streamed digest of their content.

    Any failure to read either file makes the pair compare as different, so
    the caller always errs towards copying.
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        log: logging.Logger | None = None,
    ) -> None:
        if not __util__.is_fixed_length_hash(algorithm):
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.algorithm = algorithm
        self.chunk_size = chunk_size
        self.log = log or logger

    def fingerprint(self, path) -> bytes:
        """Return the digest of the file at ``path``.

        Raises:
            ContentReadError: if the file cannot be opened or read
        """
        hasher = hashlib.new(self.algorithm)
        try:
            with open(path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise __util__.ContentReadError(
                f"Could not calculate {self.algorithm} of {os.fspath(path)}: {e}"
            ) from e
        return hasher.digest()

    def same_content(self, first, second) -> bool:
        """True iff both files fingerprint successfully to the same digest."""
        try:
            first_digest = self.fingerprint(first)
            second_digest = self.fingerprint(second)
        except __util__.ContentReadError as e:
            self.log.warning("%s; assuming content differs", e)
            return False
        return first_digest == second_digest

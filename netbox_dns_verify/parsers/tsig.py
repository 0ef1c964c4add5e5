"""
TSIG key file parser.

Reads BIND-style key files such as::

    key "transfer-key" {
        algorithm hmac-sha256;
        secret "c2VjcmV0";
    };
"""

import logging
import re

from ..core.exceptions import TSIGKeyError
from ..core.models import TSIGAlgorithm, TSIGKey

logger = logging.getLogger(__name__)

_COMMENT_PATTERN = re.compile(r"/\*.*?\*/|^\s*(?://|#).*?$", re.DOTALL | re.MULTILINE)
_KEY_PATTERN = re.compile(r'key\s+"?([^"\s{]+)"?\s*{(.*?)}', re.DOTALL)
_ALGORITHM_PATTERN = re.compile(r'algorithm\s+"?([^";\s]+)"?\s*;')
_SECRET_PATTERN = re.compile(r'secret\s+"([^"]+)"')


def parse_algorithm(token: str) -> TSIGAlgorithm:
    """
    Map an algorithm token from a key file to a supported algorithm.

    Raises:
        TSIGKeyError: If the token names none of the supported algorithms
    """
    try:
        return TSIGAlgorithm(token.strip().upper())
    except ValueError:
        raise TSIGKeyError(f"unsupported TSIG algorithm: {token}") from None


def parse_tsig_key(content: str) -> TSIGKey:
    """
    Parse the first key block of a BIND key file.

    Args:
        content: Text of the key file

    Returns:
        The parsed TSIGKey

    Raises:
        TSIGKeyError: If the name or secret is missing, or the algorithm is
            not supported
    """
    content = _COMMENT_PATTERN.sub("", content)

    match = _KEY_PATTERN.search(content)
    if not match:
        raise TSIGKeyError("TSIG keyfile is missing name or secret")

    name, block = match.group(1), match.group(2)
    secret_match = _SECRET_PATTERN.search(block)
    if not name or not secret_match:
        raise TSIGKeyError("TSIG keyfile is missing name or secret")

    algorithm_match = _ALGORITHM_PATTERN.search(block)
    algorithm = parse_algorithm(algorithm_match.group(1) if algorithm_match else "")

    return TSIGKey(name=name, secret=secret_match.group(1), algorithm=algorithm)


def parse_tsig_key_file(path: str) -> TSIGKey:
    """Read and parse a TSIG key file."""
    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise TSIGKeyError(f"failed to open TSIG keyfile {path}: {e}") from e

    key = parse_tsig_key(content)
    logger.info(f"TSIG key '{key.name}' ({key.algorithm.value}) loaded from {path}")
    return key

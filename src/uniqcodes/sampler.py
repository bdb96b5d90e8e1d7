"""Unbiased random string sampling over an arbitrary alphabet.

Random bytes come from a cryptographically secure source. Each byte is masked
down to the smallest bit width that covers the alphabet, and masked values
that fall outside the alphabet are discarded and redrawn (rejection sampling).
Masking alone would favour the low indices whenever the alphabet size is not
a power of two.
"""

import logging
import secrets
from typing import Callable

from uniqcodes.errors import InvalidAlphabet, RandomSourceExhausted

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ1234567890"

MAX_ALPHABET_SIZE = 256


def secure_random_bytes(length: int) -> bytes:
    """Return length bytes from the operating system's secure source.

    Raises:
        RandomSourceExhausted: If the source cannot supply bytes
    """
    try:
        return secrets.token_bytes(length)
    except (OSError, NotImplementedError) as e:
        logger.error(f"Unable to read random bytes: {e}")
        raise RandomSourceExhausted(f"Unable to generate random bytes: {e}") from e


def bit_mask(alphabet_size: int) -> int:
    """Return the mask 2**b - 1 for the minimal b with 2**b >= alphabet_size."""
    return (1 << (alphabet_size - 1).bit_length()) - 1


class UnbiasedSampler:
    """Draws strings whose characters are uniform over an alphabet.

    The random source is injectable so tests can drive the sampler with
    known byte streams.
    """

    def __init__(
        self,
        alphabet: str = DEFAULT_ALPHABET,
        random_bytes: Callable[[int], bytes] = secure_random_bytes,
    ):
        """Initialize sampler.

        Args:
            alphabet: Ordered symbols to draw from (1 to 256 characters)
            random_bytes: Function returning the requested number of bytes

        Raises:
            InvalidAlphabet: If alphabet is empty or longer than 256 symbols
        """
        if not alphabet or len(alphabet) > MAX_ALPHABET_SIZE:
            raise InvalidAlphabet(
                "Alphabet length must be greater than 0 and less than or "
                f"equal to {MAX_ALPHABET_SIZE}, got {len(alphabet)}"
            )
        self.alphabet = alphabet
        self.mask = bit_mask(len(alphabet))
        self._random_bytes = random_bytes

    def sample(self, length: int) -> str:
        """Generate a random string of exactly length characters.

        Args:
            length: Number of characters to draw

        Returns:
            Random string over the sampler's alphabet

        Raises:
            ValueError: If length is negative
            RandomSourceExhausted: If the random source fails or runs dry
        """
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")

        alphabet_size = len(self.alphabet)
        # Over-provision each batch since rejected bytes need refetching
        batch_size = length + length // 3
        result = []

        while len(result) < length:
            batch = self._fetch(batch_size)
            for byte in batch:
                index = byte & self.mask
                if index < alphabet_size:
                    result.append(self.alphabet[index])
                    if len(result) == length:
                        break

        return "".join(result)

    def _fetch(self, batch_size: int) -> bytes:
        batch = self._random_bytes(batch_size)
        if len(batch) < batch_size:
            logger.error(
                f"Random source returned {len(batch)} of {batch_size} bytes"
            )
            raise RandomSourceExhausted(
                f"Random source returned {len(batch)} of {batch_size} requested bytes"
            )
        return batch


def secure_random_string(alphabet: str, length: int) -> str:
    """Draw a random string of length characters uniformly from alphabet."""
    return UnbiasedSampler(alphabet).sample(length)

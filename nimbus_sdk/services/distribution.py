# NimbusFlags/nimbus_sdk/services/distribution.py
"""Consistent-hash bucketing for percentage rollouts.

A user is hashed into one of ``BUCKET_SIZE`` buckets; a distribution maps
bucket ranges to variation indexes. The hash must stay bit-for-bit
compatible with every other NimbusFlags SDK so that a user lands in the
same variation whatever language evaluates the toggle.
"""


from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Sequence

from ..errors.exceptions import EvalDetailError, EvalError
from ..repositories.models import Distribution, Select, Serve
from ..user import User


BUCKET_SIZE = 10000


@dataclass(frozen=True)
class Variation:
    """A resolved variation value with its index."""

    value: Any
    index: int


def salt_hash(key: str, salt: str, bucket_size: int = BUCKET_SIZE) -> int:
    """Hash ``key`` salted with ``salt`` into ``[0, bucket_size)``.

    The last four bytes of ``sha1(key + salt)`` are read as a big-endian
    unsigned integer and reduced modulo ``bucket_size``.

    Args:
        key: The hash key (rollout key or a user attribute value).
        salt: The salt, usually the toggle key.
        bucket_size: Number of buckets.

    Returns:
        int: The bucket index.
    """
    digest = hashlib.sha1(f"{key}{salt}".encode("utf-8")).digest()
    return int.from_bytes(digest[-4:], "big") % bucket_size


def find_index(
    distribution: Distribution, user: User, toggle_key: str, is_detail: bool
) -> int:
    """Return the variation index the user's bucket falls into.

    Args:
        distribution: The rollout table.
        user: The evaluated user.
        toggle_key: Key of the evaluated toggle, used as the default salt.
        is_detail: Whether to raise descriptive errors.

    Returns:
        int: Index of the first variation whose ranges hold the bucket.

    Raises:
        EvalDetailError: In detail mode, when the bucket-by attribute is
            missing or no range holds the bucket.
        EvalError: The same failures outside detail mode.
    """
    if distribution.bucket_by is None:
        hash_key = user.key
    else:
        hash_key = user.get(distribution.bucket_by)
        if hash_key is None:
            if is_detail:
                raise EvalDetailError(
                    f"User with key:{user.key!r} does not have attribute "
                    f"named: [{distribution.bucket_by}]"
                )
            raise EvalError()

    salt = distribution.salt if distribution.salt else toggle_key
    bucket = salt_hash(hash_key, salt, BUCKET_SIZE)

    for index, ranges in enumerate(distribution.ranges):
        if any(lower <= bucket < upper for lower, upper in ranges):
            return index

    if is_detail:
        raise EvalDetailError("not find hash_bucket in distribution.")
    raise EvalError()


def select_variation(
    serve: Serve,
    variations: Sequence[Any],
    user: User,
    toggle_key: str,
    is_detail: bool,
) -> Variation:
    """Resolve a serve into a concrete variation.

    Raises:
        EvalDetailError: In detail mode, when the index is out of range or
            the distribution lookup fails.
        EvalError: The same failures outside detail mode.
    """
    if isinstance(serve, Select):
        index = serve.index
    else:
        index = find_index(serve.distribution, user, toggle_key, is_detail)

    if 0 <= index < len(variations):
        return Variation(value=variations[index], index=index)

    if is_detail:
        raise EvalDetailError(
            f"index {index} overflow, variations count is {len(variations)}"
        )
    raise EvalError()

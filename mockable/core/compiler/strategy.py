"""
Concurrency strategy selector.

    markers          shape
    ---------------  ---------------------
    {}               PLAIN
    {ThreadSafe}     LOCKED_VALUE
    {Isolated}       ISOLATED_LOCKED_UNIT

Locked shapes are emitted either once with the portable ``LegacyLock``
(``force_portable_lock``) or twice from the same descriptors: a ``Mutex``
variant behind a minimum-version check and a ``LegacyLock`` fallback in the
``else`` branch, so exactly one is defined per interpreter.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Optional, Tuple

from mockable.core.config import GeneratorOptions
from mockable.core.model import CapabilityMarker, InterfaceDeclaration
from mockable.runtime.locking import MUTEX_MIN_VERSION

_log = logging.getLogger("mockable.generator")


class ConcurrencyShape(str, Enum):
    PLAIN = "plain"
    LOCKED_VALUE = "locked_value"
    ISOLATED_LOCKED_UNIT = "isolated_locked_unit"

    @property
    def locked(self) -> bool:
        return self is not ConcurrencyShape.PLAIN


class LockKind(str, Enum):
    MUTEX = "Mutex"
    LEGACY = "LegacyLock"


@dataclass(frozen=True)
class Variant:
    lock: Optional[LockKind] = None
    # gate expression for the branch, None for the unconditional/else branch
    condition: Optional[str] = None
    min_version: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class StrategyPlan:
    shape: ConcurrencyShape
    variants: Tuple[Variant, ...]

    @property
    def dual(self) -> bool:
        return len(self.variants) > 1


def version_predicate(min_version: Tuple[int, ...] = MUTEX_MIN_VERSION) -> str:
    return f"sys.version_info >= {tuple(min_version)!r}"


def select_shape(markers: AbstractSet[CapabilityMarker]) -> ConcurrencyShape:
    if CapabilityMarker.ISOLATED_UNIT in markers:
        return ConcurrencyShape.ISOLATED_LOCKED_UNIT
    if CapabilityMarker.THREAD_SAFE_VALUE in markers:
        return ConcurrencyShape.LOCKED_VALUE
    return ConcurrencyShape.PLAIN


def plan_strategy(interface: InterfaceDeclaration, options: Optional[GeneratorOptions] = None) -> StrategyPlan:
    opts = options or GeneratorOptions()
    shape = select_shape(interface.markers)

    if not shape.locked:
        plan = StrategyPlan(shape, (Variant(),))
    elif opts.force_portable_lock:
        plan = StrategyPlan(shape, (Variant(lock=LockKind.LEGACY),))
    else:
        plan = StrategyPlan(
            shape,
            (
                Variant(lock=LockKind.MUTEX, condition=version_predicate(), min_version=MUTEX_MIN_VERSION),
                Variant(lock=LockKind.LEGACY),
            ),
        )
    _log.debug("%s: shape=%s variants=%s", interface.name, shape.value, [v.lock for v in plan.variants])
    return plan

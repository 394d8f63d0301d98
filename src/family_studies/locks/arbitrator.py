"""Edit-lock arbitration over prioritized lock modules."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Callable

from family_studies.config import CONFIG, FamilyStudiesConfig
from family_studies.family.manager import FamilyMembershipManager
from family_studies.family.store import RightsProvider
from family_studies.locks.holders import LockHolderLookup, utcnow
from family_studies.locks.models import LockState, LockVerdict
from family_studies.locks.modules import BaselineLockModule, LinkedRecordSelfLockModule, LockModule
from family_studies.logging import get_logger

logger = get_logger(__name__)


class EditLockArbitrator:
    """Decides whether an edit attempt on a document is blocked.

    Modules run in descending priority, ties in registration order. The
    first verdict wins and later modules are not consulted. No verdict at
    all means the document is unlocked.

    Example:
        >>> arbitrator = EditLockArbitrator([baseline, self_lock])
        >>> verdict = arbitrator.check("FAM0000001")
        >>> verdict is None or verdict.overridable
        True
    """

    def __init__(self, modules: Iterable[LockModule] = ()) -> None:
        self._modules: list[LockModule] = []
        for module in modules:
            self.register(module)

    def register(self, module: LockModule) -> None:
        self._modules.append(module)

    @property
    def modules(self) -> list[LockModule]:
        """Modules in invocation order."""
        # sorted() is stable, so equal priorities keep registration order
        return sorted(self._modules, key=lambda m: -m.priority)

    def check(self, document_id: str) -> LockVerdict | None:
        for module in self.modules:
            verdict = module.check(document_id)
            if verdict is not None:
                logger.info(
                    "lock.verdict",
                    document_id=document_id,
                    module=getattr(module, "name", type(module).__name__),
                    holder=verdict.holder,
                    state=verdict.state.value,
                )
                return verdict
        return None

    def state(self, document_id: str) -> LockState:
        verdict = self.check(document_id)
        return LockState.UNLOCKED if verdict is None else verdict.state


def default_arbitrator(
    locks: LockHolderLookup,
    identity: RightsProvider,
    manager: FamilyMembershipManager | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
    config: FamilyStudiesConfig | None = None,
) -> EditLockArbitrator:
    """The standard chain: linked-record self lock (if a manager is given), then baseline."""
    config = config or CONFIG
    modules: list[LockModule] = [BaselineLockModule(locks, identity, clock=clock, config=config)]
    if manager is not None:
        modules.append(LinkedRecordSelfLockModule(locks, identity, manager, clock=clock, config=config))
    return EditLockArbitrator(modules)

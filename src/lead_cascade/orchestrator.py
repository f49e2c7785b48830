"""Tier scheduler: runs source tiers in order until the brief is satisfied.

Each tier runs, then merges, then decides whether to escalate. A run ends
with exactly one terminal event unless the caller cancels it.

Within a tier every adapter runs on its own worker thread with its own
deadline. The tier boundary is a barrier: merging, scoring, and the
escalation decision happen on the scheduler's thread only, and progress is
emitted after they finish.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from .dedupe import Deduplicator
from .errors import AdapterError, BriefError, BudgetError, RunCancelled
from .events import CompleteEvent, EmitFn, ErrorEvent, ProgressUpdate
from .logging_utils import RunLog
from .models import Contact, CreditGate, RawContact, SearchBrief, SearchOutcome, Tier
from .scoring import score_contacts
from .validation import validate_brief

CANCEL_POLL_SECONDS = 0.1
LOW_YIELD_TIER_LIMIT = 2


def _noop_emit(_event: object) -> None:
    return None


def tiers_for_depth(tiers: list[Tier], brief: SearchBrief) -> list[Tier]:
    """The ordered slice of the tier plan a brief's depth allows."""
    limit = brief.search_depth.tier_limit
    return list(tiers if limit is None else tiers[:limit])


def rank_contacts(contacts: list[Contact], limit: int) -> list[Contact]:
    """Highest score first; ties go to the contact discovered first."""
    ranked = sorted(contacts, key=lambda contact: (-contact.match_score, contact.discovered_at))
    return ranked[:limit]


class TierScheduler:
    """Runs one brief through the configured tiers.

    The scheduler holds no per-run state between calls; concurrent runs can
    share one instance. The credit gate is the only shared mutable collaborator.
    """

    def __init__(
        self,
        tiers: list[Tier],
        *,
        credit_gate: CreditGate | None,
        adapter_timeout: float,
        logger: logging.Logger,
    ) -> None:
        self._tiers = list(tiers)
        self._credit_gate = credit_gate
        self._adapter_timeout = adapter_timeout
        self._logger = logger

    @property
    def tiers(self) -> list[Tier]:
        return list(self._tiers)

    def run(
        self,
        brief: SearchBrief,
        *,
        emit: EmitFn = _noop_emit,
        principal: str = "anonymous",
        exempt: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> SearchOutcome:
        """Execute the cascade and return the ranked contacts.

        Raises ``BriefError`` for a malformed brief (no tier runs) and
        ``RunCancelled`` when ``cancel_event`` is set. Both input and internal
        failures publish exactly one ``ErrorEvent`` first; cancellation
        publishes nothing because nobody is listening.
        """
        log = RunLog(self._logger)
        cancel = cancel_event or threading.Event()
        try:
            validate_brief(brief)
        except BriefError as exc:
            log.add(f"[Pipeline] Rejected brief: {exc}")
            emit(ErrorEvent(message=str(exc), logs=log.snapshot()))
            raise

        try:
            outcome = self._cascade(brief, emit=emit, log=log, principal=principal, exempt=exempt, cancel=cancel)
        except RunCancelled:
            self._logger.info("Run cancelled by caller after %d log lines", len(log))
            raise
        except Exception as exc:
            log.add(f"Error: {exc}")
            self._logger.exception("Search run failed")
            emit(ErrorEvent(message=str(exc) or type(exc).__name__, logs=log.snapshot()))
            raise

        emit(CompleteEvent(contacts=outcome.contacts, total=outcome.total, logs=outcome.logs))
        return outcome

    def _cascade(
        self,
        brief: SearchBrief,
        *,
        emit: EmitFn,
        log: RunLog,
        principal: str,
        exempt: bool,
        cancel: threading.Event,
    ) -> SearchOutcome:
        plan = tiers_for_depth(self._tiers, brief)
        ledger = Deduplicator()
        low_yield_streak = 0

        log.add(
            f"[Pipeline] Starting cascading search: depth={brief.search_depth.value}, "
            f"target={brief.target_count}, tiers={len(plan)}"
        )
        log.add(f"[Pipeline] Contact types: {', '.join(brief.contact_types)}; markets: {', '.join(brief.markets)}")

        for position, tier in enumerate(plan, start=1):
            self._check_cancel(cancel)
            is_last = position == len(plan)

            if tier.cost_weight > 0 and not self._authorize(tier, principal=principal, exempt=exempt, log=log):
                emit(self._progress(tier, "skipped", ledger, brief, "Credit Gate", log))
                continue

            log.add(f"[Pipeline] === {tier.name.upper()} ===")
            status = "enriching" if tier.cost_weight > 0 else "searching"
            first_source = tier.adapters[0].name if tier.adapters else tier.name
            emit(self._progress(tier, status, ledger, brief, first_source, log))

            raw_contacts, last_source = self._run_tier(tier, brief, ledger.snapshot(), log, cancel)
            self._check_cancel(cancel)

            stats = ledger.merge_all(raw_contacts)
            score_contacts(ledger.contacts, brief)
            log.add(
                f"[{tier.name}] {len(raw_contacts)} raw contacts -> {stats.added} new, "
                f"{stats.updated} updated, {len(ledger)} unique"
            )
            if stats.skipped:
                log.add(f"[{tier.name}] Dropped {stats.skipped} contacts without any identity")

            low_yield_streak = low_yield_streak + 1 if stats.added < tier.min_acceptable_yield else 0
            stop_reason = self._stop_reason(tier, ledger, brief, is_last=is_last, low_yield_streak=low_yield_streak)
            if stop_reason:
                log.add(stop_reason)
            emit(self._progress(tier, "done", ledger, brief, last_source or tier.name, log))
            if stop_reason:
                break

        contacts = rank_contacts(ledger.contacts, brief.target_count)
        log.add(
            f"[Pipeline] Complete: returning {len(contacts)} of {len(ledger)} contacts "
            f"(target {brief.target_count})"
        )
        return SearchOutcome(contacts=contacts, total=len(contacts), logs=log.snapshot())

    @staticmethod
    def _stop_reason(
        tier: Tier, ledger: Deduplicator, brief: SearchBrief, *, is_last: bool, low_yield_streak: int
    ) -> str:
        if len(ledger) >= brief.target_count:
            return f"[Pipeline] Target reached after {tier.name}: {len(ledger)} >= {brief.target_count}"
        if is_last:
            return f"[Pipeline] No further tiers for depth={brief.search_depth.value}"
        if low_yield_streak >= LOW_YIELD_TIER_LIMIT:
            return (
                f"[Pipeline] Stopping after {tier.name}: {LOW_YIELD_TIER_LIMIT} consecutive tiers "
                f"below their minimum yield"
            )
        return ""

    def _authorize(self, tier: Tier, *, principal: str, exempt: bool, log: RunLog) -> bool:
        """Debit a costed tier before it starts. A refusal skips only this tier."""
        if exempt:
            log.add(f"[Credits] {tier.name}: principal exempt, no debit")
            return True
        try:
            self._debit(tier, principal)
        except BudgetError as exc:
            log.add(f"[Credits] Skipping {tier.name}: {exc}")
            return False
        log.add(f"[Credits] Debited {tier.cost_weight} credits for {tier.name}")
        return True

    def _debit(self, tier: Tier, principal: str) -> None:
        if self._credit_gate is None:
            raise BudgetError("no credit gate configured")
        try:
            balance = self._credit_gate.check_balance(principal)
            if balance < tier.cost_weight:
                raise BudgetError(f"balance {balance} below cost {tier.cost_weight}")
            if not self._credit_gate.debit(principal, tier.cost_weight, f"tier:{tier.name}"):
                raise BudgetError(f"debit of {tier.cost_weight} credits failed")
        except BudgetError:
            raise
        except Exception as exc:
            raise BudgetError(f"credit gate error ({exc})") from exc

    def _run_tier(
        self,
        tier: Tier,
        brief: SearchBrief,
        seeds: tuple[RawContact, ...],
        log: RunLog,
        cancel: threading.Event,
    ) -> tuple[list[RawContact], str]:
        """Run a tier's adapters in parallel; return contacts in adapter order."""
        if not tier.adapters:
            return [], ""
        executor = ThreadPoolExecutor(
            max_workers=len(tier.adapters), thread_name_prefix=f"tier-{tier.name.lower().replace(' ', '-')}"
        )
        futures: dict[Future[list[RawContact]], int] = {
            executor.submit(adapter.discover, brief, seeds): index
            for index, adapter in enumerate(tier.adapters)
        }
        results: dict[int, list[RawContact]] = {}
        last_source = ""
        deadline = time.monotonic() + self._adapter_timeout
        pending = set(futures)
        try:
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or cancel.is_set():
                    break
                done, pending = wait(
                    pending, timeout=min(CANCEL_POLL_SECONDS, remaining), return_when=FIRST_COMPLETED
                )
                for future in done:
                    index = futures[future]
                    adapter = tier.adapters[index]
                    last_source = adapter.name
                    try:
                        contacts = list(future.result())
                    except AdapterError as exc:
                        log.add(f"[{tier.name}] {adapter.name} unavailable: {exc} - continuing")
                        continue
                    except Exception as exc:
                        log.add(f"[{tier.name}] {adapter.name} failed: {exc} - continuing")
                        continue
                    results[index] = contacts
                    log.add(f"[{tier.name}] {adapter.name}: {len(contacts)} contacts")
            if not cancel.is_set():
                for future in pending:
                    log.add(
                        f"[{tier.name}] {tier.adapters[futures[future]].name} timed out after "
                        f"{self._adapter_timeout:g}s - ignored"
                    )
        finally:
            for future in pending:
                future.cancel()
            # Hung adapter threads are abandoned, never joined.
            executor.shutdown(wait=False, cancel_futures=True)

        ordered: list[RawContact] = []
        for index in range(len(tier.adapters)):
            ordered.extend(results.get(index, []))
        return ordered, last_source

    def _progress(
        self,
        tier: Tier,
        status: str,
        ledger: Deduplicator,
        brief: SearchBrief,
        current_source: str,
        log: RunLog,
    ) -> ProgressUpdate:
        return ProgressUpdate(
            tier=tier.name,
            status=status,
            found=len(ledger),
            target=brief.target_count,
            current_source=current_source,
            logs=log.drain(),
        )

    @staticmethod
    def _check_cancel(cancel: threading.Event) -> None:
        if cancel.is_set():
            raise RunCancelled("caller disconnected")

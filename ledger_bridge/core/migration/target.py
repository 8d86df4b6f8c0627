"""Target ledger resolution."""

import structlog

from ...models.ledger import LedgerSpec, TargetLedger
from ..capabilities import LedgerStore, SourceProvider
from ..exceptions import TargetResolutionError
from ..settings import MigrationSettings

logger = structlog.get_logger()


class TargetLedgerResolver:
    """Finds or creates the ledger balances are migrated into."""

    def __init__(self, store: LedgerStore, settings: MigrationSettings):
        self.store = store
        self.settings = settings
        self.logger = logger.bind(component="target_ledger_resolver")

    async def resolve(
        self,
        source: SourceProvider,
        explicit_identifier: str | None = None,
        warnings: list[str] | None = None,
    ) -> TargetLedger:
        """Resolve the destination ledger.

        Priority: the explicitly named ledger, then any existing ledger,
        then a newly created one seeded from the source currency name.
        Implicit choices are appended to ``warnings``.

        Raises:
            TargetResolutionError: the ledger could not be looked up or created
        """
        warnings = warnings if warnings is not None else []
        try:
            if explicit_identifier:
                ledger = await self.store.find_ledger(explicit_identifier)
                if ledger is not None:
                    self.logger.info("Using existing ledger", ledger=ledger.identifier)
                    return ledger
                self._warn(
                    warnings,
                    f"Specified ledger '{explicit_identifier}' not found, a new one will be created",
                )

            existing = await self.store.list_ledgers()
            if existing:
                ledger = existing[0]
                self._warn(
                    warnings,
                    f"Ledger '{ledger.identifier}' already exists; migrated balances "
                    "will be merged into existing accounts",
                )
                return ledger

            spec = self._build_spec(source, explicit_identifier)
            self.logger.info("Creating ledger", ledger=spec.identifier, suffix=spec.suffix)
            ledger = await self.store.create_ledger(spec)
        except TargetResolutionError:
            raise
        except Exception as e:
            raise TargetResolutionError(f"Failed to get or create target ledger: {e}") from e

        if ledger is None:
            raise TargetResolutionError("Failed to save new ledger")

        self.logger.info("Created ledger", ledger=ledger.identifier, ledger_id=ledger.ledger_id)
        return ledger

    def _build_spec(self, source: SourceProvider, explicit_identifier: str | None) -> LedgerSpec:
        singular = source.currency_name_singular()
        return LedgerSpec(
            identifier=explicit_identifier or self.settings.default_ledger_identifier,
            symbol=self.settings.default_symbol,
            icon=self.settings.default_icon,
            suffix=f" {singular.lower()}" if singular else "",
        )

    def _warn(self, warnings: list[str], message: str) -> None:
        self.logger.warning(message)
        warnings.append(message)

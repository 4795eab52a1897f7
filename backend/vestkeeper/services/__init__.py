"""VestKeeper Backend Services"""
from .engine import EngineConfig, VestingEngine, get_engine
from .automation import Automatable, UpkeepAutomation
from .capabilities import AdminAuthorizer, Authorizable, AssetLedger, InMemoryAssetLedger

# Lazy import for the journal (requires the database models)
def get_journal_service():
    from .journal import JournalService
    return JournalService

__all__ = [
    "EngineConfig",
    "VestingEngine",
    "get_engine",
    # Capabilities
    "Automatable",
    "UpkeepAutomation",
    "AdminAuthorizer",
    "Authorizable",
    "AssetLedger",
    "InMemoryAssetLedger",
    "get_journal_service",
]

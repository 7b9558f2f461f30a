"""Local entity store boundary.

The real application persists records in its own database; the sync core only
needs lookups by id and name plus saves. Saves made for local edits publish an
``EntityChanged`` event; saves made by the sync itself pass ``notify=False``.
Callers recording a local edit set ``last_modified`` before saving.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from .events import EntityChanged, EntityKind
from .models import LocalCompany, LocalOpportunity

logger = logging.getLogger(__name__)

ChangeListener = Callable[[EntityChanged], None]


class LocalStore(ABC):
    @abstractmethod
    def get_opportunity(self, opportunity_id: str) -> LocalOpportunity | None:
        pass

    @abstractmethod
    def save_opportunity(self, opportunity: LocalOpportunity, notify: bool = True) -> None:
        pass

    @abstractmethod
    def find_opportunity_by_name(
        self, name: str, company_id: str | None
    ) -> LocalOpportunity | None:
        pass

    @abstractmethod
    def get_company(self, company_id: str) -> LocalCompany | None:
        pass

    @abstractmethod
    def save_company(self, company: LocalCompany, notify: bool = True) -> None:
        pass

    @abstractmethod
    def find_company_by_name(self, name: str) -> LocalCompany | None:
        pass

    @abstractmethod
    def list_companies(self) -> list[LocalCompany]:
        pass


class InMemoryLocalStore(LocalStore):
    """Dict backed store. Records are copied in and out like a real database."""

    def __init__(self, on_change: ChangeListener | None = None):
        self._opportunities: dict[str, LocalOpportunity] = {}
        self._companies: dict[str, LocalCompany] = {}
        self._on_change = on_change

    def set_listener(self, on_change: ChangeListener | None) -> None:
        self._on_change = on_change

    def _notify(self, kind: EntityKind, entity_id: str) -> None:
        logger.debug("Local %s %s changed", kind.value, entity_id)
        if self._on_change is not None:
            self._on_change(EntityChanged(kind=kind, entity_id=entity_id))

    def get_opportunity(self, opportunity_id: str) -> LocalOpportunity | None:
        opportunity = self._opportunities.get(opportunity_id)
        return opportunity.model_copy(deep=True) if opportunity else None

    def save_opportunity(self, opportunity: LocalOpportunity, notify: bool = True) -> None:
        self._opportunities[opportunity.id] = opportunity.model_copy(deep=True)
        if notify:
            self._notify(EntityKind.OPPORTUNITY, opportunity.id)

    def find_opportunity_by_name(
        self, name: str, company_id: str | None
    ) -> LocalOpportunity | None:
        wanted = name.strip().casefold()
        for opportunity in self._opportunities.values():
            if opportunity.company_id == company_id and opportunity.name.casefold() == wanted:
                return opportunity.model_copy(deep=True)
        return None

    def list_opportunities(self) -> list[LocalOpportunity]:
        return [o.model_copy(deep=True) for o in self._opportunities.values()]

    def get_company(self, company_id: str) -> LocalCompany | None:
        company = self._companies.get(company_id)
        return company.model_copy(deep=True) if company else None

    def save_company(self, company: LocalCompany, notify: bool = True) -> None:
        self._companies[company.id] = company.model_copy(deep=True)
        if notify:
            self._notify(EntityKind.COMPANY, company.id)

    def find_company_by_name(self, name: str) -> LocalCompany | None:
        wanted = name.strip().casefold()
        for company in self._companies.values():
            if company.name.casefold() == wanted:
                return company.model_copy(deep=True)
        return None

    def list_companies(self) -> list[LocalCompany]:
        return [c.model_copy(deep=True) for c in self._companies.values()]
